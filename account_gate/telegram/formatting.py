"""
Message builders for the admin bot.

Notifications are sent with ``parse_mode=MarkdownV2``; every dynamic value
goes through ``escape_markdown`` so user-supplied ids cannot break the
markup. Command replies are plain text.
"""

import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from account_gate.models import AccountVerification, VerificationStatus
from account_gate.verification.actions import AdminAction

MARKDOWN_V2 = "MarkdownV2"

_MARKDOWN_V2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")

STATUS_EMOJI = {
    VerificationStatus.PENDING: "⏳",
    VerificationStatus.APPROVED: "✅",
    VerificationStatus.REJECTED: "❌",
}


def escape_markdown(text: object) -> str:
    """Escape characters reserved by Telegram MarkdownV2."""
    return _MARKDOWN_V2_SPECIAL.sub(r"\\\1", str(text))


def format_timestamp(value: Optional[datetime] = None) -> str:
    """Human-readable UTC timestamp, e.g. ``2024-05-01 13:45:00 UTC``."""
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _lines(*lines: str) -> str:
    return "\n".join(lines)


def build_new_verification_text(record: AccountVerification) -> str:
    """MarkdownV2 body of the new-request notification."""
    return _lines(
        "🚨 *NEW VERIFICATION REQUEST* 🚨",
        "",
        f"*ID:* {escape_markdown(record.id)}",
        f"*User:* {escape_markdown(record.external_user_id)}",
        f"*Status:* {escape_markdown(record.status.value)}",
        f"*Time:* {escape_markdown(format_timestamp(record.created_at))}",
        "",
        "Instructions:",
        escape_markdown("- Review the user ID"),
        escape_markdown("- Use the approve or reject buttons below"),
    )


def build_processed_text(
    record: AccountVerification, action: AdminAction, processed_by: str
) -> str:
    """MarkdownV2 text that replaces a notification once it was acted on."""
    emoji = STATUS_EMOJI[action.target_status]
    status_text = action.target_status.value.upper()
    return _lines(
        f"🔔 *VERIFICATION \\#{escape_markdown(record.id)} {status_text}* {emoji}",
        "",
        f"*User:* {escape_markdown(record.external_user_id)}",
        f"*By:* {escape_markdown(processed_by)}",
        f"*Time:* {escape_markdown(format_timestamp(record.updated_at))}",
    )


def format_record_details(record: AccountVerification) -> str:
    """Plain-text detail block used by /info and command replies."""
    emoji = STATUS_EMOJI.get(record.status, "❓")
    lines = [
        f"{emoji} User ID: {record.external_user_id}",
        f"Status: {record.status.value.upper()}",
        f"Created: {format_timestamp(record.created_at)}",
        f"Updated: {format_timestamp(record.updated_at)}",
    ]
    if record.notes:
        lines.append(f"Notes: {record.notes}")
    lines.append(f"ID: {record.id}")
    return "\n".join(lines)


def format_record_list(
    title: str, records: Iterable[AccountVerification], with_status: bool = False
) -> str:
    records = list(records)
    rows: List[str] = []
    for record in records:
        if with_status:
            emoji = STATUS_EMOJI.get(record.status, "❓")
            rows.append(
                f"{emoji} ID {record.id}: {record.external_user_id} ({record.status.value})"
            )
        else:
            rows.append(f"ID {record.id}: {record.external_user_id}")
    return f"{title} ({len(records)})\n\n" + "\n".join(rows)


def format_stats(counts: Dict[str, int]) -> str:
    return _lines(
        "📊 Verification Statistics",
        "",
        f"Total: {counts.get('total', 0)}",
        f"⏳ Pending: {counts.get(VerificationStatus.PENDING.value, 0)}",
        f"✅ Approved: {counts.get(VerificationStatus.APPROVED.value, 0)}",
        f"❌ Rejected: {counts.get(VerificationStatus.REJECTED.value, 0)}",
    )
