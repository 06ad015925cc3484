"""
Admin approve/reject actions.

Actions reach the service through three channels (Telegram inline buttons,
signed HTTP links and bot commands) and all of them end in
``apply_admin_action``. Inline button payloads are parsed once, by
``parse_action_token``, into one of the ``ParsedAction`` variants.
"""

import enum
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from account_gate.models import AccountVerification, VerificationStatus
from account_gate.verification.exceptions import VerificationNotFoundError
from account_gate.verification.store import StatusLike, VerificationStore

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"^(?P<action>[a-z]+)_(?P<value>.+)$")
_ID_PATTERN = re.compile(r"[0-9]{1,64}")


class AdminAction(enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def target_status(self) -> VerificationStatus:
        if self is AdminAction.APPROVE:
            return VerificationStatus.APPROVED
        return VerificationStatus.REJECTED

    @property
    def past_tense(self) -> str:
        return "Approved" if self is AdminAction.APPROVE else "Rejected"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["AdminAction"]:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ResolvedAction:
    action: AdminAction
    verification_id: int

    def token(self) -> str:
        return build_action_token(self.action, self.verification_id)


@dataclass(frozen=True)
class DiagnosticAction:
    """Diagnostic button (``test_<label>``); acknowledged, never applied."""

    label: str


@dataclass(frozen=True)
class InvalidAction:
    raw: str
    reason: str


ParsedAction = Union[ResolvedAction, DiagnosticAction, InvalidAction]


def build_action_token(action: AdminAction, verification_id: int) -> str:
    """Opaque callback token, e.g. ``approve_12``."""
    return f"{action.value}_{verification_id}"


def parse_verification_id(value: str) -> Optional[int]:
    """
    Parse an ASCII decimal id, returning None for anything else.

    Numbers beyond the storable range still parse; the store reports them
    as not found.
    """
    if not _ID_PATTERN.fullmatch(value):
        return None
    return int(value)


def parse_action_token(raw: Optional[str]) -> ParsedAction:
    raw = raw or ""
    match = _TOKEN_PATTERN.match(raw.strip())
    if not match:
        return InvalidAction(raw=raw, reason="Malformed action")

    name, value = match.group("action"), match.group("value")
    if name == "test":
        return DiagnosticAction(label=value)

    action = AdminAction.parse(name)
    if action is None:
        return InvalidAction(raw=raw, reason=f"Unknown action: {name}")

    verification_id = parse_verification_id(value)
    if verification_id is None:
        return InvalidAction(raw=raw, reason="Invalid verification ID format")

    return ResolvedAction(action=action, verification_id=verification_id)


def build_audit_note(action: AdminAction, actor: str, source: str) -> str:
    """Notes text recorded with an admin action, e.g. ``Approved via Telegram by admin 42``."""
    return f"{action.past_tense} via {source} by {actor}"


async def apply_status_change(
    store: VerificationStore,
    verification_id: int,
    status: StatusLike,
    notes: Optional[str] = None,
) -> AccountVerification:
    """
    Set the status of an existing verification.

    Raises:
        InvalidStatusError: ``status`` is not a known status
        VerificationNotFoundError: the verification id does not exist
    """
    record = await store.update_status(verification_id, status, notes)
    if record is None:
        raise VerificationNotFoundError(verification_id)
    return record


async def apply_admin_action(
    store: VerificationStore,
    action: AdminAction,
    verification_id: int,
    notes: Optional[str] = None,
) -> AccountVerification:
    """Apply an approve/reject action to a verification."""
    record = await apply_status_change(
        store, verification_id, action.target_status, notes
    )
    logger.info(
        f"Admin action {action.value} applied to verification #{verification_id} "
        f"(user {record.external_user_id})"
    )
    return record
