"""
FastAPI routers for account verification.

Public:
    POST /verify-account

Admin (Bearer ADMIN_API_TOKEN when configured):
    GET  /admin/account-verifications
    GET  /admin/account-verifications/status/{status}
    GET  /admin/account-verifications/{id}/details
    POST /admin/account-verifications/{id}
    GET  /admin/account-verifications/{id}?action=&source=&sig=
         (action link opened from a notification; also accepted with a valid sig)
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from account_gate.api.dependencies import get_dispatcher, get_verification_store
from account_gate.core.config import settings
from account_gate.core.rate_limit import limiter
from account_gate.telegram.dispatcher import NotificationDispatcher
from account_gate.verification.actions import (
    AdminAction,
    apply_admin_action,
    apply_status_change,
    build_audit_note,
)
from account_gate.verification.exceptions import (
    InvalidStatusError,
    ValidationError,
    VerificationNotFoundError,
)
from account_gate.verification.links import (
    LINK_SOURCE_TELEGRAM,
    verify_action_signature,
)
from account_gate.verification.pages import render_action_result
from account_gate.verification.schemas import (
    StatusUpdateRequest,
    VerificationRecordResponse,
    VerifyAccountRequest,
    to_envelope,
)
from account_gate.verification.store import VerificationStore

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

router = APIRouter(tags=["verification"])
admin_router = APIRouter(
    prefix="/admin/account-verifications", tags=["admin-verifications"]
)


def has_valid_admin_token(credentials: Optional[HTTPAuthorizationCredentials]) -> bool:
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        return True
    if credentials is None or credentials.scheme.lower() != "bearer":
        return False
    return hmac.compare_digest(expected, credentials.credentials)


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    if not has_valid_admin_token(credentials):
        raise HTTPException(status_code=401, detail="Invalid or missing admin token")


def _record_data(record) -> dict:
    return VerificationRecordResponse.model_validate(record)


# ------------------ Public ------------------ #
@router.post("/verify-account")
@limiter.limit(settings.VERIFY_RATE_LIMIT)
async def verify_account(
    request: Request,
    payload: VerifyAccountRequest,
    background_tasks: BackgroundTasks,
    store: VerificationStore = Depends(get_verification_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Submit an external user id for verification.

    Admins are notified in the background, and only when this call created
    a new pending record.
    """
    try:
        outcome = await store.submit(payload.external_user_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if outcome.created and outcome.record is not None:
        background_tasks.add_task(dispatcher.notify_new_verification, outcome.record)

    return to_envelope(outcome.success, outcome.message, outcome)


# ------------------ Admin ------------------ #
@admin_router.get("", dependencies=[Depends(require_admin)])
async def list_verifications(
    store: VerificationStore = Depends(get_verification_store),
):
    records = await store.list_all()
    return to_envelope(
        True,
        f"Found {len(records)} verifications",
        [_record_data(record) for record in records],
    )


@admin_router.get("/status/{status}", dependencies=[Depends(require_admin)])
async def list_verifications_by_status(
    status: str,
    store: VerificationStore = Depends(get_verification_store),
):
    try:
        records = await store.list_by_status(status)
    except InvalidStatusError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return to_envelope(
        True,
        f"Found {len(records)} {status.lower()} verifications",
        [_record_data(record) for record in records],
    )


@admin_router.get("/{verification_id}/details", dependencies=[Depends(require_admin)])
async def get_verification(
    verification_id: int,
    store: VerificationStore = Depends(get_verification_store),
):
    record = await store.get_by_id(verification_id)
    if record is None:
        raise HTTPException(
            status_code=404, detail=f"Verification #{verification_id} not found"
        )
    return to_envelope(True, "Verification found", _record_data(record))


@admin_router.post("/{verification_id}", dependencies=[Depends(require_admin)])
async def update_verification_status(
    verification_id: int,
    payload: StatusUpdateRequest,
    store: VerificationStore = Depends(get_verification_store),
):
    try:
        record = await apply_status_change(
            store, verification_id, payload.status, payload.notes
        )
    except InvalidStatusError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except VerificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return to_envelope(
        True,
        f"Verification status updated to {record.status.value}",
        _record_data(record),
    )


@admin_router.get("/{verification_id}")
async def apply_action_link(
    verification_id: int,
    action: Optional[str] = None,
    source: Optional[str] = None,
    sig: Optional[str] = None,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: VerificationStore = Depends(get_verification_store),
):
    """
    Apply an approve/reject action from a link.

    Renders an HTML confirmation page when ``source=telegram`` (the link was
    opened from a notification), JSON otherwise.
    """
    as_page = source == LINK_SOURCE_TELEGRAM

    def respond(status_code: int, success: bool, title: str, message: str, data=None):
        if as_page:
            return HTMLResponse(
                render_action_result(title, message, success), status_code=status_code
            )
        if not success:
            raise HTTPException(status_code=status_code, detail=message)
        return to_envelope(True, message, data)

    parsed = AdminAction.parse(action)
    if parsed is None:
        return respond(
            400, False, "Invalid action", "Action must be either 'approve' or 'reject'"
        )

    signed = verify_action_signature(parsed, verification_id, sig)
    if not signed and not has_valid_admin_token(credentials):
        logger.warning(f"Rejected unauthenticated action link for #{verification_id}")
        return respond(
            401, False, "Unauthorized", "This link is invalid or has expired"
        )

    via = "Telegram link" if as_page else "admin API"
    notes = build_audit_note(parsed, "admin", via)

    try:
        record = await apply_admin_action(store, parsed, verification_id, notes)
    except VerificationNotFoundError as e:
        return respond(404, False, "Not found", str(e))

    message = (
        f"Verification #{record.id} for user {record.external_user_id} "
        f"has been {record.status.value}"
    )
    return respond(
        200, True, f"Verification {parsed.past_tense}", message, _record_data(record)
    )
