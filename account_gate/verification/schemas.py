"""
Pydantic schemas for account verification endpoints.

JSON bodies use camelCase keys (``externalUserId``, ``createdAt``) to match
the web client; Python attributes stay snake_case.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field, StringConstraints, field_validator

from account_gate.core.config import settings
from account_gate.models import VerificationStatus

ExternalUserId = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=1,
        max_length=settings.EXTERNAL_USER_ID_MAX_LENGTH,
    ),
]


# Request schemas
class VerifyAccountRequest(BaseModel):
    """Submission of an external user id for approval."""

    external_user_id: ExternalUserId = Field(
        ..., alias="externalUserId", description="User id on the partner platform"
    )

    class Config:
        populate_by_name = True


class StatusUpdateRequest(BaseModel):
    """Admin request to change the status of a verification."""

    status: str = Field(..., description="pending, approved or rejected")
    notes: Optional[str] = Field(
        None, max_length=1000, description="Replaces the current notes when given"
    )


# Response schemas
class VerificationRecordResponse(BaseModel):
    id: int
    external_user_id: str = Field(..., alias="externalUserId")
    status: VerificationStatus
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    notes: Optional[str] = None

    class Config:
        from_attributes = True
        populate_by_name = True

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is stored in UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class VerificationOutcome(BaseModel):
    """Result of a submission, as shown to the end user."""

    success: bool
    message: str
    is_verified: bool = Field(..., alias="isVerified")
    user_id: str = Field(..., alias="userId")
    status: VerificationStatus
    created: bool = Field(
        False, description="True when this submission created a new pending record"
    )
    record: Optional[VerificationRecordResponse] = Field(None, exclude=True)

    class Config:
        populate_by_name = True


class ApiResponse(BaseModel):
    """``{success, message, data}`` envelope used by every JSON endpoint."""

    success: bool
    message: str
    data: Optional[Any] = None


def to_envelope(success: bool, message: str, data: Any = None) -> dict:
    """Serialize an envelope with camelCase keys and JSON-safe values."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json")
    elif isinstance(data, list):
        data = [
            item.model_dump(by_alias=True, mode="json")
            if isinstance(item, BaseModel)
            else item
            for item in data
        ]
    return ApiResponse(success=success, message=message, data=data).model_dump()
