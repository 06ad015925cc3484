"""
Unified database models for the application.
All SQLAlchemy models are defined here.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()

# Largest value an Integer primary key holds on every supported backend
MAX_VERIFICATION_ID = 2**31 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class VerificationStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class AccountVerification(Base):
    """A single external user id and its approval state."""

    __tablename__ = "account_verifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_user_id = Column(String(255), nullable=False, unique=True)
    status = Column(
        Enum(
            VerificationStatus,
            name="verification_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=VerificationStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_account_verifications_status", "status"),
        # ids are never reused, even after rows are removed by hand
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<AccountVerification id={self.id} "
            f"external_user_id={self.external_user_id!r} status={self.status.value}>"
        )
