"""
VerificationStore: the authoritative set of verification records.

Every public operation is one unit of work (its own session and transaction).
Writes are serialised through a store-level asyncio lock, and the unique
constraint on ``external_user_id`` guards the check-and-create in ``submit``
against other processes sharing the database.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from account_gate.core.config import settings
from account_gate.core.database import (
    build_engine,
    build_session_factory,
    init_database,
)
from account_gate.models import (
    MAX_VERIFICATION_ID,
    AccountVerification,
    VerificationStatus,
    utcnow,
)
from account_gate.verification.exceptions import InvalidStatusError, ValidationError
from account_gate.verification.schemas import (
    VerificationOutcome,
    VerificationRecordResponse,
)

logger = logging.getLogger(__name__)

StatusLike = Union[str, VerificationStatus]

SUBMITTED_NOTE = "Submitted via app"
PREAPPROVED_NOTE = "Pre-approved user"


def parse_status(status: StatusLike) -> VerificationStatus:
    """Map a status string to VerificationStatus, raising InvalidStatusError."""
    if isinstance(status, VerificationStatus):
        return status
    try:
        return VerificationStatus(str(status).strip().lower())
    except ValueError:
        raise InvalidStatusError(status)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_storable_id(verification_id: int) -> bool:
    """True when ``verification_id`` can name a stored record."""
    return 1 <= verification_id <= MAX_VERIFICATION_ID


class VerificationStore:
    """Owns verification records and all read/query/mutate operations."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        self._session_factory = session_factory
        self._engine = engine
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_url(cls, database_url: str) -> "VerificationStore":
        """Build a store that owns its engine (disposed by ``close``)."""
        engine = build_engine(database_url)
        return cls(build_session_factory(engine), engine=engine)

    async def create_tables(self) -> None:
        if self._engine is None:
            raise RuntimeError("Store was created without an engine")
        await init_database(self._engine)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Verification store closed")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_by_id(self, verification_id: int) -> Optional[AccountVerification]:
        if not is_storable_id(verification_id):
            return None
        async with self._session_factory() as session:
            return await session.get(AccountVerification, verification_id)

    async def get_by_external_user_id(
        self, external_user_id: str
    ) -> Optional[AccountVerification]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AccountVerification).where(
                    AccountVerification.external_user_id == external_user_id.strip()
                )
            )
            return result.scalar_one_or_none()

    async def list_all(self) -> List[AccountVerification]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AccountVerification).order_by(AccountVerification.id)
            )
            return list(result.scalars().all())

    async def list_by_status(self, status: StatusLike) -> List[AccountVerification]:
        parsed = parse_status(status)
        async with self._session_factory() as session:
            result = await session.execute(
                select(AccountVerification)
                .where(AccountVerification.status == parsed)
                .order_by(AccountVerification.id)
            )
            return list(result.scalars().all())

    async def count_by_status(self) -> Dict[str, int]:
        """Record counts per status plus a ``total`` key."""
        counts = {status.value: 0 for status in VerificationStatus}
        async with self._session_factory() as session:
            result = await session.execute(
                select(AccountVerification.status, func.count()).group_by(
                    AccountVerification.status
                )
            )
            for status, count in result.all():
                counts[status.value] = count
        counts["total"] = sum(counts.values())
        return counts

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def submit(self, external_user_id: str) -> VerificationOutcome:
        """
        Submit an external user id for verification.

        Existing records are reported as they are (no duplicate is created);
        an unknown id gets a new pending record.
        """
        external_user_id = self._normalize_external_user_id(external_user_id)

        async with self._write_lock:
            existing = await self.get_by_external_user_id(external_user_id)
            if existing is not None:
                return self._outcome_for_existing(existing)

            try:
                record = await self._insert(
                    external_user_id, VerificationStatus.PENDING, SUBMITTED_NOTE
                )
            except IntegrityError:
                # Inserted concurrently by another process sharing the database
                existing = await self.get_by_external_user_id(external_user_id)
                if existing is None:
                    raise
                logger.warning(
                    f"Concurrent submission detected for user {external_user_id}, "
                    f"using verification #{existing.id}"
                )
                return self._outcome_for_existing(existing)

        logger.info(
            f"Created verification #{record.id} for user {external_user_id} (pending)"
        )
        return VerificationOutcome(
            success=True,
            message="Account submitted for verification. Please wait for approval.",
            is_verified=False,
            user_id=external_user_id,
            status=VerificationStatus.PENDING,
            created=True,
            record=VerificationRecordResponse.model_validate(record),
        )

    async def update_status(
        self,
        verification_id: int,
        new_status: StatusLike,
        notes: Optional[str] = None,
    ) -> Optional[AccountVerification]:
        """
        Set the status of a record.

        ``notes`` replaces the current notes only when given. Returns None
        when the id does not exist.
        """
        parsed = parse_status(new_status)
        if not is_storable_id(verification_id):
            logger.warning(f"Status update for unknown verification #{verification_id}")
            return None

        async with self._write_lock:
            async with self._session_factory() as session:
                async with session.begin():
                    record = await session.get(AccountVerification, verification_id)
                    if record is None:
                        logger.warning(
                            f"Status update for unknown verification #{verification_id}"
                        )
                        return None

                    previous = record.status
                    record.status = parsed
                    record.updated_at = self._next_timestamp(record.updated_at)
                    if notes is not None:
                        record.notes = notes

        # Any direction is allowed, including approved -> rejected
        logger.info(
            f"Verification #{verification_id} status {previous.value} -> {parsed.value}"
        )
        return record

    async def seed_approved(self, external_user_ids: Iterable[str]) -> int:
        """Create approved records for ids that are not known yet."""
        created = 0
        async with self._write_lock:
            for external_user_id in external_user_ids:
                external_user_id = external_user_id.strip()
                if not external_user_id:
                    continue
                if await self.get_by_external_user_id(external_user_id):
                    continue
                await self._insert(
                    external_user_id, VerificationStatus.APPROVED, PREAPPROVED_NOTE
                )
                created += 1

        if created:
            logger.info(f"Seeded {created} pre-approved verifications")
        return created

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _insert(
        self, external_user_id: str, status: VerificationStatus, notes: Optional[str]
    ) -> AccountVerification:
        now = utcnow()
        record = AccountVerification(
            external_user_id=external_user_id,
            status=status,
            created_at=now,
            updated_at=now,
            notes=notes,
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(record)
        return record

    @staticmethod
    def _next_timestamp(previous: Optional[datetime]) -> datetime:
        """Current time, nudged forward so updated_at strictly advances."""
        now = utcnow()
        if previous is not None and now <= _as_utc(previous):
            return _as_utc(previous) + timedelta(microseconds=1)
        return now

    @staticmethod
    def _normalize_external_user_id(external_user_id: str) -> str:
        value = (external_user_id or "").strip()
        if not value:
            raise ValidationError("External user id is required")
        if len(value) > settings.EXTERNAL_USER_ID_MAX_LENGTH:
            raise ValidationError(
                f"External user id must be at most "
                f"{settings.EXTERNAL_USER_ID_MAX_LENGTH} characters"
            )
        return value

    @staticmethod
    def _outcome_for_existing(record: AccountVerification) -> VerificationOutcome:
        if record.status == VerificationStatus.APPROVED:
            success, message = True, "Account verified successfully"
        elif record.status == VerificationStatus.REJECTED:
            success = False
            message = "This account has been rejected. Please contact support."
        else:
            success = False
            message = "Your account is pending verification. Please try again later."

        return VerificationOutcome(
            success=success,
            message=message,
            is_verified=record.status == VerificationStatus.APPROVED,
            user_id=record.external_user_id,
            status=record.status,
            created=False,
            record=VerificationRecordResponse.model_validate(record),
        )
