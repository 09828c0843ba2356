"""
SQL Challenge Store
===================
SQLAlchemy-backed challenge persistence.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otp_core.database import get_session
from otp_core.models import ChallengeRecord
from .models import Challenge
from .store import ChallengeStore

logger = structlog.get_logger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_challenge(record: ChallengeRecord) -> Challenge:
    return Challenge(
        id=record.id,
        phone=record.phone,
        code=record.code,
        country_code=record.country_code,
        created_at=_aware(record.created_at),
        expires_at=_aware(record.expires_at),
        provider_used=record.provider_used,
        attempts=record.attempts,
        max_attempts=record.max_attempts,
        verified=record.verified,
        verified_at=_aware(record.verified_at),
    )


class SQLChallengeStore(ChallengeStore):
    """
    Challenge store on the ``phone_otp_verifications`` table.

    Each operation runs in its own short transaction. Attempt counting and
    verification are conditional UPDATEs, so concurrent callers can neither
    spend more than ``max_attempts`` nor both verify the same challenge.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def insert(self, challenge: Challenge) -> None:
        async with get_session(self.session_factory) as session:
            session.add(ChallengeRecord(
                id=challenge.id,
                phone=challenge.phone,
                code=challenge.code,
                country_code=challenge.country_code,
                created_at=challenge.created_at,
                expires_at=challenge.expires_at,
                attempts=challenge.attempts,
                max_attempts=challenge.max_attempts,
                verified=challenge.verified,
                verified_at=challenge.verified_at,
                provider_used=challenge.provider_used,
            ))

    async def get(self, challenge_id: str) -> Optional[Challenge]:
        async with get_session(self.session_factory) as session:
            record = await session.get(ChallengeRecord, challenge_id)
            return _to_challenge(record) if record else None

    async def count_since(self, phone: str, since: datetime) -> int:
        async with get_session(self.session_factory) as session:
            result = await session.execute(
                select(func.count())
                .select_from(ChallengeRecord)
                .where(
                    ChallengeRecord.phone == phone,
                    ChallengeRecord.created_at > since,
                )
            )
            return int(result.scalar_one())

    async def find_active(
        self,
        phone: str,
        now: datetime,
        challenge_id: Optional[str] = None,
    ) -> Optional[Challenge]:
        query = select(ChallengeRecord).where(
            ChallengeRecord.phone == phone,
            ChallengeRecord.expires_at > now,
            ChallengeRecord.verified.is_(False),
        )
        if challenge_id is not None:
            query = query.where(ChallengeRecord.id == challenge_id)
        query = query.order_by(ChallengeRecord.created_at.desc()).limit(1)

        async with get_session(self.session_factory) as session:
            result = await session.execute(query)
            record = result.scalars().first()
            return _to_challenge(record) if record else None

    async def increment_attempts(self, challenge_id: str) -> Optional[int]:
        async with get_session(self.session_factory) as session:
            result = await session.execute(
                update(ChallengeRecord)
                .where(
                    ChallengeRecord.id == challenge_id,
                    ChallengeRecord.attempts < ChallengeRecord.max_attempts,
                )
                .values(attempts=ChallengeRecord.attempts + 1)
            )
            if result.rowcount != 1:
                return None
            # Same transaction, so this reads our own increment
            attempts = await session.scalar(
                select(ChallengeRecord.attempts).where(ChallengeRecord.id == challenge_id)
            )
            return int(attempts)

    async def increment_active_attempts(self, phone: str, now: datetime) -> int:
        async with get_session(self.session_factory) as session:
            result = await session.execute(
                update(ChallengeRecord)
                .where(
                    ChallengeRecord.phone == phone,
                    ChallengeRecord.expires_at > now,
                    ChallengeRecord.verified.is_(False),
                    ChallengeRecord.attempts < ChallengeRecord.max_attempts,
                )
                .values(attempts=ChallengeRecord.attempts + 1)
            )
            return result.rowcount or 0

    async def mark_verified(self, challenge_id: str, now: datetime) -> bool:
        async with get_session(self.session_factory) as session:
            result = await session.execute(
                update(ChallengeRecord)
                .where(
                    ChallengeRecord.id == challenge_id,
                    ChallengeRecord.verified.is_(False),
                    ChallengeRecord.expires_at > now,
                    ChallengeRecord.attempts < ChallengeRecord.max_attempts,
                )
                .values(verified=True, verified_at=now)
            )
            swapped = result.rowcount == 1
        if not swapped:
            logger.info("Challenge already consumed or expired", challenge_id=challenge_id)
        return swapped
