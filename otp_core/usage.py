"""
Usage Recording
===============
Writes one ``sms_analytics`` row per delivered OTP so operators can see
which provider carried traffic for each country.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otp_core.database import get_session
from otp_core.models import SmsUsageRecord
from otp_core.otp.models import utcnow

logger = structlog.get_logger(__name__)


class UsageRecorder(ABC):
    """Sink for per-send usage rows. Recording must never fail a send."""

    @abstractmethod
    async def record(
        self,
        country_code: str,
        provider: str,
        cost: float,
        success: bool = True,
    ) -> bool:
        """Record one send. Returns False if the row could not be written."""


class InMemoryUsageRecorder(UsageRecorder):
    """Keeps usage rows in a list (development and tests)."""

    def __init__(self):
        self.records: List[dict] = []

    async def record(self, country_code, provider, cost, success=True) -> bool:
        self.records.append({
            "country_code": country_code,
            "provider": provider,
            "cost": cost,
            "success": success,
        })
        return True


class SQLUsageRecorder(UsageRecorder):
    """Usage rows written to ``sms_analytics``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or utcnow

    async def record(self, country_code, provider, cost, success=True) -> bool:
        now = self.clock()
        try:
            async with get_session(self.session_factory) as session:
                session.add(SmsUsageRecord(
                    country_code=country_code,
                    provider=provider,
                    cost=cost or 0.0,
                    success=success,
                    month=now.month,
                    year=now.year,
                    created_at=now,
                ))
            return True
        except SQLAlchemyError as e:
            logger.error(
                "Failed to record SMS usage",
                country_code=country_code,
                provider=provider,
                error=str(e),
            )
            return False
