"""
Challenge Window Rate Limiter
=============================
Per-phone limit on issued challenges over a trailing window.

The count is read straight from the challenge store; no counter state is
kept. Concurrent requests for the same phone may both pass, so the limit
is advisory rather than a mutual-exclusion guarantee.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from otp_core.errors import RateLimitExceeded
from otp_core.otp.models import utcnow
from otp_core.otp.store import ChallengeStore
from otp_core.phone.normalizer import mask_phone
from .models import RateLimitInfo

logger = structlog.get_logger(__name__)


class ChallengeRateLimiter:
    """Sliding window limiter over the challenge store."""

    def __init__(
        self,
        store: ChallengeStore,
        rate: int = 10,
        window: int = 3600,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            store: Challenge store queried for the window count
            rate: Challenges allowed per window
            window: Window size in seconds
            clock: Returns the current UTC time
        """
        self.store = store
        self.rate = rate
        self.window = window
        self.clock = clock or utcnow

    async def peek(self, phone: str) -> RateLimitInfo:
        """Report quota for a phone without raising."""
        since = self.clock() - timedelta(seconds=self.window)
        count = await self.store.count_since(phone, since)
        return RateLimitInfo(
            phone=phone,
            count=count,
            limit=self.rate,
            window=self.window,
            window_start=since,
        )

    async def check(self, phone: str) -> RateLimitInfo:
        """
        Check whether a phone may request another challenge.

        Raises:
            RateLimitExceeded: If the window already holds ``rate`` challenges
        """
        info = await self.peek(phone)
        if not info.allowed:
            logger.warning(
                "OTP rate limit exceeded",
                phone=mask_phone(phone),
                count=info.count,
                limit=self.rate,
                window=self.window,
            )
            raise RateLimitExceeded(retry_after=info.retry_after)
        return info
