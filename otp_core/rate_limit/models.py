"""
Rate Limit Models
=================
Outcome of a challenge-window check for one phone.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class RateLimitInfo:
    """Challenges counted for a phone in the trailing window."""
    phone: str
    count: int
    limit: int
    window: int  # Seconds
    window_start: datetime

    @property
    def allowed(self) -> bool:
        return self.count < self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)

    @property
    def retry_after(self) -> Optional[int]:
        # Only the count is known, not when the oldest challenge leaves
        return None if self.allowed else self.window

    @property
    def result(self) -> RateLimitResult:
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.BLOCKED
