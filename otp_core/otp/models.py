"""
OTP Models
==========
Data models for issued challenges and dispatch/verification results.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Challenge:
    """A single issued OTP with its own expiry and attempt state."""
    id: str
    phone: str
    code: str
    country_code: str
    created_at: datetime
    expires_at: datetime
    provider_used: str
    attempts: int = 0
    max_attempts: int = 3
    verified: bool = False
    verified_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Unexpired and not yet verified."""
        return not self.verified and not self.is_expired(now)

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempts, 0)


@dataclass
class DispatchResult:
    """Outcome of a successful SendOTP."""
    challenge_id: str
    expires_in: int
    provider: str
    phone: str


@dataclass
class VerificationResult:
    """Outcome of a successful VerifyOTP."""
    verified: bool
    challenge_id: str
    provider_used: str


@dataclass
class TextResult:
    """Outcome of an admin diagnostic send."""
    provider: str
    message_id: str
    cost: float
    phone: str


@dataclass
class ProviderTestResult:
    """Outcome of a provider test send. Never raised, always returned."""
    success: bool
    provider: str
    timestamp: datetime
    message_id: Optional[str] = None
    cost: Optional[float] = None
    error: Optional[str] = None
