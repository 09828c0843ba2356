"""
OTP Verification
================
Checks submitted codes against stored challenges.
"""

from datetime import datetime
from typing import Callable, Optional

import structlog

from otp_core.config import OTPSettings
from otp_core.errors import MaxAttemptsExceeded, OtpExpiredOrNotFound, OtpMismatch
from otp_core.otp.codes import codes_match
from otp_core.otp.models import VerificationResult, utcnow
from otp_core.otp.store import ChallengeStore
from otp_core.phone.normalizer import canonicalize, mask_phone

logger = structlog.get_logger(__name__)


class VerificationEngine:
    """Implements VerifyOTP."""

    def __init__(
        self,
        store: ChallengeStore,
        settings: Optional[OTPSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or OTPSettings()
        self.clock = clock or utcnow

    async def verify_otp(
        self,
        phone: str,
        code: str,
        challenge_id: Optional[str] = None,
    ) -> VerificationResult:
        """
        Verify a code for a phone.

        Args:
            phone: Raw or canonical phone number
            code: Submitted OTP
            challenge_id: Optional id returned by SendOTP

        Returns:
            VerificationResult(verified=True, ...)

        Raises:
            OtpExpiredOrNotFound: No active challenge, or it was consumed concurrently
            MaxAttemptsExceeded: The challenge has no attempts left
            OtpMismatch: Wrong code; one attempt is consumed
        """
        canonical = canonicalize(phone, self.settings.default_country)
        now = self.clock()

        challenge = await self.store.find_active(canonical, now, challenge_id)
        if challenge is None:
            # Probing across outstanding challenges costs each of them an attempt
            touched = await self.store.increment_active_attempts(canonical, now)
            logger.warning(
                "No active OTP challenge",
                phone=mask_phone(canonical),
                challenge_id=challenge_id,
                penalized=touched,
            )
            raise OtpExpiredOrNotFound()

        if challenge.attempts >= challenge.max_attempts:
            logger.warning("OTP attempts exhausted", challenge_id=challenge.id)
            raise MaxAttemptsExceeded()

        # The snapshot above may be stale under concurrent guesses; the store
        # re-checks the attempt limit atomically in both branches below.
        if not codes_match(code, challenge.code):
            attempts = await self.store.increment_attempts(challenge.id)
            if attempts is None:
                logger.warning("OTP attempts exhausted", challenge_id=challenge.id)
                raise MaxAttemptsExceeded()
            remaining = max(challenge.max_attempts - attempts, 0)
            logger.warning(
                "Invalid OTP attempt",
                challenge_id=challenge.id,
                remaining=remaining,
            )
            raise OtpMismatch(attempts_remaining=remaining)

        if not await self.store.mark_verified(challenge.id, now):
            current = await self.store.get(challenge.id)
            if current and not current.verified and current.attempts >= current.max_attempts:
                logger.warning("OTP attempts exhausted", challenge_id=challenge.id)
                raise MaxAttemptsExceeded()
            raise OtpExpiredOrNotFound()

        logger.info("OTP verified", challenge_id=challenge.id, phone=mask_phone(canonical))
        return VerificationResult(
            verified=True,
            challenge_id=challenge.id,
            provider_used=challenge.provider_used,
        )
