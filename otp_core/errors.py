"""
OTP Error Taxonomy
==================
Structured errors raised by the dispatch and verification engine.

Every error carries a machine-readable ``kind`` and a human message that is
safe to show to end users. Provider credentials and raw gateway bodies only
ever travel in ``details``, which is logged server side and never rendered.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Error kinds surfaced to the route layer."""
    INVALID_PHONE_FORMAT = "invalid_phone_format"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    CONFIG_NOT_FOUND = "config_not_found"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    OTP_EXPIRED_OR_NOT_FOUND = "otp_expired_or_not_found"
    OTP_MISMATCH = "otp_mismatch"
    MAX_ATTEMPTS_EXCEEDED = "max_attempts_exceeded"


class OTPError(Exception):
    """Base exception for all OTP engine errors."""

    kind: ErrorKind = ErrorKind.PROVIDER_UNAVAILABLE
    status_code: int = 500
    default_message: str = "OTP request failed"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.kind.value, "message": self.message}


class InvalidPhoneFormat(OTPError):
    """Raised when a phone number cannot be canonicalized to E.164."""
    kind = ErrorKind.INVALID_PHONE_FORMAT
    status_code = 400
    default_message = (
        "Invalid phone number format. Use +94771234567 or local format "
        "with a country code (e.g., 0771234567 + LK)."
    )


class RateLimitExceeded(OTPError):
    """Raised when a phone number requested too many OTPs in the window."""
    kind = ErrorKind.RATE_LIMIT_EXCEEDED
    status_code = 429
    default_message = "Too many OTP requests. Please try again later."

    def __init__(
        self,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message, details)
        self.retry_after = retry_after


class ConfigNotFound(OTPError):
    """Raised when no active SMS provider is configured for a country."""
    kind = ErrorKind.CONFIG_NOT_FOUND
    status_code = 503

    def __init__(
        self,
        country_code: str,
        message: Optional[str] = None,
        details: Any = None,
    ):
        self.country_code = country_code
        super().__init__(
            message or (
                f"No active SMS provider configuration found for country: "
                f"{country_code}. Please contact your country admin to set up SMS services."
            ),
            details,
        )


class ProviderUnavailable(OTPError):
    """Raised when an SMS gateway fails to accept a message."""
    kind = ErrorKind.PROVIDER_UNAVAILABLE
    status_code = 502
    default_message = "SMS provider is temporarily unavailable. Please try again."

    def __init__(
        self,
        provider: str,
        message: Optional[str] = None,
        details: Any = None,
    ):
        self.provider = provider
        super().__init__(message, details)


class OtpExpiredOrNotFound(OTPError):
    """Raised when no unexpired, unverified challenge matches."""
    kind = ErrorKind.OTP_EXPIRED_OR_NOT_FOUND
    status_code = 400
    default_message = "Invalid or expired OTP"


class OtpMismatch(OTPError):
    """Raised when the submitted code does not match the challenge."""
    kind = ErrorKind.OTP_MISMATCH
    status_code = 400

    def __init__(self, attempts_remaining: int, details: Any = None):
        self.attempts_remaining = attempts_remaining
        super().__init__(
            f"Invalid OTP. {attempts_remaining} attempts remaining",
            details,
        )


class MaxAttemptsExceeded(OTPError):
    """Raised when a challenge has no verification attempts left."""
    kind = ErrorKind.MAX_ATTEMPTS_EXCEEDED
    status_code = 429
    default_message = "Maximum OTP attempts exceeded"


def to_error_payload(exc: OTPError) -> Dict[str, str]:
    """
    Render an OTP error for the caller.

    Only the kind and the human message are exposed; ``details`` stays
    server side.

    Args:
        exc: Any OTPError

    Returns:
        {"error": kind, "message": message}
    """
    return exc.to_dict()
