"""
OTP Engine Configuration
========================
Settings for challenge lifecycle, rate limiting and provider calls.
"""

import os
from dataclasses import dataclass, field

DEFAULT_MESSAGE_TEMPLATE = "Your verification code is: {code}. Valid for 5 minutes."


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OTPSettings:
    """Configuration for OTP dispatch and verification."""
    expiry_seconds: int = field(
        default_factory=lambda: int(os.environ.get("OTP_EXPIRY_SECONDS", "300"))
    )
    max_attempts: int = field(
        default_factory=lambda: int(os.environ.get("OTP_MAX_ATTEMPTS", "3"))
    )
    rate_limit_max: int = field(
        default_factory=lambda: int(os.environ.get("OTP_RATE_LIMIT_MAX", "10"))
    )
    rate_limit_window_seconds: int = field(
        default_factory=lambda: int(os.environ.get("OTP_RATE_LIMIT_WINDOW", "3600"))
    )
    provider_timeout: float = field(
        default_factory=lambda: float(os.environ.get("SMS_PROVIDER_TIMEOUT", "15.0"))
    )
    default_country: str = field(
        default_factory=lambda: os.environ.get("OTP_DEFAULT_COUNTRY", "LK").upper()
    )
    message_template: str = field(
        default_factory=lambda: os.environ.get("OTP_MESSAGE_TEMPLATE", DEFAULT_MESSAGE_TEMPLATE)
    )
    database_url: str = field(
        default_factory=lambda: os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./otp.db")
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )
    log_json: bool = field(
        default_factory=lambda: _env_bool("LOG_JSON", "true")
    )
