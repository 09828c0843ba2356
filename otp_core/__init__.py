"""
OTP Core Library
================
Phone-number OTP dispatch and verification over pluggable SMS gateways.
"""

__version__ = "0.1.0"

# Errors
from otp_core.errors import (
    ErrorKind,
    OTPError,
    InvalidPhoneFormat,
    RateLimitExceeded,
    ConfigNotFound,
    ProviderUnavailable,
    OtpExpiredOrNotFound,
    OtpMismatch,
    MaxAttemptsExceeded,
    to_error_payload,
)

# Config / logging
from otp_core.config import OTPSettings
from otp_core.logging_config import setup_logging

# Database
from otp_core.database import (
    Base,
    create_async_engine,
    create_session_factory,
    create_tables,
    close_engine,
    get_session,
)

# Phone
from otp_core.phone import (
    canonicalize,
    local_variants,
    LocalVariants,
    validate_e164,
    detect_country,
    resolve_country_code,
)

# Challenges
from otp_core.otp import (
    Challenge,
    DispatchResult,
    VerificationResult,
    TextResult,
    ProviderTestResult,
    ChallengeStore,
    InMemoryChallengeStore,
    SQLChallengeStore,
    generate_otp,
)

# Rate limiting
from otp_core.rate_limit import ChallengeRateLimiter, RateLimitInfo

# Providers
from otp_core.providers import (
    BaseProviderAdapter,
    ProviderName,
    SendResult,
    SUPPORTED_PROVIDERS,
    ProviderFactory,
    ProviderConfig,
    ProviderRegistry,
    InMemoryProviderConfigSource,
    SQLProviderConfigSource,
)

# Engine
from otp_core.usage import UsageRecorder, InMemoryUsageRecorder, SQLUsageRecorder
from otp_core.dispatch import DispatchOrchestrator
from otp_core.verification import VerificationEngine
from otp_core.service import OTPService, build_otp_service

__all__ = [
    # Errors
    "ErrorKind",
    "OTPError",
    "InvalidPhoneFormat",
    "RateLimitExceeded",
    "ConfigNotFound",
    "ProviderUnavailable",
    "OtpExpiredOrNotFound",
    "OtpMismatch",
    "MaxAttemptsExceeded",
    "to_error_payload",
    # Config / logging
    "OTPSettings",
    "setup_logging",
    # Database
    "Base",
    "create_async_engine",
    "create_session_factory",
    "create_tables",
    "close_engine",
    "get_session",
    # Phone
    "canonicalize",
    "local_variants",
    "LocalVariants",
    "validate_e164",
    "detect_country",
    "resolve_country_code",
    # Challenges
    "Challenge",
    "DispatchResult",
    "VerificationResult",
    "TextResult",
    "ProviderTestResult",
    "ChallengeStore",
    "InMemoryChallengeStore",
    "SQLChallengeStore",
    "generate_otp",
    # Rate limiting
    "ChallengeRateLimiter",
    "RateLimitInfo",
    # Providers
    "BaseProviderAdapter",
    "ProviderName",
    "SendResult",
    "SUPPORTED_PROVIDERS",
    "ProviderFactory",
    "ProviderConfig",
    "ProviderRegistry",
    "InMemoryProviderConfigSource",
    "SQLProviderConfigSource",
    # Engine
    "UsageRecorder",
    "InMemoryUsageRecorder",
    "SQLUsageRecorder",
    "DispatchOrchestrator",
    "VerificationEngine",
    "OTPService",
    "build_otp_service",
]
