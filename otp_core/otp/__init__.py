"""
OTP Challenges
==============
Challenge models, code generation and challenge persistence.
"""

from .models import (
    Challenge,
    DispatchResult,
    ProviderTestResult,
    TextResult,
    VerificationResult,
    utcnow,
)
from .codes import (
    codes_match,
    compose_message,
    generate_challenge_id,
    generate_otp,
)
from .store import ChallengeStore, InMemoryChallengeStore
from .sql_store import SQLChallengeStore

__all__ = [
    # Models
    "Challenge",
    "DispatchResult",
    "ProviderTestResult",
    "TextResult",
    "VerificationResult",
    "utcnow",
    # Codes
    "codes_match",
    "compose_message",
    "generate_challenge_id",
    "generate_otp",
    # Stores
    "ChallengeStore",
    "InMemoryChallengeStore",
    "SQLChallengeStore",
]
