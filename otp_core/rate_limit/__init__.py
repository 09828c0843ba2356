"""
Rate Limiting
=============
Per-phone challenge issuance limits.
"""

from .models import RateLimitResult, RateLimitInfo
from .challenge_window import ChallengeRateLimiter

__all__ = [
    "RateLimitResult",
    "RateLimitInfo",
    "ChallengeRateLimiter",
]
