"""
OTP Codes
=========
Code and challenge id generation, message composition and comparison.
"""

import hmac
import secrets
import uuid

from otp_core.config import DEFAULT_MESSAGE_TEMPLATE

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp() -> str:
    """
    Generate a 6-digit numeric OTP.

    Uniform over 100000-999999 using the OS CSPRNG.
    """
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def generate_challenge_id() -> str:
    """Generate an opaque unique challenge id."""
    return f"otp_{uuid.uuid4().hex}"


def compose_message(code: str, template: str = DEFAULT_MESSAGE_TEMPLATE) -> str:
    """Render the SMS body for a code."""
    return template.format(code=code)


def codes_match(submitted: str, expected: str) -> bool:
    """
    Compare a submitted code against the stored one.

    Uses constant-time comparison to prevent timing attacks.
    """
    return hmac.compare_digest(str(submitted).strip().encode(), expected.encode())
