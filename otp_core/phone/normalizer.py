"""
Phone Normalizer
================
Canonicalizes phone numbers to E.164 and derives the local formats some
legacy gateways expect instead.
"""

import re
from dataclasses import dataclass
from typing import Optional

from otp_core.errors import InvalidPhoneFormat
from .countries import (
    CALLING_CODES_LONGEST_FIRST,
    DEFAULT_COUNTRY,
    calling_code_for,
    resolve_country_code,
    split_calling_code,
)

E164_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")


@dataclass(frozen=True)
class LocalVariants:
    """The three representations of a number used by legacy gateways."""
    with_country_code: str   # 94771234567
    with_leading_zero: str   # 0771234567
    bare_local: str          # 771234567

    def by_format(self, fmt: str) -> str:
        """
        Look up a variant by its configured format key.

        Accepts the gateway-style keys "94"/"country", "0" and "local".
        """
        key = str(fmt).lower()
        if key == "0":
            return self.with_leading_zero
        if key == "local":
            return self.bare_local
        if key == "country" or key.isdigit():
            return self.with_country_code
        raise ValueError(f"Unknown phone format: {fmt}")


def validate_e164(phone: str) -> bool:
    """
    Validate E.164 phone number format.

    Args:
        phone: Phone number

    Returns:
        True if valid E.164 format
    """
    return bool(E164_PATTERN.match(phone or ""))


def canonicalize(raw: Optional[str], country_hint: Optional[str] = None) -> str:
    """
    Normalize a phone number to E.164 format.

    Steps:
    - keep digits and "+" only, convert a leading "00" to "+"
    - return as-is when already E.164
    - strip a known calling code written without "+"
    - otherwise prefix the hinted country's calling code (default LK),
      dropping the national trunk "0"

    Args:
        raw: Raw phone number as typed by the user
        country_hint: 2-letter country code or calling code ("+94")

    Returns:
        E.164 formatted number

    Raises:
        InvalidPhoneFormat: If no rule yields a valid E.164 number
    """
    if not raw:
        raise InvalidPhoneFormat("Phone number is required")

    clean = re.sub(r"[^\d+]", "", str(raw).strip())
    if clean.startswith("00"):
        clean = "+" + clean[2:]

    if validate_e164(clean):
        return clean

    for code in CALLING_CODES_LONGEST_FIRST:
        if clean.startswith(code):
            candidate = "+" + code + clean[len(code):].lstrip("0")
            if validate_e164(candidate):
                return candidate

    country = resolve_country_code(country_hint, DEFAULT_COUNTRY)
    calling_code = calling_code_for(country)
    candidate = "+" + calling_code + clean.lstrip("+").lstrip("0")
    if validate_e164(candidate):
        return candidate

    raise InvalidPhoneFormat()


def local_variants(e164: str) -> LocalVariants:
    """
    Derive country-code, trunk-zero and bare local forms of a number.

    Args:
        e164: Canonical E.164 number, e.g. +94771234567

    Returns:
        LocalVariants(94771234567, 0771234567, 771234567)

    Raises:
        InvalidPhoneFormat: If the number has no known calling code
    """
    split = split_calling_code(e164) if validate_e164(e164) else None
    if split is None:
        raise InvalidPhoneFormat(f"Cannot derive local formats for {mask_phone(e164)}")

    code, national = split
    national = national.lstrip("0")
    return LocalVariants(
        with_country_code=f"{code}{national}",
        with_leading_zero=f"0{national}",
        bare_local=national,
    )


def mask_phone(phone: Optional[str]) -> str:
    """Mask the middle of a phone number for logging."""
    if not phone:
        return ""
    if len(phone) <= 6:
        return "*" * len(phone)
    if len(phone) < 12:
        # Too short to show five leading and three trailing characters
        return f"{phone[:2]}{'*' * (len(phone) - 4)}{phone[-2:]}"
    return f"{phone[:5]}{'*' * (len(phone) - 8)}{phone[-3:]}"
