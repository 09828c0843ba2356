"""
Country Calling Codes
=====================
Static mapping between 2-letter country codes and phone calling codes.
"""

import re
from typing import Dict, Optional, Tuple

DEFAULT_COUNTRY = "LK"

COUNTRY_CALLING_CODES: Dict[str, str] = {
    "LK": "94",   # Sri Lanka
    "IN": "91",   # India
    "US": "1",    # USA
    "UK": "44",   # United Kingdom
    "AE": "971",  # UAE
}

CALLING_CODE_COUNTRIES: Dict[str, str] = {
    code: country for country, code in COUNTRY_CALLING_CODES.items()
}

# Longest first so "971" is tried before "91"
CALLING_CODES_LONGEST_FIRST: Tuple[str, ...] = tuple(
    sorted(CALLING_CODE_COUNTRIES, key=len, reverse=True)
)


def calling_code_for(country_code: Optional[str], default: str = DEFAULT_COUNTRY) -> str:
    """
    Get the calling code for a 2-letter country code.

    Unknown or missing countries resolve to the default country's code.
    """
    if country_code and country_code.upper() in COUNTRY_CALLING_CODES:
        return COUNTRY_CALLING_CODES[country_code.upper()]
    return COUNTRY_CALLING_CODES[default]


def resolve_country_code(code: Optional[str], default: str = DEFAULT_COUNTRY) -> str:
    """
    Normalize a country hint to a 2-letter country code.

    Accepts either a 2-letter code ("lk", "LK") or a calling code
    ("+94", "94"). Anything unrecognized resolves to the default.

    Args:
        code: Country code or calling code
        default: Fallback country

    Returns:
        Upper-case 2-letter country code
    """
    if not code:
        return default

    code = code.strip()
    if len(code) == 2 and code.isalpha():
        return code.upper()

    digits = re.sub(r"\D", "", code)
    return CALLING_CODE_COUNTRIES.get(digits, default)


def split_calling_code(e164: str) -> Optional[Tuple[str, str]]:
    """
    Split an E.164 number into (calling_code, national_number).

    Returns None when the number does not start with a known calling code.
    """
    digits = e164.lstrip("+")
    for code in CALLING_CODES_LONGEST_FIRST:
        if digits.startswith(code):
            return code, digits[len(code):]
    return None


def detect_country(phone: str, default: str = DEFAULT_COUNTRY) -> str:
    """
    Detect the country of a phone number from its calling code.

    Args:
        phone: Phone number, ideally E.164
        default: Country returned when no calling code matches

    Returns:
        2-letter country code
    """
    clean = re.sub(r"[^\d+]", "", phone or "")
    if not clean.startswith("+"):
        return default

    split = split_calling_code(clean)
    if split is None:
        return default
    return CALLING_CODE_COUNTRIES[split[0]]
