"""
Phone Number Handling
=====================
E.164 canonicalization, local format variants and country lookups.
"""

from .countries import (
    COUNTRY_CALLING_CODES,
    DEFAULT_COUNTRY,
    calling_code_for,
    detect_country,
    resolve_country_code,
)
from .normalizer import (
    E164_PATTERN,
    LocalVariants,
    canonicalize,
    local_variants,
    mask_phone,
    validate_e164,
)

__all__ = [
    "COUNTRY_CALLING_CODES",
    "DEFAULT_COUNTRY",
    "calling_code_for",
    "detect_country",
    "resolve_country_code",
    "E164_PATTERN",
    "LocalVariants",
    "canonicalize",
    "local_variants",
    "mask_phone",
    "validate_e164",
]
