"""
SMS Provider Adapters
=====================
Gateway adapters, their factory and the per-country registry.
"""

from .base import (
    BaseProviderAdapter,
    ProviderName,
    SendResult,
    SUPPORTED_PROVIDERS,
)
from .twilio import TwilioAdapter
from .aws_sns import AWSSNSAdapter
from .vonage import VonageAdapter
from .local import LocalAdapter
from .hutch import HutchMobileAdapter, TokenState, decode_token_expiry
from .factory import ProviderFactory, parse_provider_name
from .registry import (
    InMemoryProviderConfigSource,
    ProviderConfig,
    ProviderConfigSource,
    ProviderRegistry,
    SQLProviderConfigSource,
)

__all__ = [
    # Base
    "BaseProviderAdapter",
    "ProviderName",
    "SendResult",
    "SUPPORTED_PROVIDERS",
    # Adapters
    "TwilioAdapter",
    "AWSSNSAdapter",
    "VonageAdapter",
    "LocalAdapter",
    "HutchMobileAdapter",
    "TokenState",
    "decode_token_expiry",
    # Factory
    "ProviderFactory",
    "parse_provider_name",
    # Registry
    "InMemoryProviderConfigSource",
    "ProviderConfig",
    "ProviderConfigSource",
    "ProviderRegistry",
    "SQLProviderConfigSource",
]
