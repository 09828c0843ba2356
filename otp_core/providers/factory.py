"""
Provider Factory
================
Builds adapters from the closed set of provider variants.
"""

import json
from typing import Any, Dict, Optional, Tuple, Type

import httpx
import structlog

from otp_core.errors import ConfigNotFound
from .aws_sns import AWSSNSAdapter
from .base import DEFAULT_TIMEOUT, BaseProviderAdapter, ProviderName
from .hutch import HutchMobileAdapter
from .local import LocalAdapter
from .twilio import TwilioAdapter
from .vonage import VonageAdapter

logger = structlog.get_logger(__name__)

ADAPTER_CLASSES: Dict[ProviderName, Type[BaseProviderAdapter]] = {
    ProviderName.TWILIO: TwilioAdapter,
    ProviderName.AWS: AWSSNSAdapter,
    ProviderName.VONAGE: VonageAdapter,
    ProviderName.LOCAL: LocalAdapter,
    ProviderName.HUTCH_MOBILE: HutchMobileAdapter,
}


def parse_provider_name(name: str, country_code: str = "") -> ProviderName:
    """
    Map a configured provider name onto the closed enum.

    Raises:
        ConfigNotFound: If the name is not a supported provider
    """
    try:
        return ProviderName(str(name).lower())
    except ValueError:
        raise ConfigNotFound(
            country_code,
            f"Unsupported SMS provider configured: {name}",
        ) from None


class ProviderFactory:
    """
    Creates and caches provider adapters.

    One adapter is cached per (country, provider) so stateful adapters, such
    as the OAuth gateway holding its token, keep their session between
    sends. When the stored config for that slot changes, the old adapter is
    closed and replaced.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.transport = transport
        self._adapters: Dict[Tuple[str, str], Tuple[str, BaseProviderAdapter]] = {}

    def create(self, name: str, config: Dict[str, Any]) -> BaseProviderAdapter:
        """Build a fresh adapter without caching it."""
        provider = parse_provider_name(name)
        adapter_class = ADAPTER_CLASSES[provider]
        return adapter_class(config or {}, timeout=self.timeout, transport=self.transport)

    async def get(
        self,
        name: str,
        config: Dict[str, Any],
        country_code: str = "",
    ) -> BaseProviderAdapter:
        """Get the cached adapter for a country's provider, rebuilding it on config change."""
        key = (str(country_code).upper(), str(name).lower())
        fingerprint = json.dumps(config or {}, sort_keys=True, default=str)

        cached = self._adapters.get(key)
        if cached is not None:
            cached_fingerprint, adapter = cached
            if cached_fingerprint == fingerprint:
                return adapter
            del self._adapters[key]
            await adapter.close()
            logger.info("Provider adapter replaced", provider=adapter.name, country_code=key[0])

        adapter = self.create(name, config)
        self._adapters[key] = (fingerprint, adapter)
        logger.info("Provider adapter created", provider=adapter.name, country_code=key[0])
        return adapter

    async def __call__(
        self,
        name: str,
        config: Dict[str, Any],
        country_code: str = "",
    ) -> BaseProviderAdapter:
        return await self.get(name, config, country_code)

    def __len__(self) -> int:
        return len(self._adapters)

    async def close_all(self) -> None:
        """Close all cached adapters."""
        for _, adapter in self._adapters.values():
            await adapter.close()
        self._adapters.clear()
