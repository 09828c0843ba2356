"""
Provider Registry
=================
Resolves which provider (and fallback) serves a country.

Exclusivity of the active provider per country is a convention kept by the
admin write side, not a database constraint. The read side tolerates zero
or several active rows and picks the most recently updated one.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otp_core.database import get_session
from otp_core.errors import ConfigNotFound
from otp_core.models import ProviderConfigRecord
from otp_core.phone.countries import DEFAULT_COUNTRY, resolve_country_code

logger = structlog.get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ProviderConfig(BaseModel):
    """Active provider settings for one country."""
    model_config = ConfigDict(frozen=True)

    country_code: str
    provider_name: str
    config: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    fallback_provider_name: Optional[str] = None
    fallback_config: Optional[Dict[str, Any]] = None
    updated_at: datetime = _EPOCH

    @classmethod
    def from_row(
        cls,
        country_code: str,
        provider: str,
        config: Optional[Dict[str, Any]],
        is_active: bool,
        updated_at: Optional[datetime] = None,
    ) -> "ProviderConfig":
        """
        Build from a stored row.

        The fallback lives inside the config blob as ``fallbackProvider`` /
        ``fallbackConfig``; without ``fallbackConfig`` the fallback reuses
        the primary blob.
        """
        blob = dict(config or {})
        fallback_name = blob.get("fallbackProvider")
        fallback_config = None
        if fallback_name:
            fallback_config = blob.get("fallbackConfig") or blob

        if updated_at is not None and updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)

        return cls(
            country_code=country_code.upper(),
            provider_name=provider,
            config=blob,
            is_active=is_active,
            fallback_provider_name=fallback_name,
            fallback_config=fallback_config,
            updated_at=updated_at or _EPOCH,
        )

    @property
    def has_fallback(self) -> bool:
        return bool(self.fallback_provider_name)


class ProviderConfigSource(ABC):
    """Read-only access to stored provider configuration."""

    @abstractmethod
    async def list_for_country(self, country_code: str) -> List[ProviderConfig]:
        """All rows for a country, active or not."""


class InMemoryProviderConfigSource(ProviderConfigSource):
    """Provider configuration held in memory (development and tests)."""

    def __init__(self, configs: Optional[List[ProviderConfig]] = None):
        self._configs: List[ProviderConfig] = list(configs or [])

    def add(self, config: ProviderConfig) -> None:
        self._configs.append(config)

    async def list_for_country(self, country_code: str) -> List[ProviderConfig]:
        return [c for c in self._configs if c.country_code == country_code.upper()]


class SQLProviderConfigSource(ProviderConfigSource):
    """Provider configuration read from ``sms_provider_configs``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_for_country(self, country_code: str) -> List[ProviderConfig]:
        async with get_session(self.session_factory) as session:
            result = await session.execute(
                select(ProviderConfigRecord).where(
                    ProviderConfigRecord.country_code == country_code.upper()
                )
            )
            return [
                ProviderConfig.from_row(
                    row.country_code,
                    row.provider,
                    row.config,
                    row.is_active,
                    row.updated_at,
                )
                for row in result.scalars().all()
            ]


class ProviderRegistry:
    """Resolves the active provider config for a country."""

    def __init__(self, source: ProviderConfigSource, default_country: str = DEFAULT_COUNTRY):
        self.source = source
        self.default_country = default_country

    def normalize_country(self, country_code: Optional[str]) -> str:
        """Accept "LK", "lk", "+94" or "94" and return "LK"."""
        return resolve_country_code(country_code, self.default_country)

    async def list_configs(self, country_code: Optional[str]) -> List[ProviderConfig]:
        """All configs for a country, most recently updated first."""
        country = self.normalize_country(country_code)
        configs = await self.source.list_for_country(country)
        return sorted(configs, key=lambda c: c.updated_at, reverse=True)

    async def resolve(self, country_code: Optional[str]) -> ProviderConfig:
        """
        Get the active provider config for a country.

        Raises:
            ConfigNotFound: If the country has no active provider
        """
        country = self.normalize_country(country_code)
        active = [c for c in await self.list_configs(country) if c.is_active]

        if not active:
            logger.error("No active SMS provider configured", country_code=country)
            raise ConfigNotFound(country)

        if len(active) > 1:
            logger.warning(
                "Multiple active SMS providers for country, using most recent",
                country_code=country,
                providers=[c.provider_name for c in active],
            )

        return active[0]
