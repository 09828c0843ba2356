"""
Shared fixtures for the otp_core test suite.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from otp_core.config import OTPSettings
from otp_core.database import create_async_engine, create_session_factory, create_tables
from otp_core.dispatch import DispatchOrchestrator
from otp_core.errors import ProviderUnavailable
from otp_core.otp.models import Challenge
from otp_core.otp.store import InMemoryChallengeStore
from otp_core.providers.base import BaseProviderAdapter, SendResult
from otp_core.providers.registry import (
    InMemoryProviderConfigSource,
    ProviderConfig,
    ProviderRegistry,
)
from otp_core.rate_limit.challenge_window import ChallengeRateLimiter
from otp_core.usage import InMemoryUsageRecorder
from otp_core.verification import VerificationEngine

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
LK_PHONE = "+94771234567"


class MutableClock:
    """Clock the tests can move forward."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeAdapter(BaseProviderAdapter):
    """Adapter that records sends and either succeeds or fails."""

    def __init__(
        self,
        name: str,
        fail: bool = False,
        cost: float = 0.01,
        error: Optional[Exception] = None,
    ):
        super().__init__({})
        self.name = name
        self.fail = fail
        self.error = error
        self.cost = cost
        self.sent: List[Dict[str, str]] = []

    async def send(self, to: str, body: str) -> SendResult:
        self.sent.append({"to": to, "body": body})
        if self.error is not None:
            raise self.error
        if self.fail:
            raise ProviderUnavailable(self.name, details={"reason": "forced failure"})
        return SendResult(
            message_id=f"{self.name}-{len(self.sent)}",
            cost=self.cost,
            provider=self.name,
        )

    @property
    def last_code(self) -> Optional[str]:
        if not self.sent:
            return None
        match = re.search(r"(\d{6})", self.sent[-1]["body"])
        return match.group(1) if match else None


class FakeAdapterFactory:
    """Returns pre-built fake adapters by provider name."""

    def __init__(self, *adapters: FakeAdapter):
        self.adapters = {a.name: a for a in adapters}
        self.requests: List[str] = []
        self.countries: List[str] = []

    async def __call__(self, name: str, config: dict, country_code: str = "") -> BaseProviderAdapter:
        self.requests.append(name)
        self.countries.append(country_code)
        return self.adapters[name]


def make_challenge(
    phone: str = LK_PHONE,
    created_at: datetime = T0,
    code: str = "123456",
    challenge_id: Optional[str] = None,
    expiry_seconds: int = 300,
    **kwargs,
) -> Challenge:
    return Challenge(
        id=challenge_id or f"otp_{phone}_{created_at.timestamp()}_{code}",
        phone=phone,
        code=code,
        country_code="LK",
        created_at=created_at,
        expires_at=created_at + timedelta(seconds=expiry_seconds),
        provider_used=kwargs.pop("provider_used", "primary"),
        **kwargs,
    )


def lk_config(provider: str = "primary", fallback: Optional[str] = None, **kwargs) -> ProviderConfig:
    return ProviderConfig(
        country_code=kwargs.pop("country_code", "LK"),
        provider_name=provider,
        config=kwargs.pop("config", {}),
        fallback_provider_name=fallback,
        fallback_config={} if fallback else None,
        updated_at=kwargs.pop("updated_at", T0),
        **kwargs,
    )


@pytest.fixture
def settings():
    return OTPSettings(
        expiry_seconds=300,
        max_attempts=3,
        rate_limit_max=10,
        rate_limit_window_seconds=3600,
        provider_timeout=15.0,
        default_country="LK",
    )


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def store():
    return InMemoryChallengeStore()


@pytest.fixture
def primary():
    return FakeAdapter("primary")


@pytest.fixture
def backup():
    return FakeAdapter("backup")


@pytest.fixture
def config_source():
    return InMemoryProviderConfigSource([lk_config("primary")])


@pytest.fixture
def registry(config_source):
    return ProviderRegistry(config_source)


@pytest.fixture
def usage():
    return InMemoryUsageRecorder()


@pytest.fixture
def adapter_factory(primary, backup):
    return FakeAdapterFactory(primary, backup)


@pytest.fixture
def dispatcher(registry, store, adapter_factory, settings, usage, clock):
    limiter = ChallengeRateLimiter(
        store,
        rate=settings.rate_limit_max,
        window=settings.rate_limit_window_seconds,
        clock=clock,
    )
    return DispatchOrchestrator(
        registry=registry,
        store=store,
        rate_limiter=limiter,
        adapter_factory=adapter_factory,
        settings=settings,
        usage_recorder=usage,
        clock=clock,
    )


@pytest.fixture
def verifier(store, settings, clock):
    return VerificationEngine(store, settings=settings, clock=clock)


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'otp.db'}")
    await create_tables(engine)
    yield create_session_factory(engine)
    await engine.dispose()
