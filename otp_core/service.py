"""
OTP Service
===========
Facade consumed by the route layer, plus wiring for SQL-backed deployments.

Usage:
    engine = create_async_engine(settings.database_url)
    service = build_otp_service(create_session_factory(engine), settings)

    result = await service.send_otp("0771234567", "LK")
    await service.verify_otp("0771234567", "123456", result.challenge_id)
"""

from typing import Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otp_core.config import OTPSettings
from otp_core.dispatch import DispatchOrchestrator
from otp_core.otp.models import (
    DispatchResult,
    ProviderTestResult,
    TextResult,
    VerificationResult,
)
from otp_core.otp.sql_store import SQLChallengeStore
from otp_core.providers.factory import ProviderFactory
from otp_core.providers.registry import ProviderRegistry, SQLProviderConfigSource
from otp_core.rate_limit.challenge_window import ChallengeRateLimiter
from otp_core.usage import SQLUsageRecorder
from otp_core.verification import VerificationEngine

logger = structlog.get_logger(__name__)


class OTPService:
    """SendOTP / VerifyOTP entry points."""

    def __init__(
        self,
        dispatcher: DispatchOrchestrator,
        verifier: VerificationEngine,
        provider_factory: Optional[ProviderFactory] = None,
    ):
        self.dispatcher = dispatcher
        self.verifier = verifier
        self.provider_factory = provider_factory

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def send_otp(self, phone: str, country_hint: Optional[str] = None) -> DispatchResult:
        return await self.dispatcher.send_otp(phone, country_hint)

    async def verify_otp(
        self,
        phone: str,
        code: str,
        challenge_id: Optional[str] = None,
    ) -> VerificationResult:
        return await self.verifier.verify_otp(phone, code, challenge_id)

    async def send_text(
        self,
        phone: str,
        message: str,
        country_hint: Optional[str] = None,
    ) -> TextResult:
        return await self.dispatcher.send_text(phone, message, country_hint)

    async def test_provider(
        self,
        country_code: str,
        provider_name: str,
        test_number: str,
    ) -> ProviderTestResult:
        return await self.dispatcher.test_provider(country_code, provider_name, test_number)

    async def aclose(self) -> None:
        """Release provider HTTP clients."""
        if self.provider_factory is not None:
            await self.provider_factory.close_all()


def build_otp_service(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Optional[OTPSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OTPService:
    """
    Wire an OTPService on top of the SQL tables.

    Args:
        session_factory: From database.create_session_factory()
        settings: OTP settings, read from the environment when omitted
        transport: Optional httpx transport shared by all adapters

    Returns:
        Ready-to-use OTPService
    """
    settings = settings or OTPSettings()
    store = SQLChallengeStore(session_factory)
    factory = ProviderFactory(timeout=settings.provider_timeout, transport=transport)
    registry = ProviderRegistry(
        SQLProviderConfigSource(session_factory),
        default_country=settings.default_country,
    )
    limiter = ChallengeRateLimiter(
        store,
        rate=settings.rate_limit_max,
        window=settings.rate_limit_window_seconds,
    )
    dispatcher = DispatchOrchestrator(
        registry=registry,
        store=store,
        rate_limiter=limiter,
        adapter_factory=factory,
        settings=settings,
        usage_recorder=SQLUsageRecorder(session_factory),
    )
    verifier = VerificationEngine(store, settings=settings)

    logger.info(
        "OTP service ready",
        default_country=settings.default_country,
        provider_timeout=settings.provider_timeout,
    )
    return OTPService(dispatcher, verifier, provider_factory=factory)
