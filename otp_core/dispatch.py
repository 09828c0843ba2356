"""
OTP Dispatch
============
Issues challenges: normalize, rate limit, resolve provider, deliver with a
single fallback, then persist.
"""

from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from otp_core.config import OTPSettings
from otp_core.errors import OTPError, ProviderUnavailable
from otp_core.otp.codes import compose_message, generate_challenge_id, generate_otp
from otp_core.otp.models import (
    Challenge,
    DispatchResult,
    ProviderTestResult,
    TextResult,
    utcnow,
)
from otp_core.otp.store import ChallengeStore
from otp_core.phone.countries import detect_country, resolve_country_code
from otp_core.phone.normalizer import canonicalize, mask_phone
from otp_core.providers.base import BaseProviderAdapter, SendResult
from otp_core.providers.registry import ProviderConfig, ProviderRegistry
from otp_core.rate_limit.challenge_window import ChallengeRateLimiter
from otp_core.usage import UsageRecorder

logger = structlog.get_logger(__name__)

# (provider name, provider config, country code) -> adapter
AdapterFactory = Callable[[str, Dict[str, Any], str], Awaitable[BaseProviderAdapter]]


class DispatchOrchestrator:
    """
    Implements SendOTP.

    Providers are tried sequentially, never raced: the primary first and,
    only if it fails, the configured fallback once.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: ChallengeStore,
        rate_limiter: ChallengeRateLimiter,
        adapter_factory: AdapterFactory,
        settings: Optional[OTPSettings] = None,
        usage_recorder: Optional[UsageRecorder] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = registry
        self.store = store
        self.rate_limiter = rate_limiter
        self.adapter_factory = adapter_factory
        self.settings = settings or OTPSettings()
        self.usage_recorder = usage_recorder
        self.clock = clock or utcnow

    def _country_for(self, phone: str, country_hint: Optional[str]) -> str:
        if country_hint:
            return resolve_country_code(country_hint, self.settings.default_country)
        return detect_country(phone, self.settings.default_country)

    async def _send_via(
        self,
        name: str,
        provider_config: Dict[str, Any],
        country_code: str,
        phone: str,
        body: str,
    ) -> SendResult:
        """Send through one provider; any failure surfaces as ProviderUnavailable."""
        try:
            adapter = await self.adapter_factory(name, provider_config, country_code)
            return await adapter.send(phone, body)
        except OTPError:
            raise
        except Exception as e:
            logger.exception(
                "SMS provider raised unexpectedly",
                provider=name,
                country_code=country_code,
            )
            raise ProviderUnavailable(
                name,
                details={"reason": f"{type(e).__name__}: {e}"},
            ) from e

    async def deliver(self, config: ProviderConfig, phone: str, body: str) -> SendResult:
        """
        Send through the primary provider, falling back once if configured.

        Raises:
            ProviderUnavailable: If every attempted provider failed
        """
        try:
            return await self._send_via(
                config.provider_name,
                config.config,
                config.country_code,
                phone,
                body,
            )
        except ProviderUnavailable as e:
            if not config.has_fallback:
                raise
            logger.warning(
                "Primary SMS provider failed, trying fallback",
                country_code=config.country_code,
                provider=config.provider_name,
                fallback=config.fallback_provider_name,
                details=e.details,
            )

        return await self._send_via(
            config.fallback_provider_name,
            config.fallback_config or config.config,
            config.country_code,
            phone,
            body,
        )

    async def send_otp(self, phone: str, country_hint: Optional[str] = None) -> DispatchResult:
        """
        Issue a new challenge and deliver its code by SMS.

        Args:
            phone: Raw or canonical phone number
            country_hint: 2-letter country code or calling code

        Returns:
            DispatchResult with the challenge id, expiry and provider used

        Raises:
            InvalidPhoneFormat, RateLimitExceeded, ConfigNotFound, ProviderUnavailable
        """
        canonical = canonicalize(phone, country_hint)
        await self.rate_limiter.check(canonical)

        country = self._country_for(canonical, country_hint)
        config = await self.registry.resolve(country)

        code = generate_otp()
        challenge_id = generate_challenge_id()
        body = compose_message(code, self.settings.message_template)

        result = await self.deliver(config, canonical, body)

        now = self.clock()
        await self.store.insert(Challenge(
            id=challenge_id,
            phone=canonical,
            code=code,
            country_code=country,
            created_at=now,
            expires_at=now + timedelta(seconds=self.settings.expiry_seconds),
            provider_used=result.provider,
            attempts=0,
            max_attempts=self.settings.max_attempts,
        ))

        if self.usage_recorder is not None:
            await self.usage_recorder.record(country, result.provider, result.cost)

        logger.info(
            "OTP sent",
            challenge_id=challenge_id,
            phone=mask_phone(canonical),
            country_code=country,
            provider=result.provider,
        )

        return DispatchResult(
            challenge_id=challenge_id,
            expires_in=self.settings.expiry_seconds,
            provider=result.provider,
            phone=canonical,
        )

    async def send_text(
        self,
        phone: str,
        message: str,
        country_hint: Optional[str] = None,
    ) -> TextResult:
        """
        Send a free-form message through the country's provider.

        Admin diagnostics only: no challenge is created and no rate limit
        applies.
        """
        canonical = canonicalize(phone, country_hint)
        country = self._country_for(canonical, country_hint)
        config = await self.registry.resolve(country)

        result = await self.deliver(config, canonical, message)
        logger.info(
            "Diagnostic SMS sent",
            phone=mask_phone(canonical),
            country_code=country,
            provider=result.provider,
        )
        return TextResult(
            provider=result.provider,
            message_id=result.message_id,
            cost=result.cost,
            phone=canonical,
        )

    async def test_provider(
        self,
        country_code: str,
        provider_name: str,
        test_number: str,
    ) -> ProviderTestResult:
        """
        Send a test SMS through one named provider of a country.

        Never raises for OTP errors; the outcome is reported in the result.
        """
        timestamp = self.clock()
        try:
            configs = await self.registry.list_configs(country_code)
            config = next(
                (c for c in configs if c.provider_name.lower() == provider_name.lower()),
                None,
            )
            if config is None:
                config = await self.registry.resolve(country_code)

            canonical = canonicalize(test_number, country_code)
            result = await self._send_via(
                provider_name,
                config.config,
                config.country_code,
                canonical,
                f"Test SMS from Request Marketplace - {timestamp.isoformat()}",
            )
        except OTPError as e:
            logger.warning(
                "Provider test failed",
                provider=provider_name,
                country_code=country_code,
                error=e.kind.value,
            )
            return ProviderTestResult(
                success=False,
                provider=provider_name,
                timestamp=timestamp,
                error=e.message,
            )

        return ProviderTestResult(
            success=True,
            provider=provider_name,
            timestamp=timestamp,
            message_id=result.message_id,
            cost=result.cost,
        )
