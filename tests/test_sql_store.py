"""
Tests for the SQLAlchemy-backed store, config source and usage recorder.

Runs against a temporary SQLite database through aiosqlite.
"""

import asyncio
from datetime import timedelta

import httpx
import pytest
from sqlalchemy import func, select

from otp_core.database import get_session
from otp_core.errors import MaxAttemptsExceeded, OtpExpiredOrNotFound, OtpMismatch
from otp_core.models import ProviderConfigRecord, SmsUsageRecord
from otp_core.otp.models import VerificationResult
from otp_core.otp.sql_store import SQLChallengeStore
from otp_core.providers.registry import ProviderRegistry, SQLProviderConfigSource
from otp_core.service import build_otp_service
from otp_core.usage import SQLUsageRecorder
from otp_core.verification import VerificationEngine

from tests.conftest import LK_PHONE, T0, MutableClock, make_challenge


@pytest.fixture
def sql_store(session_factory):
    return SQLChallengeStore(session_factory)


async def add_provider(session_factory, country_code, provider, config, is_active=True, updated_at=T0):
    async with get_session(session_factory) as session:
        session.add(ProviderConfigRecord(
            country_code=country_code,
            provider=provider,
            config=config,
            is_active=is_active,
            created_at=updated_at,
            updated_at=updated_at,
        ))


class TestSQLChallengeStore:
    """Tests for SQLChallengeStore."""

    @pytest.mark.asyncio
    async def test_insert_and_get(self, sql_store):
        """Should round-trip every field with aware timestamps."""
        challenge = make_challenge(challenge_id="otp_a")
        await sql_store.insert(challenge)

        stored = await sql_store.get("otp_a")

        assert stored == challenge
        assert stored.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing(self, sql_store):
        assert await sql_store.get("otp_missing") is None

    @pytest.mark.asyncio
    async def test_count_since(self, sql_store):
        """Should count only challenges inside the window."""
        await sql_store.insert(make_challenge(challenge_id="old", created_at=T0 - timedelta(hours=2)))
        await sql_store.insert(make_challenge(challenge_id="new1", created_at=T0 - timedelta(minutes=5)))
        await sql_store.insert(make_challenge(challenge_id="new2", created_at=T0))
        await sql_store.insert(make_challenge(phone="+14155551234", challenge_id="other", created_at=T0))

        assert await sql_store.count_since(LK_PHONE, T0 - timedelta(hours=1)) == 2

    @pytest.mark.asyncio
    async def test_find_active(self, sql_store):
        """Should return the most recent unexpired, unverified challenge."""
        await sql_store.insert(make_challenge(challenge_id="older", created_at=T0 - timedelta(minutes=2)))
        await sql_store.insert(make_challenge(challenge_id="newer", created_at=T0 - timedelta(minutes=1)))
        await sql_store.insert(make_challenge(challenge_id="expired", created_at=T0 - timedelta(minutes=10)))

        latest = await sql_store.find_active(LK_PHONE, T0)
        by_id = await sql_store.find_active(LK_PHONE, T0, "older")
        expired = await sql_store.find_active(LK_PHONE, T0, "expired")

        assert latest.id == "newer"
        assert by_id.id == "older"
        assert expired is None

    @pytest.mark.asyncio
    async def test_mark_verified_once(self, sql_store):
        """Should flip verified exactly once."""
        await sql_store.insert(make_challenge(challenge_id="otp_a"))

        assert await sql_store.mark_verified("otp_a", T0 + timedelta(seconds=10))
        assert not await sql_store.mark_verified("otp_a", T0 + timedelta(seconds=11))

        stored = await sql_store.get("otp_a")
        assert stored.verified
        assert stored.verified_at == T0 + timedelta(seconds=10)
        assert await sql_store.find_active(LK_PHONE, T0) is None

    @pytest.mark.asyncio
    async def test_mark_verified_expired(self, sql_store):
        await sql_store.insert(make_challenge(challenge_id="otp_a"))
        assert not await sql_store.mark_verified("otp_a", T0 + timedelta(seconds=300))

    @pytest.mark.asyncio
    async def test_increment_attempts(self, sql_store):
        """Should stop counting at max_attempts."""
        await sql_store.insert(make_challenge(challenge_id="otp_a"))

        counts = [await sql_store.increment_attempts("otp_a") for _ in range(4)]

        assert counts == [1, 2, 3, None]
        assert (await sql_store.get("otp_a")).attempts == 3

    @pytest.mark.asyncio
    async def test_mark_verified_after_attempts_spent(self, sql_store):
        """Should refuse to verify once attempts ran out after the lookup."""
        await sql_store.insert(make_challenge(challenge_id="otp_a"))
        snapshot = await sql_store.find_active(LK_PHONE, T0)
        for _ in range(3):
            await sql_store.increment_attempts("otp_a")

        assert snapshot.attempts == 0
        assert not await sql_store.mark_verified("otp_a", T0 + timedelta(seconds=5))
        assert not (await sql_store.get("otp_a")).verified

    @pytest.mark.asyncio
    async def test_parallel_guesses_cannot_exceed_attempts(self, sql_store):
        """Should cap wrong guesses at max_attempts even when sent in parallel."""
        await sql_store.insert(make_challenge(challenge_id="c1", code="654321"))
        engine = VerificationEngine(sql_store, clock=MutableClock(T0 + timedelta(seconds=5)))

        guesses = [f"{100000 + i}" for i in range(20)] + ["654321"]
        results = await asyncio.gather(
            *(engine.verify_otp(LK_PHONE, guess, "c1") for guess in guesses),
            return_exceptions=True,
        )

        mismatches = sum(isinstance(r, OtpMismatch) for r in results)
        unexpected = [
            r for r in results
            if not isinstance(r, (VerificationResult, OtpMismatch, MaxAttemptsExceeded, OtpExpiredOrNotFound))
        ]
        stored = await sql_store.get("c1")

        assert unexpected == []
        assert mismatches <= 3
        assert stored.attempts <= 3
        assert sum(isinstance(r, VerificationResult) for r in results) <= 1

    @pytest.mark.asyncio
    async def test_increment_active_attempts(self, sql_store):
        """Should only touch active challenges of the phone."""
        await sql_store.insert(make_challenge(challenge_id="a1"))
        await sql_store.insert(make_challenge(challenge_id="a2"))
        await sql_store.insert(make_challenge(challenge_id="gone", created_at=T0 - timedelta(hours=1)))
        await sql_store.insert(make_challenge(phone="+14155551234", challenge_id="other"))

        touched = await sql_store.increment_active_attempts(LK_PHONE, T0)

        assert touched == 2
        assert (await sql_store.get("gone")).attempts == 0
        assert (await sql_store.get("other")).attempts == 0

    @pytest.mark.asyncio
    async def test_concurrent_verification(self, sql_store):
        """Should let exactly one concurrent verification win."""
        await sql_store.insert(make_challenge(challenge_id="otp_a", code="654321"))
        engine = VerificationEngine(sql_store, clock=MutableClock(T0 + timedelta(seconds=5)))

        results = await asyncio.gather(
            engine.verify_otp(LK_PHONE, "654321", "otp_a"),
            engine.verify_otp(LK_PHONE, "654321", "otp_a"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, VerificationResult) for r in results) == 1
        assert sum(isinstance(r, OtpExpiredOrNotFound) for r in results) == 1


class TestSQLProviderConfigSource:
    """Tests for provider configs read from the database."""

    @pytest.mark.asyncio
    async def test_resolve_with_fallback(self, session_factory):
        """Should parse fallback settings out of the config blob."""
        await add_provider(session_factory, "LK", "hutch_mobile", {
            "username": "u",
            "password": "p",
            "fallbackProvider": "twilio",
            "fallbackConfig": {"accountSid": "AC1"},
        })
        registry = ProviderRegistry(SQLProviderConfigSource(session_factory))

        config = await registry.resolve("+94")

        assert config.provider_name == "hutch_mobile"
        assert config.fallback_provider_name == "twilio"
        assert config.fallback_config == {"accountSid": "AC1"}
        assert config.updated_at == T0

    @pytest.mark.asyncio
    async def test_most_recent_active_row(self, session_factory):
        await add_provider(session_factory, "LK", "twilio", {}, updated_at=T0)
        await add_provider(session_factory, "LK", "vonage", {}, updated_at=T0 + timedelta(days=1))
        await add_provider(session_factory, "LK", "aws", {}, is_active=False, updated_at=T0 + timedelta(days=2))
        registry = ProviderRegistry(SQLProviderConfigSource(session_factory))

        config = await registry.resolve("LK")
        assert config.provider_name == "vonage"


class TestSQLUsageRecorder:
    """Tests for SQLUsageRecorder."""

    @pytest.mark.asyncio
    async def test_record(self, session_factory):
        """Should write one analytics row with month and year."""
        recorder = SQLUsageRecorder(session_factory, clock=MutableClock(T0))

        assert await recorder.record("LK", "hutch_mobile", 0.5)

        async with get_session(session_factory) as session:
            rows = (await session.execute(select(SmsUsageRecord))).scalars().all()

        assert len(rows) == 1
        assert rows[0].country_code == "LK"
        assert rows[0].provider == "hutch_mobile"
        assert rows[0].cost == 0.5
        assert rows[0].month == 1
        assert rows[0].year == 2026


class TestOTPService:
    """End-to-end tests for the SQL-wired service."""

    @pytest.mark.asyncio
    async def test_send_and_verify(self, session_factory, settings):
        """Should send through a configured gateway and verify the code."""
        bodies = []

        def handler(request):
            bodies.append(request.url.params["message"])
            return httpx.Response(200, json={"messageId": "gw-1"})

        await add_provider(session_factory, "LK", "local", {
            "endpoint": "https://sms.local/send",
            "method": "GET",
        })

        async with build_otp_service(
            session_factory,
            settings,
            transport=httpx.MockTransport(handler),
        ) as service:
            sent = await service.send_otp("0771234567", "LK")
            code = (await SQLChallengeStore(session_factory).get(sent.challenge_id)).code

            assert sent.provider == "local"
            assert code in bodies[0]

            result = await service.verify_otp("0771234567", code, sent.challenge_id)
            assert result.verified

            with pytest.raises(OtpExpiredOrNotFound):
                await service.verify_otp("0771234567", code, sent.challenge_id)

        async with get_session(session_factory) as session:
            usage_rows = (await session.execute(
                select(func.count()).select_from(SmsUsageRecord)
            )).scalar_one()
        assert usage_rows == 1

    @pytest.mark.asyncio
    async def test_send_text_and_provider_test(self, session_factory, settings):
        await add_provider(session_factory, "LK", "local", {"logOnly": True})

        async with build_otp_service(session_factory, settings) as service:
            text = await service.send_text(LK_PHONE, "hello")
            checked = await service.test_provider("LK", "local", "0771234567")

        assert text.provider == "local"
        assert text.message_id.startswith("local_log_")
        assert checked.success
