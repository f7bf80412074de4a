"""
Tests for the SQLAlchemy-backed durable OTP log.
"""

from datetime import timedelta

import pytest
import pytest_asyncio

from clinic_otp.config import OTPConfig
from clinic_otp.otp.codes import hash_code
from clinic_otp.otp.models import Challenge, VerificationReason
from clinic_otp.otp.service import OTPService
from clinic_otp.storage.database import (
    close_engine,
    create_async_engine,
    create_session_factory,
    create_tables,
)
from clinic_otp.storage.otp_log import SQLAlchemyOTPLog
from conftest import RecordingDelivery


@pytest_asyncio.fixture
async def sql_log(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/otp.db")
    await create_tables(engine)
    yield SQLAlchemyOTPLog(create_session_factory(engine))
    await close_engine(engine)


def make_challenge(clock, handle="a" * 32, identity="doc@example.com", code="123456"):
    return Challenge(
        handle=handle,
        code_hash=hash_code(handle, code, "salt"),
        salt="salt",
        identity=identity,
        created_at=clock.now(),
        aux={"name": "Dr. Rao"},
    )


class TestSQLAlchemyOTPLog:
    """Tests for record / latest_for / mark_consumed."""

    @pytest.mark.asyncio
    async def test_record_and_read_back(self, sql_log, clock):
        challenge = make_challenge(clock)
        await sql_log.record(challenge, clock.now() + timedelta(minutes=5))

        entry = await sql_log.latest_for("doc@example.com", clock.now() - timedelta(minutes=5))

        assert entry.handle == challenge.handle
        assert entry.code_hash == challenge.code_hash
        assert entry.aux == {"name": "Dr. Rao"}
        assert entry.created_at == clock.now()
        assert entry.consumed_at is None
        assert entry.to_challenge().matches("123456")
        assert entry.to_challenge().attempts == 0

    @pytest.mark.asyncio
    async def test_latest_wins(self, sql_log, clock):
        await sql_log.record(make_challenge(clock, handle="a" * 32), clock.now())
        clock.advance(seconds=30)
        await sql_log.record(make_challenge(clock, handle="b" * 32), clock.now())

        entry = await sql_log.latest_for("doc@example.com", clock.now() - timedelta(minutes=5))

        assert entry.handle == "b" * 32

    @pytest.mark.asyncio
    async def test_since_excludes_old_records(self, sql_log, clock):
        await sql_log.record(make_challenge(clock), clock.now())
        clock.advance(minutes=6)

        assert await sql_log.latest_for("doc@example.com", clock.now() - timedelta(minutes=5)) is None

    @pytest.mark.asyncio
    async def test_identity_must_match(self, sql_log, clock):
        await sql_log.record(make_challenge(clock), clock.now())

        assert await sql_log.latest_for("other@example.com", clock.now() - timedelta(minutes=5)) is None

    @pytest.mark.asyncio
    async def test_consumed_records_are_skipped(self, sql_log, clock):
        challenge = make_challenge(clock)
        await sql_log.record(challenge, clock.now())

        await sql_log.mark_consumed(challenge.handle, clock.now())

        assert await sql_log.latest_for("doc@example.com", clock.now() - timedelta(minutes=5)) is None


class TestRestartRecovery:
    """The identity path survives a process restart through the SQL log."""

    @pytest.mark.asyncio
    async def test_verify_after_restart(self, sql_log, clock):
        config = OTPConfig()
        first = OTPService(config, clock=clock, delivery=RecordingDelivery(), audit_log=sql_log)
        issued = await first.issue("doc@example.com")
        code = first.delivery.last_code_for("doc@example.com")
        assert issued.audited is True

        restarted = OTPService(config, clock=clock, audit_log=sql_log)
        result = await restarted.verify_by_identity("doc@example.com", code)

        assert result.ok is True
        assert restarted.consume("doc@example.com") is True

        again = OTPService(config, clock=clock, audit_log=sql_log)
        result = await again.verify_by_identity("doc@example.com", code)
        assert result.reason == VerificationReason.NOT_FOUND
