"""
Shared fixtures for the OTP core tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from clinic_otp.clock import Clock
from clinic_otp.config import OTPConfig
from clinic_otp.delivery.base import DeliveryChannel, DeliveryResult
from clinic_otp.errors import AuditLogError, DeliveryError
from clinic_otp.otp.engine import VerificationEngine
from clinic_otp.otp.generator import OTPGenerator
from clinic_otp.otp.limiter import AttemptLimiter
from clinic_otp.otp.models import Challenge
from clinic_otp.otp.service import OTPService
from clinic_otp.otp.store import ChallengeStore
from clinic_otp.storage.otp_log import DurableOTPLog, OTPLogEntry


class FakeClock(Clock):
    """Manually advanced clock."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2026, 1, 1, 9, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> None:
        self._now += timedelta(**kwargs)


class RecordingDelivery(DeliveryChannel):
    """Captures codes instead of sending them."""

    name = "recording"

    def __init__(self, fail: bool = False, raise_error: bool = False):
        self.fail = fail
        self.raise_error = raise_error
        self.sent: List[Tuple[str, str, Dict[str, str]]] = []

    async def send_code(self, identity, code, aux, ttl_seconds) -> DeliveryResult:
        if self.raise_error:
            raise DeliveryError("SMTP unreachable", channel=self.name)
        self.sent.append((identity, code, aux))
        if self.fail:
            return DeliveryResult(success=False, channel=self.name, error_message="rejected")
        return DeliveryResult(success=True, channel=self.name)

    def last_code_for(self, identity: str) -> str:
        for sent_to, code, _ in reversed(self.sent):
            if sent_to == identity:
                return code
        raise AssertionError(f"no code sent to {identity}")


class MemoryOTPLog(DurableOTPLog):
    """DurableOTPLog kept in a list; can be told to fail or stall."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.entries: List[OTPLogEntry] = []
        self.fail = fail
        self.delay = delay

    async def _maybe_misbehave(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise AuditLogError("database unavailable")

    async def record(self, challenge: Challenge, expires_at: datetime) -> None:
        await self._maybe_misbehave()
        self.entries.append(OTPLogEntry(
            handle=challenge.handle,
            identity=challenge.identity,
            code_hash=challenge.code_hash,
            salt=challenge.salt,
            created_at=challenge.created_at,
            expires_at=expires_at,
            aux=dict(challenge.aux),
        ))

    async def latest_for(self, identity: str, since: datetime) -> Optional[OTPLogEntry]:
        await self._maybe_misbehave()
        matches = [
            e for e in self.entries
            if e.identity == identity and e.created_at > since and e.consumed_at is None
        ]
        return max(matches, key=lambda e: e.created_at) if matches else None

    async def mark_consumed(self, handle: str, at: datetime) -> None:
        await self._maybe_misbehave()
        for entry in self.entries:
            if entry.handle == handle and entry.consumed_at is None:
                entry.consumed_at = at


def wrong_code(code: str) -> str:
    """A code guaranteed to differ from code."""
    return "000000" if code != "000000" else "111111"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return OTPConfig(sweep_interval_seconds=0.01)


@pytest.fixture
def store(clock):
    return ChallengeStore(clock)


@pytest.fixture
def limiter(config):
    return AttemptLimiter(config.ttl_seconds, config.max_attempts)


@pytest.fixture
def generator(store, config, clock):
    return OTPGenerator(store, config, clock)


@pytest.fixture
def engine(store, limiter, clock):
    return VerificationEngine(store, limiter, clock)


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def otp_log():
    return MemoryOTPLog()


@pytest.fixture
def service(config, clock, delivery, otp_log):
    return OTPService(config, clock=clock, delivery=delivery, audit_log=otp_log)
