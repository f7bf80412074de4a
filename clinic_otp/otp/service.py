"""
OTP Service
===========
Facade wiring generator, store, engine, tickets and sweeper into the
issue / verify / consume operations used by the login routes.
"""

import asyncio
from typing import Dict, Optional, Set
import structlog

from .. import metrics
from ..clock import Clock, SystemClock
from ..config import DeliveryConfig, OTPConfig
from ..delivery.base import DeliveryChannel, NullDelivery
from ..delivery.console import ConsoleDelivery
from ..delivery.http import HttpDelivery
from ..storage.otp_log import DurableOTPLog, OTPLogEntry
from .engine import VerificationEngine, not_found
from .generator import OTPGenerator
from .limiter import AttemptLimiter
from .models import (
    Challenge,
    ChallengeStatus,
    IssueResult,
    VerificationPath,
    VerificationResult,
)
from .store import ChallengeStore
from .sweeper import ChallengeSweeper
from .tickets import LoginTicketBook

logger = structlog.get_logger(__name__)


class OTPService:
    """
    One instance owns all OTP state for a process.

    Example:
        configure_logging_from(config)
        service = OTPService.from_config(config, audit_log=SQLAlchemyOTPLog(factory))
        async with service:
            issued = await service.issue("doc@example.com", {"mobile_number": "+15550100"})
            result = service.verify_by_handle(issued.handle, submitted_code)
    """

    def __init__(
        self,
        config: Optional[OTPConfig] = None,
        clock: Optional[Clock] = None,
        delivery: Optional[DeliveryChannel] = None,
        audit_log: Optional[DurableOTPLog] = None,
    ):
        self.config = config or OTPConfig()
        self.clock = clock or SystemClock()
        self.delivery = delivery or NullDelivery()
        self.audit_log = audit_log

        self.store = ChallengeStore(self.clock)
        self.limiter = AttemptLimiter(self.config.ttl_seconds, self.config.max_attempts)
        self.generator = OTPGenerator(self.store, self.config, self.clock)
        self.engine = VerificationEngine(self.store, self.limiter, self.clock)
        self.tickets = LoginTicketBook(self.clock, self.config.login_ttl_ms)
        self.sweeper = ChallengeSweeper(
            self.store,
            self.limiter,
            interval_seconds=self.config.sweep_interval_seconds,
            clock=self.clock,
        )
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        config: Optional[OTPConfig] = None,
        audit_log: Optional[DurableOTPLog] = None,
        clock: Optional[Clock] = None,
    ) -> "OTPService":
        """
        Build a service with the delivery channel the environment calls for.

        Production posts through the notification service; every other
        environment logs codes to the console.
        """
        config = config or OTPConfig.from_env()
        if config.is_production:
            delivery: DeliveryChannel = HttpDelivery(DeliveryConfig())
        else:
            delivery = ConsoleDelivery(config.environment)
        return cls(config, clock=clock, delivery=delivery, audit_log=audit_log)

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Initialize the delivery channel and start the sweeper."""
        await self.delivery.initialize()
        self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        await self.delivery.close()

    async def __aenter__(self) -> "OTPService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # -- issuance ----------------------------------------------------------

    async def issue(self, identity: str, aux: Optional[Dict[str, str]] = None) -> IssueResult:
        """
        Issue a challenge for identity and try to deliver it.

        The challenge is live as soon as it is stored; delivery and the
        durable log are best effort and only reported through the
        ``delivered`` / ``audited`` flags.
        """
        code, challenge = self.generator.issue(identity, aux)
        expires_at = self.limiter.expires_at(challenge)

        delivered = await self._deliver(challenge, code)
        audited = await self._audit(challenge)

        metrics.record_issue(delivered)
        metrics.OTP_LIVE_CHALLENGES.set(len(self.store))
        return IssueResult(
            handle=challenge.handle,
            ttl_ms=self.config.ttl_ms,
            expires_at=expires_at,
            delivered=delivered,
            audited=audited,
        )

    async def _deliver(self, challenge: Challenge, code: str) -> bool:
        try:
            result = await asyncio.wait_for(
                self.delivery.send_code(
                    challenge.identity, code, dict(challenge.aux), self.config.ttl_seconds,
                ),
                timeout=self.config.side_call_timeout_seconds,
            )
        except Exception as e:
            logger.error(
                "OTP delivery failed",
                channel=self.delivery.name,
                identity=challenge.identity,
                error=str(e) or type(e).__name__,
            )
            return False

        if not result.success:
            logger.warning(
                "OTP not delivered",
                channel=result.channel,
                identity=challenge.identity,
                error=result.error_message,
            )
        return result.success

    async def _audit(self, challenge: Challenge) -> bool:
        if self.audit_log is None:
            return False
        try:
            await asyncio.wait_for(
                self.audit_log.record(challenge, self.limiter.expires_at(challenge)),
                timeout=self.config.side_call_timeout_seconds,
            )
        except Exception as e:
            logger.error(
                "OTP log insert failed",
                handle=challenge.handle[:8],
                error=str(e) or type(e).__name__,
            )
            return False
        return True

    # -- verification ------------------------------------------------------

    def verify_by_handle(self, handle: str, code: str) -> VerificationResult:
        """Verify a code against the challenge addressed by handle."""
        result = self.engine.verify_by_handle(handle, code)
        metrics.record_verification(VerificationPath.HANDLE.value, result.reason.value)
        if result.ok:
            self._spawn_mark_consumed(result.handle)
        return result

    async def verify_by_identity(self, identity: str, code: str) -> VerificationResult:
        """
        Verify a code against the challenge bound to identity.

        On success a login ticket is recorded for identity. When no
        in-memory challenge exists, the most recent durable record within
        the TTL window is rebuilt into the store and verified under the
        same attempt limit.
        """
        path = VerificationPath.IDENTITY
        result = self.engine.verify_by_identity(identity, code)

        if result is None:
            path = VerificationPath.DURABLE
            result = await self._verify_from_durable_log(identity, code)

        metrics.record_verification(path.value, result.reason.value)
        if result.ok:
            self.tickets.mark_verified(identity)
            await self._mark_consumed(result.handle)
        return result

    async def _verify_from_durable_log(self, identity: str, code: str) -> VerificationResult:
        if not identity or not self.config.durable_fallback or self.audit_log is None:
            return not_found()

        entry = await self._latest_logged(identity)
        if entry is None or self.store.is_retired(entry.handle):
            return not_found()

        if self.store.hydrate(entry.to_challenge()):
            logger.info("Challenge restored from OTP log", handle=entry.handle[:8])

        # Hydration may lose a race with a concurrent issue; the engine then
        # sees whichever challenge is live for identity.
        result = self.engine.verify_by_identity(identity, code)
        return result if result is not None else not_found()

    async def _latest_logged(self, identity: str) -> Optional[OTPLogEntry]:
        since = self.limiter.cutoff(self.clock.now())
        try:
            return await asyncio.wait_for(
                self.audit_log.latest_for(identity, since),
                timeout=self.config.fallback_timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "OTP log fallback unavailable",
                identity=identity,
                error=str(e) or type(e).__name__,
            )
            return None

    def _spawn_mark_consumed(self, handle: str) -> None:
        # Handle-path verification is synchronous; flag the durable record
        # in the background when a loop is available.
        if self.audit_log is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._mark_consumed(handle))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _mark_consumed(self, handle: str) -> None:
        if self.audit_log is None:
            return
        try:
            await asyncio.wait_for(
                self.audit_log.mark_consumed(handle, self.clock.now()),
                timeout=self.config.side_call_timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "OTP log update failed",
                handle=handle[:8],
                error=str(e) or type(e).__name__,
            )

    # -- tickets -----------------------------------------------------------

    def mark_verified(self, identity: str) -> None:
        self.tickets.mark_verified(identity)

    def consume(self, identity: str, ttl_ms: Optional[float] = None) -> bool:
        """
        Redeem the login ticket for identity. Always destroys the ticket.

        Args:
            identity: Email, compared case-insensitively
            ttl_ms: Maximum ticket age (defaults to the configured login TTL)
        """
        consumed = self.tickets.consume(identity, ttl_ms)
        metrics.record_ticket(consumed)
        return consumed

    # -- maintenance -------------------------------------------------------

    def status(self, handle: str) -> ChallengeStatus:
        return self.engine.status(handle)

    def sweep(self) -> int:
        """Run one sweep pass now."""
        return self.sweeper.sweep_once()
