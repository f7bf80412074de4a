"""
Verification Engine
===================
Checks submitted codes against in-memory challenges, located either by
handle or by bound identity. Both paths share one policy.
"""

from datetime import datetime
from typing import Optional, Tuple
import structlog

from ..clock import Clock, SystemClock
from .limiter import AttemptLimiter
from .models import (
    Challenge,
    ChallengeStatus,
    VerificationReason,
    VerificationResult,
)
from .store import ChallengeStore

logger = structlog.get_logger(__name__)

NOT_FOUND_MESSAGE = "Invalid or expired OTP"
EXPIRED_MESSAGE = "OTP has expired. Please request a new one."
EXHAUSTED_MESSAGE = "Maximum attempts exceeded. Please request a new OTP."
VERIFIED_MESSAGE = "OTP verified successfully"


def not_found() -> VerificationResult:
    return VerificationResult(
        ok=False, reason=VerificationReason.NOT_FOUND, message=NOT_FOUND_MESSAGE,
    )


class VerificationEngine:
    """Applies the attempt limiter and code comparison atomically per challenge."""

    def __init__(
        self,
        store: ChallengeStore,
        limiter: AttemptLimiter,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.limiter = limiter
        self.clock = clock or SystemClock()

    def verify_by_handle(self, handle: str, code: str) -> VerificationResult:
        """
        Verify a code against the challenge addressed by handle.

        Returns:
            VerificationResult; never raises for a bad guess
        """
        if not handle:
            return not_found()
        now = self.clock.now()
        return self.store.evaluate(handle, lambda c: self._judge(c, code, now))

    def verify_by_identity(self, identity: str, code: str) -> Optional[VerificationResult]:
        """
        Verify a code against the newest live challenge bound to identity.

        Returns:
            VerificationResult, or None when no in-memory challenge exists
            for identity (the caller decides whether to fall back)
        """
        if not identity:
            return None
        now = self.clock.now()

        def judge(challenge: Optional[Challenge]) -> Tuple[Optional[VerificationResult], bool]:
            if challenge is None:
                return None, False
            return self._judge(challenge, code, now)

        return self.store.evaluate_identity(identity, judge)

    def status(self, handle: str) -> ChallengeStatus:
        """Report on a challenge without touching it."""
        challenge = self.store.get(handle) if handle else None
        if challenge is None:
            return ChallengeStatus(exists=False)

        now = self.clock.now()
        remaining = self.limiter.expires_at(challenge) - now
        return ChallengeStatus(
            exists=True,
            is_expired=self.limiter.is_expired(challenge, now),
            remaining_ms=max(0, int(remaining.total_seconds() * 1000)),
            attempts=challenge.attempts,
            max_attempts=self.limiter.max_attempts,
        )

    def _judge(
        self,
        challenge: Optional[Challenge],
        code: str,
        now: datetime,
    ) -> Tuple[VerificationResult, bool]:
        # Runs under the store lock; the bool tells the store to delete.
        if challenge is None:
            return not_found(), False

        blocked = self.limiter.check(challenge, now)
        if blocked is VerificationReason.EXPIRED:
            logger.warning("OTP expired", handle=challenge.handle[:8])
            return VerificationResult(
                ok=False, reason=blocked, message=EXPIRED_MESSAGE,
            ), True
        if blocked is VerificationReason.ATTEMPTS_EXCEEDED:
            logger.warning("OTP attempts exhausted", handle=challenge.handle[:8])
            return VerificationResult(
                ok=False, reason=blocked, message=EXHAUSTED_MESSAGE,
            ), True

        if not challenge.matches(code):
            challenge.attempts += 1
            remaining = self.limiter.remaining(challenge)
            logger.warning(
                "Invalid OTP attempt",
                handle=challenge.handle[:8],
                remaining=remaining,
            )
            return VerificationResult(
                ok=False,
                reason=VerificationReason.CODE_MISMATCH,
                message=f"Invalid OTP. {remaining} attempts remaining.",
                remaining_attempts=remaining,
            ), False

        logger.info("OTP verified successfully", handle=challenge.handle[:8])
        return VerificationResult(
            ok=True,
            reason=VerificationReason.OK,
            message=VERIFIED_MESSAGE,
            identity=challenge.identity,
            aux=dict(challenge.aux),
            handle=challenge.handle,
        ), True
