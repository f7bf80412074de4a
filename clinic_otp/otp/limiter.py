"""
Attempt Limiter
===============
Expiry and guess-count policy applied to every challenge, whichever path
located it.
"""

from datetime import datetime, timedelta
from typing import Optional

from .models import Challenge, VerificationReason


class AttemptLimiter:
    """
    Policy evaluated against a challenge before its code is compared.

    Order matters: expiry first, then exhaustion.
    """

    def __init__(self, ttl_seconds: int = 300, max_attempts: int = 3):
        """
        Args:
            ttl_seconds: Validity window of a challenge
            max_attempts: Wrong guesses allowed before the challenge is dropped
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_attempts = max_attempts

    def is_expired(self, challenge: Challenge, now: datetime) -> bool:
        return now - challenge.created_at > self.ttl

    def is_exhausted(self, challenge: Challenge) -> bool:
        return challenge.attempts >= self.max_attempts

    def check(self, challenge: Challenge, now: datetime) -> Optional[VerificationReason]:
        """
        Return the reason the challenge can no longer be verified, or None
        when its code may be compared.
        """
        if self.is_expired(challenge, now):
            return VerificationReason.EXPIRED
        if self.is_exhausted(challenge):
            return VerificationReason.ATTEMPTS_EXCEEDED
        return None

    def remaining(self, challenge: Challenge) -> int:
        return max(0, self.max_attempts - challenge.attempts)

    def expires_at(self, challenge: Challenge) -> datetime:
        return challenge.created_at + self.ttl

    def cutoff(self, now: datetime) -> datetime:
        """Challenges created before this instant are expired."""
        return now - self.ttl
