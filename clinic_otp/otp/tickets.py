"""
Login Tickets
=============
Single-use "just passed an OTP check" assertions, redeemed by a separate
login step.
"""

import threading
from datetime import timedelta
from typing import Dict, Optional
import structlog

from ..clock import Clock, SystemClock
from .models import LoginTicket

logger = structlog.get_logger(__name__)

DEFAULT_TICKET_TTL_MS = 5 * 60 * 1000


def normalize_identity(identity: Optional[str]) -> str:
    return str(identity or "").strip().lower()


class LoginTicketBook:
    """
    At most one outstanding ticket per identity.

    A read for login purposes always deletes the ticket, so one verified
    code can gate exactly one login attempt.
    """

    def __init__(self, clock: Optional[Clock] = None, default_ttl_ms: int = DEFAULT_TICKET_TTL_MS):
        self._clock = clock or SystemClock()
        self.default_ttl_ms = default_ttl_ms
        self._tickets: Dict[str, LoginTicket] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tickets)

    def mark_verified(self, identity: str) -> Optional[LoginTicket]:
        """Create or overwrite the ticket for identity."""
        key = normalize_identity(identity)
        if not key:
            return None
        ticket = LoginTicket(identity=key, verified_at=self._clock.now())
        with self._lock:
            self._tickets[key] = ticket
        logger.info("Login ticket recorded", identity=key)
        return ticket

    def consume(self, identity: str, ttl_ms: Optional[float] = None) -> bool:
        """
        Destructively read the ticket for identity.

        Args:
            identity: Email (compared case-insensitively)
            ttl_ms: Maximum ticket age; non-positive or None means the default

        Returns:
            True if a ticket existed and was still fresh
        """
        key = normalize_identity(identity)
        if not key:
            return False

        with self._lock:
            ticket = self._tickets.pop(key, None)
        if ticket is None:
            return False

        ttl = ttl_ms if ttl_ms and ttl_ms > 0 else self.default_ttl_ms
        fresh = self._clock.now() - ticket.verified_at <= timedelta(milliseconds=ttl)
        if not fresh:
            logger.warning("Stale login ticket discarded", identity=key)
        return fresh
