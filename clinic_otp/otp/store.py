"""
Challenge Store
===============
In-memory, lock-protected mapping of handle -> Challenge.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, TypeVar
import structlog

from ..clock import Clock, SystemClock
from ..errors import StoreCorruptionError
from .models import Challenge

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# A judge inspects the challenge (or None) under the store lock and returns
# (result, remove).
Judge = Callable[[Optional[Challenge]], Tuple[T, bool]]


class ChallengeStore:
    """
    Concurrency-safe challenge map.

    Every read-decide-mutate sequence runs under a single lock through
    ``evaluate`` / ``evaluate_identity``, so two concurrent guesses against
    the same handle are serialized and the attempt counter never loses an
    update. Safe to call from threads and from asyncio tasks alike; nothing
    awaits while the lock is held.

    Handles that leave the store are remembered as *retired* for one TTL
    window so a durable-log fallback cannot bring them back.

    Process restart loses everything; challenges are short-lived and
    re-issuable.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._challenges: Dict[str, Challenge] = {}
        self._retired: Dict[str, datetime] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)

    def __contains__(self, handle: str) -> bool:
        with self._lock:
            return handle in self._challenges

    def get(self, handle: str) -> Optional[Challenge]:
        """Return a snapshot of the challenge, or None."""
        with self._lock:
            challenge = self._challenges.get(handle)
            return replace(challenge) if challenge else None

    def put(self, challenge: Challenge) -> List[Challenge]:
        """
        Insert a challenge, evicting any other challenge for the same identity.

        A handle clash overwrites the existing entry.

        Returns:
            The superseded challenges
        """
        with self._lock:
            superseded = [
                c for c in self._challenges.values()
                if c.identity == challenge.identity and c.handle != challenge.handle
            ]
            for old in superseded:
                self._remove(old.handle)
            self._challenges[challenge.handle] = challenge
            self._retired.pop(challenge.handle, None)

        if superseded:
            logger.info(
                "Superseded prior challenges",
                identity=challenge.identity,
                count=len(superseded),
            )
        return superseded

    def delete(self, handle: str) -> bool:
        """Remove a challenge. Returns True if it was present."""
        with self._lock:
            return self._remove(handle) is not None

    def scan(self) -> List[Challenge]:
        """Snapshot of every live challenge."""
        with self._lock:
            return [replace(c) for c in self._challenges.values()]

    def latest_for(self, identity: str) -> Optional[Challenge]:
        """Snapshot of the newest challenge bound to identity."""
        with self._lock:
            challenge = self._latest_for(identity)
            return replace(challenge) if challenge else None

    def is_retired(self, handle: str) -> bool:
        with self._lock:
            return handle in self._retired

    def evaluate(self, handle: str, judge: Judge) -> T:
        """
        Run judge against the challenge for handle under the store lock.

        The challenge passed to judge is the live record; judge may mutate
        it (e.g. increment attempts). When judge asks for removal the
        challenge is deleted and retired before the lock is released.
        """
        with self._lock:
            challenge = self._challenges.get(handle)
            if challenge is not None and challenge.handle != handle:
                raise StoreCorruptionError(
                    "Challenge stored under a foreign handle", handle=handle,
                )
            return self._apply(challenge, judge)

    def evaluate_identity(self, identity: str, judge: Judge) -> T:
        """Same as ``evaluate`` but locates the newest challenge for identity."""
        with self._lock:
            return self._apply(self._latest_for(identity), judge)

    def hydrate(self, challenge: Challenge) -> bool:
        """
        Insert a challenge rebuilt from an external record.

        Refused when the handle is retired or already live, or when the
        identity already has a live challenge.
        """
        with self._lock:
            if challenge.handle in self._retired or challenge.handle in self._challenges:
                return False
            if self._latest_for(challenge.identity) is not None:
                return False
            self._challenges[challenge.handle] = challenge
            return True

    def evict_older_than(self, cutoff: datetime) -> int:
        """
        Delete every challenge created before cutoff and forget retired
        handles retired before it.

        Returns:
            Number of challenges removed
        """
        with self._lock:
            stale = [
                handle for handle, c in self._challenges.items()
                if c.created_at < cutoff
            ]
            for handle in stale:
                self._remove(handle)
            for handle in [h for h, at in self._retired.items() if at < cutoff]:
                del self._retired[handle]
            return len(stale)

    def _apply(self, challenge: Optional[Challenge], judge: Judge) -> T:
        result, remove = judge(challenge)
        if remove and challenge is not None:
            self._remove(challenge.handle)
        return result

    def _latest_for(self, identity: str) -> Optional[Challenge]:
        candidates = [c for c in self._challenges.values() if c.identity == identity]
        if not candidates:
            return None
        return max(candidates, key=lambda c: c.created_at)

    def _remove(self, handle: str) -> Optional[Challenge]:
        challenge = self._challenges.pop(handle, None)
        if challenge is not None:
            self._retired[handle] = self._clock.now()
        return challenge
