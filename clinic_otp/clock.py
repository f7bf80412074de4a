"""
Clock
=====
Injectable time sources so expiry logic never reads the wall clock directly.
"""

from datetime import datetime, timezone


class Clock:
    """Source of timezone-aware UTC timestamps."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
