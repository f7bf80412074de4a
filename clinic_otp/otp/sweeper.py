"""
Challenge Sweeper
=================
Background task that evicts expired challenges to bound memory use.
"""

import asyncio
from typing import Optional
import structlog

from .. import metrics
from ..clock import Clock, SystemClock
from .limiter import AttemptLimiter
from .store import ChallengeStore

logger = structlog.get_logger(__name__)


class ChallengeSweeper:
    """
    Periodic eviction pass with an owned start/stop lifecycle.

    Verification re-checks expiry on every access, so a missed or
    interrupted sweep only costs memory.
    """

    def __init__(
        self,
        store: ChallengeStore,
        limiter: AttemptLimiter,
        interval_seconds: float = 120.0,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.limiter = limiter
        self.interval_seconds = interval_seconds
        self.clock = clock or SystemClock()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        """Run one eviction pass. Returns the number of challenges removed."""
        removed = self.store.evict_older_than(self.limiter.cutoff(self.clock.now()))
        metrics.record_sweep(removed, len(self.store))
        if removed:
            logger.info("Expired challenges swept", removed=removed, live=len(self.store))
        return removed

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Challenge sweeper started", interval=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Challenge sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Challenge sweep failed")
