"""
Tests for the background sweeper.
"""

import asyncio

import pytest

from clinic_otp import metrics
from clinic_otp.otp.sweeper import ChallengeSweeper


class TestChallengeSweeper:
    """Tests for ChallengeSweeper."""

    def test_sweep_once_removes_only_expired(self, generator, store, limiter, clock):
        _, old = generator.issue("old@example.com")
        clock.advance(minutes=4)
        _, fresh = generator.issue("fresh@example.com")
        clock.advance(minutes=1, seconds=1)

        sweeper = ChallengeSweeper(store, limiter, clock=clock)
        before = metrics.OTP_REGISTRY.get_sample_value("otp_swept_total") or 0

        assert sweeper.sweep_once() == 1
        assert store.get(old.handle) is None
        assert store.get(fresh.handle) is not None
        assert metrics.OTP_REGISTRY.get_sample_value("otp_swept_total") == before + 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self, generator, store, limiter, clock):
        """The loop sweeps on its interval and stops cleanly."""
        generator.issue("doc@example.com")
        clock.advance(minutes=6)

        sweeper = ChallengeSweeper(store, limiter, interval_seconds=0.01, clock=clock)
        sweeper.start()
        assert sweeper.running

        for _ in range(100):
            if len(store) == 0:
                break
            await asyncio.sleep(0.01)

        await sweeper.stop()

        assert len(store) == 0
        assert sweeper.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_without_start(self, store, limiter, clock):
        sweeper = ChallengeSweeper(store, limiter, interval_seconds=10, clock=clock)

        await sweeper.stop()

        sweeper.start()
        task = sweeper._task
        sweeper.start()
        assert sweeper._task is task

        await sweeper.stop()
        assert task.cancelled()
