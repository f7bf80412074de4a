"""
Tests for the verification engine and attempt limiter.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from clinic_otp.otp.models import VerificationReason
from conftest import wrong_code


class TestVerifyByHandle:
    """Tests for handle-path verification."""

    def test_end_to_end_scenario(self, generator, engine, monkeypatch):
        """Mismatch, then success, then the handle is gone."""
        import clinic_otp.otp.generator as generator_module

        monkeypatch.setattr(generator_module, "generate_code", lambda length: "123456")
        monkeypatch.setattr(generator_module, "generate_handle", lambda nbytes: "h1")

        code, challenge = generator.issue("a@b.com")
        assert (code, challenge.handle) == ("123456", "h1")

        result = engine.verify_by_handle("h1", "654321")
        assert result.reason == VerificationReason.CODE_MISMATCH
        assert result.remaining_attempts == 2
        assert result.ok is False

        result = engine.verify_by_handle("h1", "123456")
        assert result.ok is True
        assert result.reason == VerificationReason.OK
        assert result.identity == "a@b.com"

        result = engine.verify_by_handle("h1", "123456")
        assert result.reason == VerificationReason.NOT_FOUND

    def test_success_returns_aux_and_deletes(self, generator, engine, store):
        code, challenge = generator.issue("doc@example.com", {"mobile_number": "+15550100"})

        result = engine.verify_by_handle(challenge.handle, code)

        assert result.ok is True
        assert result.aux == {"mobile_number": "+15550100"}
        assert store.get(challenge.handle) is None

    def test_unknown_handle(self, engine):
        result = engine.verify_by_handle("deadbeef" * 4, "123456")

        assert result.reason == VerificationReason.NOT_FOUND
        assert result.message == "Invalid or expired OTP"

    def test_empty_handle(self, engine):
        assert engine.verify_by_handle("", "123456").reason == VerificationReason.NOT_FOUND

    def test_attempts_count_down_then_exhaust(self, generator, engine):
        """Three wrong guesses report 2, 1, 0 remaining; the next is refused."""
        code, challenge = generator.issue("doc@example.com")
        bad = wrong_code(code)

        remaining = [engine.verify_by_handle(challenge.handle, bad).remaining_attempts for _ in range(3)]
        assert remaining == [2, 1, 0]

        result = engine.verify_by_handle(challenge.handle, code)
        assert result.ok is False
        assert result.reason == VerificationReason.ATTEMPTS_EXCEEDED
        assert result.message == "Maximum attempts exceeded. Please request a new OTP."

        result = engine.verify_by_handle(challenge.handle, code)
        assert result.reason == VerificationReason.NOT_FOUND

    def test_expired_regardless_of_code(self, generator, engine, clock, store):
        code, challenge = generator.issue("doc@example.com")
        clock.advance(minutes=5, seconds=1)

        result = engine.verify_by_handle(challenge.handle, code)

        assert result.reason == VerificationReason.EXPIRED
        assert result.message == "OTP has expired. Please request a new one."
        assert store.get(challenge.handle) is None

    def test_expiry_checked_before_exhaustion(self, generator, engine, clock):
        code, challenge = generator.issue("doc@example.com")
        for _ in range(3):
            engine.verify_by_handle(challenge.handle, wrong_code(code))
        clock.advance(minutes=6)

        assert engine.verify_by_handle(challenge.handle, code).reason == VerificationReason.EXPIRED

    def test_exactly_at_ttl_is_still_valid(self, generator, engine, clock):
        code, challenge = generator.issue("doc@example.com")
        clock.advance(minutes=5)

        assert engine.verify_by_handle(challenge.handle, code).ok is True

    def test_mismatch_message_never_echoes_code(self, generator, engine):
        code, challenge = generator.issue("doc@example.com")

        result = engine.verify_by_handle(challenge.handle, wrong_code(code))

        assert code not in result.message
        assert result.message == "Invalid OTP. 2 attempts remaining."
        assert "code" not in result.to_dict()

    def test_padded_code_counts_as_a_wrong_guess(self, generator, engine):
        code, challenge = generator.issue("doc@example.com")

        result = engine.verify_by_handle(challenge.handle, f" {code} ")

        assert result.reason == VerificationReason.CODE_MISMATCH
        assert engine.verify_by_handle(challenge.handle, code).ok is True


class TestVerifyByIdentity:
    """Tests for identity-path verification against in-memory challenges."""

    def test_success(self, generator, engine, store):
        code, challenge = generator.issue("doc@example.com")

        result = engine.verify_by_identity("doc@example.com", code)

        assert result.ok is True
        assert result.identity == "doc@example.com"
        assert store.get(challenge.handle) is None

    def test_no_challenge_returns_none(self, engine):
        assert engine.verify_by_identity("nobody@example.com", "123456") is None
        assert engine.verify_by_identity("", "123456") is None

    def test_shares_attempt_counter_with_handle_path(self, generator, engine):
        code, challenge = generator.issue("doc@example.com")
        bad = wrong_code(code)

        assert engine.verify_by_handle(challenge.handle, bad).remaining_attempts == 2
        assert engine.verify_by_identity("doc@example.com", bad).remaining_attempts == 1
        assert engine.verify_by_handle(challenge.handle, bad).remaining_attempts == 0
        assert engine.verify_by_identity("doc@example.com", code).reason == VerificationReason.ATTEMPTS_EXCEEDED

    def test_reissue_invalidates_previous_code(self, generator, engine, clock):
        old_code, old = generator.issue("doc@example.com")
        clock.advance(seconds=30)
        new_code, new = generator.issue("doc@example.com")

        assert engine.verify_by_handle(old.handle, old_code).reason == VerificationReason.NOT_FOUND
        assert engine.verify_by_identity("doc@example.com", new_code).ok is True

    def test_prefers_latest_challenge(self, store, engine, clock):
        """If two challenges share an identity, the newer one is used."""
        from clinic_otp.otp.codes import hash_code
        from clinic_otp.otp.models import Challenge

        older = Challenge("a" * 32, hash_code("a" * 32, "111111", "s"), "s", "doc@example.com", clock.now())
        clock.advance(seconds=10)
        newer = Challenge("b" * 32, hash_code("b" * 32, "222222", "s"), "s", "doc@example.com", clock.now())
        store._challenges[older.handle] = older
        store._challenges[newer.handle] = newer

        assert engine.verify_by_identity("doc@example.com", "111111").reason == VerificationReason.CODE_MISMATCH
        assert engine.verify_by_identity("doc@example.com", "222222").ok is True


class TestStatus:
    """Tests for non-destructive status lookups."""

    def test_status_of_live_challenge(self, generator, engine, clock):
        code, challenge = generator.issue("doc@example.com")
        engine.verify_by_handle(challenge.handle, wrong_code(code))
        clock.advance(minutes=1)

        status = engine.status(challenge.handle)

        assert status.exists is True
        assert status.is_expired is False
        assert status.remaining_ms == 240_000
        assert status.attempts == 1
        assert status.max_attempts == 3

    def test_status_of_expired_challenge_does_not_delete(self, generator, engine, clock, store):
        _, challenge = generator.issue("doc@example.com")
        clock.advance(minutes=10)

        status = engine.status(challenge.handle)

        assert status.is_expired is True
        assert status.remaining_ms == 0
        assert store.get(challenge.handle) is not None

    def test_status_of_missing_handle(self, engine):
        assert engine.status("missing").exists is False


class TestConcurrency:
    """Concurrent guesses against one handle."""

    @pytest.mark.parametrize("workers", [4, 8, 16])
    def test_concurrent_wrong_guesses_capped(self, generator, engine, workers):
        """No lost updates: at most max_attempts guesses are ever compared."""
        code, challenge = generator.issue("doc@example.com")
        bad = wrong_code(code)
        barrier = threading.Barrier(workers)

        def guess(_):
            barrier.wait()
            return engine.verify_by_handle(challenge.handle, bad)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(guess, range(workers)))

        reasons = [r.reason for r in results]
        mismatches = [r.remaining_attempts for r in results if r.reason == VerificationReason.CODE_MISMATCH]
        assert sorted(mismatches) == [0, 1, 2]
        assert reasons.count(VerificationReason.ATTEMPTS_EXCEEDED) == 1
        assert reasons.count(VerificationReason.NOT_FOUND) == workers - 4

    def test_concurrent_correct_guesses_single_success(self, generator, engine):
        code, challenge = generator.issue("doc@example.com")
        barrier = threading.Barrier(8)

        def guess(i):
            barrier.wait()
            if i % 2:
                return engine.verify_by_handle(challenge.handle, code)
            return engine.verify_by_identity("doc@example.com", code)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(guess, range(8)))

        successes = [r for r in results if r is not None and r.ok]
        assert len(successes) == 1
