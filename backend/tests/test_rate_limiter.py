"""
Tests for the persistent rate limiter.

Covers the sliding window, the escalation lockout, clearing, attempt info
and compare-and-swap retries under a concurrent writer.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select, update

from loginguard.core import ErrorCode, SecurityError
from loginguard.db.models import RateLimitRecord
from loginguard.db.repositories import rate_limit as rate_limit_repo
from loginguard.security.hashing import hash_identifier
from loginguard.security.rate_limiter import (
    LOCKOUT_REASON,
    WINDOW_REASON,
    AttemptState,
    RateLimitConfig,
    RateLimiter,
    advance_failure,
    evaluate,
)

IDENTIFIER = "email:admin@example.com"


@pytest.fixture
def limiter(session_factory, clock):
    return RateLimiter(session_factory, RateLimitConfig(), clock=clock)


def stored_record(session_factory, identifier=IDENTIFIER):
    with session_factory() as db:
        return db.execute(
            select(RateLimitRecord).where(RateLimitRecord.key == hash_identifier(identifier))
        ).scalar_one_or_none()


async def fail(limiter, clock, times, every_seconds=10, identifier=IDENTIFIER):
    state = None
    for _ in range(times):
        state = await limiter.record_failed_attempt(identifier)
        clock.advance(seconds=every_seconds)
    return state


class TestRateLimitCheck:
    """Tests for is_rate_limited."""

    @pytest.mark.asyncio
    async def test_unknown_identifier_not_limited(self, limiter):
        status = await limiter.is_rate_limited("email:nobody@example.com")
        assert status.is_limited is False
        assert status.time_remaining is None

    @pytest.mark.asyncio
    async def test_below_max_attempts_not_limited(self, limiter, clock):
        await fail(limiter, clock, 4)
        status = await limiter.is_rate_limited(IDENTIFIER)
        assert status.is_limited is False

    @pytest.mark.asyncio
    async def test_max_attempts_within_window_limits(self, limiter, clock):
        await fail(limiter, clock, 5)  # 50 seconds elapsed since the first

        status = await limiter.is_rate_limited(IDENTIFIER)

        assert status.is_limited is True
        assert status.reason == WINDOW_REASON
        assert status.is_locked_out is False
        assert 0 < status.time_remaining <= 900
        assert status.time_remaining == pytest.approx(900 - 50)

    @pytest.mark.asyncio
    async def test_limit_lifts_when_window_elapses(self, limiter, clock):
        await fail(limiter, clock, 5)
        clock.advance(minutes=15)
        status = await limiter.is_rate_limited(IDENTIFIER)
        assert status.is_limited is False

    @pytest.mark.asyncio
    async def test_identifiers_are_independent(self, limiter, clock):
        await fail(limiter, clock, 5)
        status = await limiter.is_rate_limited("email:other@example.com")
        assert status.is_limited is False


class TestRecordFailedAttempt:
    """Tests for record_failed_attempt."""

    @pytest.mark.asyncio
    async def test_first_failure_creates_hashed_record(self, limiter, clock, session_factory):
        state = await limiter.record_failed_attempt(IDENTIFIER)

        assert state.count == 1
        assert state.first_attempt == clock.now
        record = stored_record(session_factory)
        assert record is not None
        assert record.key.startswith("lim_")
        assert "admin@example.com" not in record.key
        assert record.version == 1

    @pytest.mark.asyncio
    async def test_failures_increment_within_window(self, limiter, clock, session_factory):
        start = clock.now
        state = await fail(limiter, clock, 3)
        assert state.count == 3
        assert state.first_attempt == start
        assert stored_record(session_factory).version == 3

    @pytest.mark.asyncio
    async def test_window_expiry_resets_count(self, limiter, clock):
        await fail(limiter, clock, 3)
        clock.advance(minutes=15)
        restart = clock.now

        state = await limiter.record_failed_attempt(IDENTIFIER)

        assert state.count == 1
        assert state.first_attempt == restart

    @pytest.mark.asyncio
    async def test_escalation_lockout(self, limiter, clock, session_factory):
        # Two base windows worth of failures inside one escalation window
        await fail(limiter, clock, 5)
        clock.advance(minutes=16)
        state = await fail(limiter, clock, 5, every_seconds=0)

        assert state.count == 5
        assert state.escalation_count == 10
        assert state.is_locked_out is True
        assert stored_record(session_factory).is_locked_out is True

        status = await limiter.is_rate_limited(IDENTIFIER)
        assert status.is_limited is True
        assert status.is_locked_out is True
        assert status.reason == LOCKOUT_REASON
        assert status.time_remaining == pytest.approx(3600)

    @pytest.mark.asyncio
    async def test_lockout_outlasts_base_window(self, limiter, clock):
        await fail(limiter, clock, 5)
        clock.advance(minutes=16)
        await fail(limiter, clock, 5, every_seconds=0)

        clock.advance(minutes=30)  # base window long gone
        status = await limiter.is_rate_limited(IDENTIFIER)

        assert status.is_limited is True
        assert status.time_remaining == pytest.approx(30 * 60)

    @pytest.mark.asyncio
    async def test_expired_lockout_is_cleared_on_check(self, limiter, clock, session_factory):
        await fail(limiter, clock, 5)
        clock.advance(minutes=16)
        await fail(limiter, clock, 5, every_seconds=0)
        clock.advance(hours=1)

        status = await limiter.is_rate_limited(IDENTIFIER)

        assert status.is_limited is False
        record = stored_record(session_factory)
        assert record.is_locked_out is False
        assert record.count == 0
        assert record.escalation_count == 0

    @pytest.mark.asyncio
    async def test_expired_lockout_is_cleared_on_increment(self, limiter, clock):
        await fail(limiter, clock, 5)
        clock.advance(minutes=16)
        await fail(limiter, clock, 5, every_seconds=0)
        clock.advance(hours=1)

        state = await limiter.record_failed_attempt(IDENTIFIER)

        assert state.is_locked_out is False
        assert state.count == 1
        assert state.escalation_count == 1

    @pytest.mark.asyncio
    async def test_retries_after_concurrent_update(self, limiter, session_factory, monkeypatch):
        await limiter.record_failed_attempt(IDENTIFIER)
        key = hash_identifier(IDENTIFIER)
        original = rate_limit_repo.compare_and_swap_rate_limit
        calls = []

        def racing_cas(db, key_, expected_version, values):
            calls.append(expected_version)
            if len(calls) == 1:
                # Another writer lands between our read and our write
                with session_factory() as other:
                    other.execute(
                        update(RateLimitRecord)
                        .where(RateLimitRecord.key == key)
                        .values(
                            count=RateLimitRecord.count + 1,
                            escalation_count=RateLimitRecord.escalation_count + 1,
                            version=RateLimitRecord.version + 1,
                        )
                    )
                    other.commit()
            return original(db, key_, expected_version, values)

        monkeypatch.setattr(rate_limit_repo, "compare_and_swap_rate_limit", racing_cas)

        state = await limiter.record_failed_attempt(IDENTIFIER)

        assert calls == [1, 2]
        assert state.count == 3
        record = stored_record(session_factory)
        assert record.count == 3
        assert record.version == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_budget(self, session_factory, clock, monkeypatch):
        limiter = RateLimiter(session_factory, RateLimitConfig(cas_retries=2), clock=clock)
        await limiter.record_failed_attempt(IDENTIFIER)
        monkeypatch.setattr(
            rate_limit_repo, "compare_and_swap_rate_limit", lambda *args, **kwargs: False
        )

        with pytest.raises(SecurityError) as exc_info:
            await limiter.record_failed_attempt(IDENTIFIER)

        assert exc_info.value.code == ErrorCode.CONCURRENT_UPDATE


class TestClearAndInfo:
    """Tests for clear_attempts and get_attempt_info."""

    @pytest.mark.asyncio
    async def test_clear_lifts_limit_immediately(self, limiter, clock, session_factory):
        await fail(limiter, clock, 5)
        assert (await limiter.is_rate_limited(IDENTIFIER)).is_limited is True

        assert await limiter.clear_attempts(IDENTIFIER) is True

        assert (await limiter.is_rate_limited(IDENTIFIER)).is_limited is False
        assert stored_record(session_factory) is None

    @pytest.mark.asyncio
    async def test_clear_unknown_identifier(self, limiter):
        assert await limiter.clear_attempts(IDENTIFIER) is False

    @pytest.mark.asyncio
    async def test_info_defaults_when_absent(self, limiter):
        info = await limiter.get_attempt_info(IDENTIFIER)
        assert info.count == 0
        assert info.remaining_attempts == 5
        assert info.is_locked_out is False
        assert info.first_attempt is None

    @pytest.mark.asyncio
    async def test_info_reports_counters(self, limiter, clock):
        start = clock.now
        await fail(limiter, clock, 2)

        info = await limiter.get_attempt_info(IDENTIFIER)

        assert info.count == 2
        assert info.remaining_attempts == 3
        assert info.first_attempt == start

    @pytest.mark.asyncio
    async def test_info_after_window_expiry(self, limiter, clock):
        await fail(limiter, clock, 2)
        clock.advance(minutes=20)
        info = await limiter.get_attempt_info(IDENTIFIER)
        assert info.count == 0
        assert info.remaining_attempts == 5


class TestPolicyFunctions:
    """Tests for the pure state transition and evaluation."""

    config = RateLimitConfig()
    t0 = datetime(2026, 1, 1, 0, 0, 0)

    def state(self, **overrides):
        values = dict(
            count=1,
            first_attempt=self.t0,
            last_attempt=self.t0,
            escalation_count=1,
            escalation_started_at=self.t0,
            is_locked_out=False,
        )
        values.update(overrides)
        return AttemptState(**values)

    def test_first_failure(self):
        state = advance_failure(None, self.t0, self.config)
        assert (state.count, state.escalation_count, state.is_locked_out) == (1, 1, False)

    def test_escalation_window_restarts(self):
        previous = self.state(count=4, escalation_count=9)
        later = self.t0 + timedelta(hours=2)
        state = advance_failure(previous, later, self.config)
        assert state.escalation_count == 1
        assert state.escalation_started_at == later
        assert state.is_locked_out is False

    def test_locked_state_keeps_counting(self):
        previous = self.state(count=10, escalation_count=10, is_locked_out=True)
        later = self.t0 + timedelta(minutes=5)
        state = advance_failure(previous, later, self.config)
        assert state.is_locked_out is True
        assert state.count == 11
        assert state.last_attempt == later

    def test_threshold_of_one_locks_immediately(self):
        config = RateLimitConfig(max_attempts=1, escalation_threshold=1)
        assert advance_failure(None, self.t0, config).is_locked_out is True

    def test_evaluate_expired_lockout_falls_back_to_window(self):
        state = self.state(count=5, is_locked_out=True)
        status = evaluate(state, self.t0 + timedelta(hours=1), self.config)
        assert status.is_limited is False
