"""
Persistent, escalating rate limiter for authentication attempts.

Failed attempts are counted per hashed identifier in the ``rate_limits``
table. Two independent policies apply:

* a base sliding window (``max_attempts`` failures within ``window_seconds``)
* an escalation lockout, set once ``escalation_threshold`` failures land
  within ``escalation_window_seconds``; it stays active for the whole
  escalation window measured from the last failed attempt.

Every write is a compare-and-swap on the record's ``version`` column, so
concurrent callers for the same identifier (parallel tabs, other devices)
never lose increments. An expired lockout is cleared the first time it is
observed, by a check or by an increment, before the record is re-evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from loginguard.core import Clock, ErrorCode, get_logger, security_error, utcnow
from loginguard.db.models import RateLimitRecord
from loginguard.db.repositories import rate_limit as repo
from loginguard.security.hashing import hash_identifier

logger = get_logger(__name__)

LOCKOUT_REASON = "Account temporarily locked due to repeated failed attempts"
WINDOW_REASON = "Too many failed attempts"


@dataclass(frozen=True)
class RateLimitConfig:
    """Limits for one rate limiter (durations in seconds)."""

    max_attempts: int = 5
    window_seconds: float = 15 * 60
    escalation_threshold: int = 10
    escalation_window_seconds: float = 60 * 60
    cas_retries: int = 5


@dataclass(frozen=True)
class RateLimitStatus:
    """Result of a limit check."""

    is_limited: bool
    time_remaining: float | None = None
    reason: str | None = None
    is_locked_out: bool = False


@dataclass(frozen=True)
class AttemptState:
    """Counter state of one identifier, as stored."""

    count: int
    first_attempt: datetime
    last_attempt: datetime
    escalation_count: int
    escalation_started_at: datetime
    is_locked_out: bool

    @classmethod
    def from_record(cls, record: RateLimitRecord) -> AttemptState:
        return cls(
            count=record.count,
            first_attempt=record.first_attempt,
            last_attempt=record.last_attempt,
            escalation_count=record.escalation_count,
            escalation_started_at=record.escalation_started_at,
            is_locked_out=record.is_locked_out,
        )

    def as_values(self) -> dict:
        return {
            "count": self.count,
            "first_attempt": self.first_attempt,
            "last_attempt": self.last_attempt,
            "escalation_count": self.escalation_count,
            "escalation_started_at": self.escalation_started_at,
            "is_locked_out": self.is_locked_out,
        }


@dataclass(frozen=True)
class AttemptInfo:
    """Read-only projection of an identifier's counters for UI feedback."""

    count: int = 0
    remaining_attempts: int = 0
    first_attempt: datetime | None = None
    last_attempt: datetime | None = None
    escalation_count: int = 0
    is_locked_out: bool = False


def _elapsed(now: datetime, since: datetime) -> float:
    return (now - since).total_seconds()


def lockout_expired(state: AttemptState, now: datetime, config: RateLimitConfig) -> bool:
    return state.is_locked_out and _elapsed(now, state.last_attempt) >= config.escalation_window_seconds


def first_failure(now: datetime, config: RateLimitConfig) -> AttemptState:
    return AttemptState(
        count=1,
        first_attempt=now,
        last_attempt=now,
        escalation_count=1,
        escalation_started_at=now,
        is_locked_out=config.escalation_threshold <= 1,
    )


def advance_failure(
    state: AttemptState | None, now: datetime, config: RateLimitConfig
) -> AttemptState:
    """
    Apply one failed attempt to ``state`` and return the new state.

    Args:
        state: Current stored state, or None for a first failure.
        now: Time of the failed attempt.
        config: Limits to apply.
    """
    if state is None or lockout_expired(state, now, config):
        return first_failure(now, config)

    if state.is_locked_out:
        # Still locked: keep counting, the lockout runs from this attempt
        return AttemptState(
            count=state.count + 1,
            first_attempt=state.first_attempt,
            last_attempt=now,
            escalation_count=state.escalation_count + 1,
            escalation_started_at=state.escalation_started_at,
            is_locked_out=True,
        )

    if _elapsed(now, state.first_attempt) >= config.window_seconds:
        count, first_attempt = 1, now
    else:
        count, first_attempt = state.count + 1, state.first_attempt

    if _elapsed(now, state.escalation_started_at) >= config.escalation_window_seconds:
        escalation_count, escalation_started_at = 1, now
    else:
        escalation_count = state.escalation_count + 1
        escalation_started_at = state.escalation_started_at

    return AttemptState(
        count=count,
        first_attempt=first_attempt,
        last_attempt=now,
        escalation_count=escalation_count,
        escalation_started_at=escalation_started_at,
        is_locked_out=escalation_count >= config.escalation_threshold,
    )


def evaluate(state: AttemptState | None, now: datetime, config: RateLimitConfig) -> RateLimitStatus:
    """Decide whether ``state`` blocks an attempt at ``now``."""
    if state is None:
        return RateLimitStatus(is_limited=False)

    if state.is_locked_out:
        remaining = config.escalation_window_seconds - _elapsed(now, state.last_attempt)
        if remaining > 0:
            return RateLimitStatus(
                is_limited=True,
                time_remaining=remaining,
                reason=LOCKOUT_REASON,
                is_locked_out=True,
            )

    elapsed = _elapsed(now, state.first_attempt)
    if state.count >= config.max_attempts and elapsed < config.window_seconds:
        return RateLimitStatus(
            is_limited=True,
            time_remaining=config.window_seconds - elapsed,
            reason=WINDOW_REASON,
        )
    return RateLimitStatus(is_limited=False)


class RateLimiter:
    """
    Rate limiter bound to a store (session factory), limits and a clock.

    Each public operation opens its own short-lived session and runs it in
    the thread pool, so the event loop is never blocked on the store.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: RateLimitConfig | None = None,
        clock: Clock = utcnow,
    ):
        self._session_factory = session_factory
        self.config = config or RateLimitConfig()
        self._clock = clock

    async def is_rate_limited(self, identifier: str) -> RateLimitStatus:
        """Check whether ``identifier`` is currently blocked."""
        return await run_in_threadpool(self._is_rate_limited, hash_identifier(identifier))

    async def record_failed_attempt(self, identifier: str) -> AttemptState:
        """Count one failed attempt for ``identifier``."""
        return await run_in_threadpool(self._record_failed_attempt, hash_identifier(identifier))

    async def clear_attempts(self, identifier: str) -> bool:
        """Delete the record for ``identifier`` (after a successful sign-in)."""
        return await run_in_threadpool(self._clear_attempts, hash_identifier(identifier))

    async def get_attempt_info(self, identifier: str) -> AttemptInfo:
        """Current counters for ``identifier``; zero-count when absent."""
        return await run_in_threadpool(self._get_attempt_info, hash_identifier(identifier))

    def _is_rate_limited(self, key: str) -> RateLimitStatus:
        with self._session_factory() as db:
            for _ in range(self.config.cas_retries):
                record = repo.get_rate_limit(db, key)
                if record is None:
                    return RateLimitStatus(is_limited=False)

                state = AttemptState.from_record(record)
                now = self._clock()
                if not lockout_expired(state, now, self.config):
                    return evaluate(state, now, self.config)

                cleared = AttemptState(
                    count=0,
                    first_attempt=state.first_attempt,
                    last_attempt=state.last_attempt,
                    escalation_count=0,
                    escalation_started_at=state.escalation_started_at,
                    is_locked_out=False,
                )
                if repo.compare_and_swap_rate_limit(db, key, record.version, cleared.as_values()):
                    db.commit()
                    logger.info("Escalation lockout expired", data={"key": key})
                    return evaluate(cleared, now, self.config)
                db.rollback()
                db.expire_all()

        raise security_error(
            "Rate-limit record kept changing while clearing an expired lockout",
            code=ErrorCode.CONCURRENT_UPDATE,
            context="rate_limiter.is_rate_limited",
        )

    def _record_failed_attempt(self, key: str) -> AttemptState:
        with self._session_factory() as db:
            for attempt in range(self.config.cas_retries):
                record = repo.get_rate_limit(db, key)
                now = self._clock()

                if record is None:
                    state = first_failure(now, self.config)
                    if repo.insert_rate_limit(db, key, **state.as_values()):
                        db.commit()
                        self._log_state(key, state)
                        return state
                else:
                    state = advance_failure(AttemptState.from_record(record), now, self.config)
                    if repo.compare_and_swap_rate_limit(db, key, record.version, state.as_values()):
                        db.commit()
                        self._log_state(key, state)
                        return state
                    db.rollback()

                db.expire_all()
                logger.debug(
                    "Concurrent rate-limit update, retrying",
                    data={"key": key, "attempt": attempt + 1},
                )

        raise security_error(
            "Could not record failed attempt after concurrent updates",
            code=ErrorCode.CONCURRENT_UPDATE,
            context="rate_limiter.record_failed_attempt",
        )

    def _clear_attempts(self, key: str) -> bool:
        with self._session_factory() as db:
            deleted = repo.delete_rate_limit(db, key)
            db.commit()
        if deleted:
            logger.info("Rate-limit record cleared", data={"key": key})
        return deleted

    def _get_attempt_info(self, key: str) -> AttemptInfo:
        with self._session_factory() as db:
            record = repo.get_rate_limit(db, key)
            if record is None:
                return AttemptInfo(remaining_attempts=self.config.max_attempts)
            now = self._clock()
            state = AttemptState.from_record(record)
            if lockout_expired(state, now, self.config):
                return AttemptInfo(remaining_attempts=self.config.max_attempts)
            count = state.count
            if not state.is_locked_out and _elapsed(now, state.first_attempt) >= self.config.window_seconds:
                count = 0
            return AttemptInfo(
                count=count,
                remaining_attempts=0 if state.is_locked_out else max(0, self.config.max_attempts - count),
                first_attempt=state.first_attempt,
                last_attempt=state.last_attempt,
                escalation_count=state.escalation_count,
                is_locked_out=state.is_locked_out,
            )

    def _log_state(self, key: str, state: AttemptState) -> None:
        if state.is_locked_out:
            logger.warning(
                "Escalation lockout active",
                data={"key": key, "escalation_count": state.escalation_count},
            )
        else:
            logger.info(
                "Failed attempt recorded",
                data={"key": key, "count": state.count},
            )
