"""
Idle-session timer.

State machine::

    IDLE --sign-in--> ACTIVE --warning delay--> WARNING --timeout--> EXPIRED
                        ^                          |
                        +---- activity / extend ---+

While a session is authenticated two callbacks are scheduled on the event
loop: the warning and the expiry. Qualifying user activity (throttled) or an
explicit ``extend_session()`` cancels both and re-arms them from "now".
Expiry cancels both handles before doing anything else, then signs the user
out and invokes ``on_timeout``.

The loop is only used through ``time()`` and ``call_later()`` so tests can
drive the timer with a fake loop.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from loginguard.core import MetricsRegistry, get_logger
from loginguard.security.activity import ActivityBus, is_interaction

if TYPE_CHECKING:
    from loginguard.auth.identity import Identity, IdentityProvider

logger = get_logger(__name__)

ARMED_GAUGE = "armed_session_timers"


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionTimerConfig:
    timeout_minutes: float = 30
    warning_minutes: float = 5
    throttle_seconds: float = 2.0

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_minutes * 60

    @property
    def warning_delay_seconds(self) -> float:
        """
        Delay from (re)arming until the warning fires.

        Always strictly between zero and the timeout: when the configured
        warning lead does not fit, the warning moves to one minute before
        expiry, or to half the timeout for sessions of a minute or less.
        """
        timeout = self.timeout_seconds
        delay = (self.timeout_minutes - self.warning_minutes) * 60
        if 0 < delay < timeout:
            return delay
        if timeout > 60:
            return timeout - 60
        return timeout / 2


class SessionTimer:
    """
    Warn-then-expire idle timer for one authenticated session.

    Args:
        config: Timeout, warning lead and activity throttle.
        on_warning: Called once when the warning delay elapses.
        on_timeout: Called after expiry and sign-out; may be a coroutine function.
        sign_out: Coroutine function that ends the session on expiry.
        loop: Scheduler exposing ``time()`` and ``call_later()``; defaults to
            the running asyncio loop.
        metrics: Registry for the armed-timer gauge.
    """

    def __init__(
        self,
        config: SessionTimerConfig | None = None,
        *,
        on_warning: Callable[[], Any] | None = None,
        on_timeout: Callable[[], Any] | None = None,
        sign_out: Callable[[], Awaitable[None]] | None = None,
        loop: Any = None,
        metrics: MetricsRegistry | None = None,
    ):
        self.config = config or SessionTimerConfig()
        self.on_warning = on_warning
        self.on_timeout = on_timeout
        self._sign_out = sign_out
        self._loop = loop
        self._metrics = metrics

        self._state = SessionState.IDLE
        self._warning_handle: asyncio.TimerHandle | None = None
        self._expiry_handle: asyncio.TimerHandle | None = None
        self._last_reset_at: float | None = None
        self._last_activity_reset_at: float | None = None
        self._expiry_task: asyncio.Future | None = None

        # Same reference for add and remove
        self._activity_listener = self.handle_activity
        self._bus: ActivityBus | None = None
        self._unsubscribe_auth: Callable[[], None] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_armed(self) -> bool:
        return self._expiry_handle is not None

    @property
    def last_reset_at(self) -> float | None:
        """Loop time of the most recent (re)arm, None before the first."""
        return self._last_reset_at

    @property
    def expiry_task(self) -> asyncio.Future | None:
        return self._expiry_task

    def start(self) -> None:
        """Begin timing an authenticated session."""
        self._state = SessionState.ACTIVE
        self._last_activity_reset_at = None
        self._arm()
        logger.debug("Session timer started", data={"timeout_s": self.config.timeout_seconds})

    def reset(self) -> bool:
        """
        Re-arm both timers from now.

        Returns:
            False if no session is being timed.
        """
        if self._state not in (SessionState.ACTIVE, SessionState.WARNING):
            return False
        self._state = SessionState.ACTIVE
        self._arm()
        return True

    def extend_session(self) -> bool:
        """Explicit user request to stay signed in."""
        extended = self.reset()
        if extended:
            logger.info("Session extended")
        return extended

    def stop(self) -> None:
        """Disarm on sign-out; an expired session keeps its EXPIRED state."""
        self._cancel_timers()
        if self._state is not SessionState.EXPIRED:
            self._state = SessionState.IDLE

    def handle_activity(self, event_type: str = "click") -> bool:
        """
        Activity signal from the user.

        Resets are throttled: at most one per ``throttle_seconds``.

        Returns:
            True if the timers were re-armed.
        """
        if not is_interaction(event_type):
            return False
        if self._state not in (SessionState.ACTIVE, SessionState.WARNING):
            return False
        now = self._get_loop().time()
        last = self._last_activity_reset_at
        if last is not None and now - last <= self.config.throttle_seconds:
            return False
        self._last_activity_reset_at = now
        return self.reset()

    def attach(self, bus: ActivityBus) -> None:
        """Listen for activity on ``bus``."""
        if self._bus is not None:
            self._bus.remove_listener(self._activity_listener)
        self._bus = bus
        bus.add_listener(self._activity_listener)

    def bind(self, provider: IdentityProvider) -> None:
        """Follow the provider's sign-in/sign-out notifications."""
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
        if self._sign_out is None:
            self._sign_out = provider.sign_out
        self._unsubscribe_auth = provider.on_auth_state_changed(self._on_auth_state)

    def destroy(self) -> None:
        """Cancel timers and drop every subscription."""
        self._cancel_timers()
        if self._bus is not None:
            self._bus.remove_listener(self._activity_listener)
            self._bus = None
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        self._state = SessionState.IDLE

    def _on_auth_state(self, identity: Identity | None) -> None:
        if identity is not None:
            self.start()
        else:
            self.stop()

    def _get_loop(self) -> Any:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _arm(self) -> None:
        was_armed = self.is_armed
        self._cancel_handles()
        loop = self._get_loop()
        self._last_reset_at = loop.time()
        self._warning_handle = loop.call_later(
            self.config.warning_delay_seconds, self._fire_warning
        )
        self._expiry_handle = loop.call_later(self.config.timeout_seconds, self._fire_expiry)
        if not was_armed and self._metrics is not None:
            self._metrics.adjust_gauge(ARMED_GAUGE, 1)

    def _cancel_handles(self) -> None:
        for handle in (self._warning_handle, self._expiry_handle):
            if handle is not None:
                handle.cancel()
        self._warning_handle = None
        self._expiry_handle = None

    def _cancel_timers(self) -> None:
        was_armed = self.is_armed
        self._cancel_handles()
        if was_armed and self._metrics is not None:
            self._metrics.adjust_gauge(ARMED_GAUGE, -1)

    def _fire_warning(self) -> None:
        self._warning_handle = None
        if self._state is not SessionState.ACTIVE:
            return
        self._state = SessionState.WARNING
        logger.info("Session about to expire")
        if self.on_warning is not None:
            try:
                self.on_warning()
            except Exception:
                logger.error("Session warning callback failed", exc_info=True)

    def _fire_expiry(self) -> None:
        self._cancel_timers()
        if self._state not in (SessionState.ACTIVE, SessionState.WARNING):
            return
        self._state = SessionState.EXPIRED
        logger.info("Session timed out, signing out")
        self._expiry_task = asyncio.ensure_future(self._expire())

    async def _expire(self) -> None:
        if self._sign_out is not None:
            try:
                await self._sign_out()
            except Exception:
                logger.error("Sign-out after session timeout failed", exc_info=True)
        if self.on_timeout is not None:
            try:
                result = self.on_timeout()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error("Session timeout callback failed", exc_info=True)
