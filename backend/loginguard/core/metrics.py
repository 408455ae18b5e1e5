"""
Simple in-process metrics registry for login-flow counters.
"""

from __future__ import annotations

import threading


class MetricsRegistry:
    """Thread-safe counter/gauge registry for lightweight instrumentation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {
            "login_success_total": 0.0,
            "login_failure_total": 0.0,
            "login_rate_limited_total": 0.0,
            "login_denied_total": 0.0,
            "security_events_total": 0.0,
            "security_events_dropped_total": 0.0,
        }
        self._gauges: dict[str, float] = {"armed_session_timers": 0.0}

    def increment(self, name: str, amount: float = 1.0) -> None:
        """Increment a counter by the given amount."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0.0) + amount

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = value

    def adjust_gauge(self, name: str, delta: float) -> None:
        with self._lock:
            self._gauges[name] = max(0.0, self._gauges.get(name, 0.0) + delta)

    def snapshot(self) -> dict[str, dict[str, float]]:
        """Return a snapshot of current counters and gauges."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
            }
