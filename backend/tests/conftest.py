"""Shared fixtures: in-memory store, controllable time and a scriptable identity provider."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from loginguard.auth.identity import Identity, IdentityErrorCode, IdentityProviderError
from loginguard.config import Settings
from loginguard.core import MetricsRegistry
from loginguard.db.base import Base
from loginguard.db.session import create_session_factory


@pytest.fixture(scope="session")
def backend_dir() -> Path:
    return Path(__file__).resolve().parent.parent


@pytest.fixture
def engine():
    """Fresh in-memory database shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


class FakeClock:
    """Manually advanced naive-UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0, hours: float = 0) -> None:
        self.now += timedelta(seconds=seconds, minutes=minutes, hours=hours)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FakeTimerHandle:
    def __init__(self, when: float, callback: Callable[..., Any], args: tuple):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Scheduler with ``time()``/``call_later()`` driven by ``advance()``."""

    def __init__(self) -> None:
        self._now = 0.0
        self.handles: list[FakeTimerHandle] = []

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimerHandle:
        handle = FakeTimerHandle(self._now + delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeTimerHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._now = handle.when
            handle.fired = True
            handle.callback(*handle.args)
        self._now = target


@pytest.fixture
def fake_loop() -> FakeLoop:
    return FakeLoop()


@dataclass
class FakeIdentityProvider:
    """
    Identity provider double.

    ``accounts`` maps email to (uid, password); ``failure`` forces every
    sign-in to raise the given error code.
    """

    accounts: dict[str, tuple[str, str]] = field(default_factory=dict)
    failure: IdentityErrorCode | None = None
    sign_in_calls: int = 0
    sign_out_calls: int = 0
    fail_sign_out: bool = False
    current: Identity | None = None
    listeners: list[Callable[[Identity | None], None]] = field(default_factory=list)

    @property
    def current_identity(self) -> Identity | None:
        return self.current

    def add_account(self, email: str, password: str, uid: str | None = None) -> Identity:
        uid = uid or f"uid-{len(self.accounts) + 1}"
        self.accounts[email] = (uid, password)
        return Identity(uid=uid, email=email)

    async def sign_in(self, email: str, password: str) -> Identity:
        self.sign_in_calls += 1
        if self.failure is not None:
            raise IdentityProviderError(self.failure)
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise IdentityProviderError(IdentityErrorCode.INVALID_CREDENTIAL)
        self.current = Identity(uid=account[0], email=email)
        for listener in list(self.listeners):
            listener(self.current)
        return self.current

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.fail_sign_out:
            raise RuntimeError("sign-out backend unavailable")
        self.current = None
        for listener in list(self.listeners):
            listener(None)

    def on_auth_state_changed(self, listener: Callable[[Identity | None], None]) -> Callable[[], None]:
        self.listeners.append(listener)
        listener(self.current)

        def unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        admin_api_token="test-admin-token",
        bootstrap_admin_email="root@example.com",
    )
