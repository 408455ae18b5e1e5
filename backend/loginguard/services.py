"""
Component wiring.

Every component is constructed once here and handed its dependencies
explicitly; nothing in the package keeps module-level instances of the rate
limiter, monitor or session timer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from loginguard.auth.identity import IdentityProvider
from loginguard.auth.local_provider import LocalIdentityProvider
from loginguard.auth.orchestrator import LoginOrchestrator
from loginguard.auth.profiles import ProfileDirectory
from loginguard.config import Settings, get_settings
from loginguard.core import Clock, MetricsRegistry, get_logger, utcnow
from loginguard.db.engine import build_engine
from loginguard.db.session import create_session_factory
from loginguard.security.activity import ActivityBus
from loginguard.security.client_info import IPLookup
from loginguard.security.monitor import MonitorConfig, SecurityMonitor
from loginguard.security.rate_limiter import RateLimiter
from loginguard.security.session_timer import SessionTimer

logger = get_logger(__name__)


@dataclass
class SecurityServices:
    """The assembled login security control plane."""

    settings: Settings
    engine: Engine
    session_factory: sessionmaker[Session]
    metrics: MetricsRegistry
    activity_bus: ActivityBus
    rate_limiter: RateLimiter
    monitor: SecurityMonitor
    identity_provider: IdentityProvider
    profiles: ProfileDirectory
    orchestrator: LoginOrchestrator

    def create_session_timer(
        self,
        on_warning: Callable[[], Any] | None = None,
        on_timeout: Callable[[], Any] | None = None,
        loop: Any = None,
    ) -> SessionTimer:
        """Session timer bound to the identity provider and activity bus."""
        timer = SessionTimer(
            self.settings.session_timer_config(),
            on_warning=on_warning,
            on_timeout=on_timeout,
            loop=loop,
            metrics=self.metrics,
        )
        timer.bind(self.identity_provider)
        timer.attach(self.activity_bus)
        return timer

    def close(self) -> None:
        self.engine.dispose()


def monitor_config(settings: Settings) -> MonitorConfig:
    return MonitorConfig(
        brute_force_lookback=settings.monitor_brute_force_lookback,
        brute_force_threshold=settings.monitor_brute_force_threshold,
        location_history=settings.monitor_location_history,
        enable_device_fingerprinting=settings.monitor_enable_device_fingerprinting,
        enable_geo_tracking=settings.monitor_enable_geo_tracking,
    )


def build_services(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    identity_provider: IdentityProvider | None = None,
    clock: Clock = utcnow,
    ip_transport: httpx.AsyncBaseTransport | None = None,
) -> SecurityServices:
    """
    Construct every component from settings.

    Args:
        settings: Configuration (defaults to the cached settings).
        engine: Existing engine; a new one is built from settings otherwise.
        identity_provider: Replaces the local Argon2-backed provider.
        clock: Time source for the store-backed components.
        ip_transport: httpx transport for the IP lookup (tests).
    """
    settings = settings or get_settings()
    engine = engine or build_engine(settings)
    session_factory = create_session_factory(engine)
    metrics = MetricsRegistry()

    rate_limiter = RateLimiter(session_factory, settings.rate_limit_config(), clock=clock)
    monitor = SecurityMonitor(
        session_factory,
        monitor_config(settings),
        ip_lookup=IPLookup(
            settings.ip_lookup_url,
            settings.ip_lookup_timeout_seconds,
            transport=ip_transport,
        ),
        clock=clock,
        metrics=metrics,
    )
    provider = identity_provider or LocalIdentityProvider(session_factory, clock=clock)
    profiles = ProfileDirectory(session_factory, settings.bootstrap_admin_email, clock=clock)
    orchestrator = LoginOrchestrator(rate_limiter, provider, monitor, profiles, metrics=metrics)

    logger.info(
        "Security services ready",
        data={
            "max_attempts": settings.rate_limit_max_attempts,
            "session_timeout_minutes": settings.session_timeout_minutes,
        },
    )
    return SecurityServices(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        metrics=metrics,
        activity_bus=ActivityBus(),
        rate_limiter=rate_limiter,
        monitor=monitor,
        identity_provider=provider,
        profiles=profiles,
        orchestrator=orchestrator,
    )
