"""
Security monitor: login audit trail, anomaly detection and the security
event log.

``analyze_login_attempt`` runs a fixed sequence of steps. The audit write
comes first so that the attempt is visible to its own brute-force check;
every later step is isolated, so a failure is logged and the remaining
steps still run. Nothing here raises into the login flow.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from loginguard.core import Clock, MetricsRegistry, Severity, get_logger, isoformat_z, utcnow
from loginguard.db.models import LoginActivity, SecurityEvent
from loginguard.db.repositories import (
    add_login_activity,
    add_security_event,
    decode_details,
    get_device_profile,
    insert_device_profile,
    list_events,
    list_events_since,
    list_recent_activities,
    list_recent_by_email,
    list_recent_successes,
    touch_device_profile,
)
from loginguard.security.client_info import (
    ClientContext,
    ClientInfo,
    IPLookup,
    collect_client_info,
)
from loginguard.security.events import (
    SecurityEventInput,
    SecurityEventType,
    SecurityMetrics,
    parse_event_type,
    parse_severity,
)
from loginguard.security.sanitize import (
    EMAIL_MAX_LENGTH,
    IP_MAX_LENGTH,
    USER_AGENT_MAX_LENGTH,
    sanitize_details,
    sanitize_email,
    sanitize_optional,
    sanitize_text,
)

logger = get_logger(__name__)

MAX_EVENT_PAGE = 100
DEVICE_UPSERT_RETRIES = 5


@dataclass(frozen=True)
class MonitorConfig:
    brute_force_lookback: int = 5
    brute_force_threshold: int = 3
    location_history: int = 2
    enable_device_fingerprinting: bool = True
    enable_geo_tracking: bool = True


class SecurityMonitor:
    """Consumes login outcomes and maintains the security telemetry store."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: MonitorConfig | None = None,
        *,
        ip_lookup: IPLookup | None = None,
        clock: Clock = utcnow,
        metrics: MetricsRegistry | None = None,
    ):
        self._session_factory = session_factory
        self.config = config or MonitorConfig()
        self._ip_lookup = ip_lookup
        self._clock = clock
        self._metrics = metrics

    async def analyze_login_attempt(
        self,
        email: str,
        success: bool,
        user_id: str | None = None,
        client: ClientContext | None = None,
        failure_reason: str | None = None,
    ) -> None:
        """
        Audit one login attempt and derive anomaly events from it.

        Steps: audit write, brute-force pattern, new device, location drift,
        device profile upsert. Steps 3 to 5 only run for a successful
        sign-in with a known identity; location drift also needs a
        client-reported timezone.
        """
        email = sanitize_email(email)
        info = await self._client_info(client)

        activity_id = await self._step(
            "audit",
            run_in_threadpool(
                self._write_activity, email, success, user_id, info, failure_reason
            ),
        )
        await self._step("brute_force", self._check_brute_force(email))

        if not (success and user_id):
            return

        if self.config.enable_device_fingerprinting:
            await self._step("new_device", self._check_new_device(user_id, email, info))
        if self.config.enable_geo_tracking and info.fingerprint.timezone:
            await self._step(
                "location", self._check_location(user_id, email, info, activity_id)
            )
        if self.config.enable_device_fingerprinting:
            await self._step(
                "device_profile",
                run_in_threadpool(self._upsert_device_profile, user_id, email, info),
            )

    async def record_login_failure(
        self,
        email: str,
        reason: str,
        client: ClientContext | None = None,
        user_id: str | None = None,
    ) -> None:
        """Audit a rejected attempt without running pattern analysis."""
        info = await self._client_info(client)
        await self._step(
            "audit",
            run_in_threadpool(
                self._write_activity, sanitize_email(email), False, user_id, info, reason
            ),
        )

    async def record_security_event(self, event: SecurityEventInput) -> bool:
        """
        Validate, sanitize and persist one security event.

        Returns:
            True if the event was stored; invalid or failed events are logged
            and dropped.
        """
        event_type = parse_event_type(event.type)
        severity = parse_severity(event.severity)
        if event_type is None or severity is None:
            logger.warning(
                "Rejected security event",
                data={"type": sanitize_text(str(event.type), 50), "severity": sanitize_text(str(event.severity), 20)},
            )
            self._count("security_events_dropped_total")
            return False

        try:
            await run_in_threadpool(self._write_event, event_type, severity, event)
        except Exception:
            logger.error(
                "Failed to persist security event",
                data={"type": event_type.value},
                exc_info=True,
            )
            self._count("security_events_dropped_total")
            return False

        self._count("security_events_total")
        log = logger.warning if severity.rank >= Severity.HIGH.rank else logger.info
        log("Security event recorded", data={"type": event_type.value, "severity": severity.value})
        return True

    async def get_security_metrics(self, window_hours: float = 24) -> SecurityMetrics:
        """Aggregate events of the last ``window_hours``; empty on failure."""
        try:
            return await run_in_threadpool(self._aggregate, window_hours)
        except Exception:
            logger.error("Failed to load security metrics", exc_info=True)
            return SecurityMetrics(window_hours=window_hours)

    async def list_security_events(
        self,
        limit: int = 50,
        severity: str | None = None,
        type: str | None = None,
    ) -> list[dict[str, Any]]:
        """Recent events, newest first; ``limit`` is clamped to 1..100."""
        safe_limit = min(max(limit, 1), MAX_EVENT_PAGE)
        try:
            return await run_in_threadpool(self._list_events, safe_limit, severity, type)
        except Exception:
            logger.error("Failed to fetch security events", exc_info=True)
            return []

    async def get_recent_login_activities(self, limit: int = 10) -> list[dict[str, Any]]:
        safe_limit = min(max(limit, 1), MAX_EVENT_PAGE)
        try:
            return await run_in_threadpool(self._list_activities, safe_limit)
        except Exception:
            logger.error("Failed to fetch login activities", exc_info=True)
            return []

    async def _step(self, name: str, awaitable: Any) -> Any:
        try:
            return await awaitable
        except Exception:
            logger.error(
                "Security analysis step failed",
                data={"step": name},
                exc_info=True,
            )
            return None

    async def _client_info(self, client: ClientContext | None) -> ClientInfo:
        try:
            return await collect_client_info(client, self._ip_lookup, now=self._clock())
        except Exception:
            logger.error("Failed to collect client info", exc_info=True)
            return await collect_client_info(None, now=self._clock())

    def _count(self, name: str) -> None:
        if self._metrics is not None:
            self._metrics.increment(name)

    # Step 1

    def _write_activity(
        self,
        email: str,
        success: bool,
        user_id: str | None,
        info: ClientInfo,
        failure_reason: str | None,
    ) -> str:
        with self._session_factory() as db:
            entry = add_login_activity(
                db,
                email=email,
                status="success" if success else "failed",
                login_time=self._clock(),
                admin_id=user_id,
                ip_address=info.ip_address,
                user_agent=info.fingerprint.user_agent,
                timezone=info.fingerprint.timezone,
                failure_reason=sanitize_optional(failure_reason, 500),
            )
            return entry.id

    # Step 2

    async def _check_brute_force(self, email: str) -> None:
        recent = await run_in_threadpool(self._recent_for_email, email)
        failures = sum(1 for status in recent if status == "failed")
        if failures >= self.config.brute_force_threshold:
            await self.record_security_event(
                SecurityEventInput(
                    type=SecurityEventType.BRUTE_FORCE.value,
                    severity=Severity.HIGH.value,
                    email=email,
                    details={"attempts": failures, "window": len(recent)},
                )
            )

    def _recent_for_email(self, email: str) -> list[str]:
        with self._session_factory() as db:
            rows = list_recent_by_email(db, email, limit=self.config.brute_force_lookback)
            return [row.status for row in rows]

    # Step 3

    async def _check_new_device(self, user_id: str, email: str, info: ClientInfo) -> None:
        fingerprint = info.fingerprint
        known = await run_in_threadpool(self._device_known, user_id, fingerprint.device_id)
        if not known:
            await self.record_security_event(
                SecurityEventInput(
                    type=SecurityEventType.NEW_DEVICE.value,
                    severity=Severity.MEDIUM.value,
                    email=email,
                    admin_id=user_id,
                    ip_address=info.ip_address,
                    user_agent=fingerprint.user_agent,
                    details={"device_id": fingerprint.device_id, "fingerprint": fingerprint.to_dict()},
                )
            )

    def _device_known(self, user_id: str, device_id: str) -> bool:
        with self._session_factory() as db:
            return get_device_profile(db, user_id, device_id) is not None

    # Step 4

    async def _check_location(
        self,
        user_id: str,
        email: str,
        info: ClientInfo,
        activity_id: str | None,
    ) -> None:
        timezone = info.fingerprint.timezone
        history = await run_in_threadpool(self._previous_timezones, user_id, activity_id)
        if len(history) >= self.config.location_history and timezone not in history:
            await self.record_security_event(
                SecurityEventInput(
                    type=SecurityEventType.LOCATION_CHANGE.value,
                    severity=Severity.MEDIUM.value,
                    email=email,
                    admin_id=user_id,
                    ip_address=info.ip_address,
                    details={"timezone": timezone, "previous": sorted(set(history))},
                )
            )

    def _previous_timezones(self, user_id: str, exclude_id: str | None) -> list[str]:
        with self._session_factory() as db:
            rows = list_recent_successes(
                db, user_id, limit=self.config.location_history, exclude_id=exclude_id
            )
            return [row.timezone for row in rows if row.timezone]

    # Step 5

    def _upsert_device_profile(self, user_id: str, email: str, info: ClientInfo) -> None:
        device_id = info.fingerprint.device_id
        timezone = info.fingerprint.timezone
        locations = [timezone] if timezone else []
        with self._session_factory() as db:
            for _ in range(DEVICE_UPSERT_RETRIES):
                now = self._clock()
                profile = get_device_profile(db, user_id, device_id)
                if profile is None:
                    landed = insert_device_profile(
                        db,
                        admin_id=user_id,
                        email=email,
                        fingerprint=device_id,
                        seen_at=now,
                        locations=locations,
                    )
                else:
                    landed = touch_device_profile(db, profile, seen_at=now, locations=locations)
                if landed:
                    db.commit()
                    return
                db.rollback()
                db.expire_all()
        logger.warning(
            "Device profile update abandoned after concurrent writes",
            data={"admin_id": user_id},
        )

    # Event log

    def _write_event(
        self, event_type: SecurityEventType, severity: Severity, event: SecurityEventInput
    ) -> None:
        with self._session_factory() as db:
            add_security_event(
                db,
                type=event_type.value,
                severity=severity.value,
                timestamp=self._clock(),
                details=sanitize_details(event.details),
                admin_id=sanitize_optional(event.admin_id, 128),
                email=sanitize_optional(event.email, EMAIL_MAX_LENGTH),
                ip_address=sanitize_optional(event.ip_address, IP_MAX_LENGTH),
                user_agent=sanitize_optional(event.user_agent, USER_AGENT_MAX_LENGTH),
            )

    def _aggregate(self, window_hours: float) -> SecurityMetrics:
        since = self._clock() - timedelta(hours=window_hours)
        with self._session_factory() as db:
            events = list_events_since(db, since)
        metrics = SecurityMetrics(window_hours=window_hours, total_events=len(events))
        for event in events:
            if event.severity == Severity.CRITICAL.value:
                metrics.critical_events += 1
            elif event.severity == Severity.HIGH.value:
                metrics.high_severity_events += 1
            if not event.resolved:
                metrics.unresolved_events += 1
            metrics.events_by_type[event.type] = metrics.events_by_type.get(event.type, 0) + 1
        return metrics

    def _list_events(
        self, limit: int, severity: str | None, type: str | None
    ) -> list[dict[str, Any]]:
        with self._session_factory() as db:
            return [_event_to_dict(e) for e in list_events(db, limit=limit, severity=severity, type=type)]

    def _list_activities(self, limit: int) -> list[dict[str, Any]]:
        with self._session_factory() as db:
            return [_activity_to_dict(a) for a in list_recent_activities(db, limit=limit)]


def _event_to_dict(event: SecurityEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "type": event.type,
        "severity": event.severity,
        "admin_id": event.admin_id,
        "email": event.email,
        "ip_address": event.ip_address,
        "user_agent": event.user_agent,
        "details": decode_details(event),
        "timestamp": isoformat_z(event.timestamp),
        "resolved": event.resolved,
        "resolved_at": isoformat_z(event.resolved_at),
        "resolved_by": event.resolved_by,
    }


def _activity_to_dict(activity: LoginActivity) -> dict[str, Any]:
    return {
        "id": activity.id,
        "admin_id": activity.admin_id,
        "email": activity.email,
        "login_time": isoformat_z(activity.login_time),
        "ip_address": activity.ip_address,
        "user_agent": activity.user_agent,
        "timezone": activity.timezone,
        "status": activity.status,
        "failure_reason": activity.failure_reason,
    }
