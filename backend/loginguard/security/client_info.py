"""
Client information and device fingerprinting.

The caller describes the client it is acting for with a ``ClientContext``;
the monitor turns that into a sanitized ``DeviceFingerprint`` and resolves
the client IP (from the context when known, otherwise through a best-effort
public IP lookup that never raises).
"""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

import httpx

from loginguard.core import get_logger, request_id_ctx, utcnow
from loginguard.security.sanitize import (
    IP_MAX_LENGTH,
    UNKNOWN,
    USER_AGENT_MAX_LENGTH,
    sanitize_text,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClientContext:
    """Raw characteristics reported by (or about) the client."""

    user_agent: str | None = None
    timezone: str | None = None
    language: str | None = None
    platform: str | None = None
    screen: str | None = None
    hardware_concurrency: int = 0
    do_not_track: str | None = None
    cookies_enabled: bool = False
    ip_address: str | None = None


@dataclass(frozen=True)
class DeviceFingerprint:
    """Sanitized client characteristics used to recognise a device."""

    user_agent: str
    screen: str
    timezone: str | None
    language: str
    platform: str
    cookies_enabled: bool
    do_not_track: str
    hardware_concurrency: int

    @classmethod
    def from_context(cls, context: ClientContext) -> DeviceFingerprint:
        return cls(
            user_agent=sanitize_text(context.user_agent, USER_AGENT_MAX_LENGTH),
            screen=sanitize_text(context.screen, 50),
            timezone=_reported_timezone(context.timezone),
            language=sanitize_text(context.language, 35),
            platform=sanitize_text(context.platform),
            cookies_enabled=bool(context.cookies_enabled),
            do_not_track=sanitize_text(context.do_not_track, 10),
            hardware_concurrency=max(0, int(context.hardware_concurrency or 0)),
        )

    @property
    def device_id(self) -> str:
        """Stable identifier over the characteristics that rarely change."""
        material = "|".join(
            [
                self.user_agent,
                self.platform,
                self.screen,
                self.language,
                str(self.hardware_concurrency),
            ]
        )
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _reported_timezone(value: Any) -> str | None:
    """Timezone as reported by the client; ``None`` when it reported nothing usable."""
    if not value:
        return None
    timezone = sanitize_text(value, 64)
    return None if timezone == UNKNOWN else timezone


@dataclass(frozen=True)
class ClientInfo:
    """Snapshot of the client at the time of one login attempt."""

    fingerprint: DeviceFingerprint
    ip_address: str
    timestamp: datetime


class IPLookup:
    """
    Best-effort public IP lookup over HTTP.

    Any failure (timeout, transport error, non-2xx, malformed body) yields
    ``"unknown"``.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def lookup(self) -> str:
        headers = {}
        request_id = request_id_ctx.get()
        if request_id:
            headers["X-Request-ID"] = request_id
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.get(self.url, headers=headers)
            if response.status_code != 200:
                logger.debug(
                    "IP lookup returned non-200",
                    data={"status": response.status_code},
                )
                return UNKNOWN
            ip = response.json().get("ip")
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.debug("IP lookup failed", data={"error": type(exc).__name__})
            return UNKNOWN
        if not isinstance(ip, str) or not ip.strip():
            return UNKNOWN
        return sanitize_text(ip, IP_MAX_LENGTH)


async def collect_client_info(
    context: ClientContext | None,
    ip_lookup: IPLookup | None = None,
    now: datetime | None = None,
) -> ClientInfo:
    """Build a ``ClientInfo`` for one attempt; never raises on lookup failure."""
    context = context or ClientContext()
    if context.ip_address:
        ip_address = sanitize_text(context.ip_address, IP_MAX_LENGTH)
    elif ip_lookup is not None:
        ip_address = await ip_lookup.lookup()
    else:
        ip_address = UNKNOWN
    return ClientInfo(
        fingerprint=DeviceFingerprint.from_context(context),
        ip_address=ip_address,
        timestamp=now or utcnow(),
    )
