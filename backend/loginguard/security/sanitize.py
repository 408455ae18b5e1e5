"""
Free-text sanitization for persisted security telemetry.
"""

import re
from typing import Any

UNKNOWN = "unknown"

EMAIL_MAX_LENGTH = 100
IP_MAX_LENGTH = 50
USER_AGENT_MAX_LENGTH = 500
DETAILS_MAX_LENGTH = 2000
DEFAULT_MAX_LENGTH = 200

_TAG_RE = re.compile(r"<[^>]*>")
_UNSAFE_CHARS_RE = re.compile(r"[<>'\"&`]")
# C0 and C1 control characters, DEL included
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def sanitize_text(value: Any, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """
    Strip markup, unsafe characters and control characters, then cap length.

    Non-string or empty input becomes ``"unknown"``.
    """
    if not value or not isinstance(value, str):
        return UNKNOWN
    cleaned = _TAG_RE.sub("", value)
    cleaned = _UNSAFE_CHARS_RE.sub("", cleaned)
    cleaned = _CONTROL_RE.sub("", cleaned)
    cleaned = cleaned.strip()[:max_length]
    return cleaned or UNKNOWN


def sanitize_optional(value: Any, max_length: int) -> str | None:
    """Like :func:`sanitize_text` but keeps ``None`` as ``None``."""
    if value is None:
        return None
    return sanitize_text(value, max_length)


def sanitize_email(value: Any) -> str:
    return sanitize_text(value, EMAIL_MAX_LENGTH).lower()


def sanitize_details(details: Any, max_length: int = DETAILS_MAX_LENGTH) -> dict[str, Any]:
    """
    Sanitize every string inside an event's details mapping.

    Nested mappings and lists are walked; numbers, booleans and ``None``
    pass through unchanged. Anything else is stringified first.
    """
    if not isinstance(details, dict):
        return {}
    return {sanitize_text(str(k), 100): _sanitize_value(v, max_length) for k, v in details.items()}


def _sanitize_value(value: Any, max_length: int) -> Any:
    if isinstance(value, str):
        return sanitize_text(value, max_length)
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, dict):
        return sanitize_details(value, max_length)
    if isinstance(value, (list, tuple, set)):
        return [_sanitize_value(v, max_length) for v in value]
    return sanitize_text(str(value), max_length)
