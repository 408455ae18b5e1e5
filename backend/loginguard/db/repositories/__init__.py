"""Database repositories for data access."""

from loginguard.db.repositories.admin import (
    get_admin_by_email,
    get_admin_by_uid,
    upsert_admin_profile,
)
from loginguard.db.repositories.device_profile import (
    decode_locations,
    get_device_profile,
    insert_device_profile,
    touch_device_profile,
)
from loginguard.db.repositories.login_activity import (
    add_login_activity,
    list_recent_activities,
    list_recent_by_email,
    list_recent_successes,
)
from loginguard.db.repositories.rate_limit import (
    compare_and_swap_rate_limit,
    delete_rate_limit,
    get_rate_limit,
    insert_rate_limit,
)
from loginguard.db.repositories.security_event import (
    add_security_event,
    decode_details,
    list_events,
    list_events_since,
)
from loginguard.db.repositories.user import (
    create_user,
    get_user_by_email,
    get_user_by_id,
    set_user_disabled,
    update_last_login,
    update_password_hash,
)

__all__ = [
    # Admin profiles
    "get_admin_by_uid",
    "get_admin_by_email",
    "upsert_admin_profile",
    # Device profiles
    "get_device_profile",
    "insert_device_profile",
    "touch_device_profile",
    "decode_locations",
    # Login activity
    "add_login_activity",
    "list_recent_by_email",
    "list_recent_successes",
    "list_recent_activities",
    # Rate limits
    "get_rate_limit",
    "insert_rate_limit",
    "compare_and_swap_rate_limit",
    "delete_rate_limit",
    # Security events
    "add_security_event",
    "list_events",
    "list_events_since",
    "decode_details",
    # Users
    "get_user_by_id",
    "get_user_by_email",
    "create_user",
    "set_user_disabled",
    "update_password_hash",
    "update_last_login",
]
