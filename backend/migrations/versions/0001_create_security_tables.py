"""Create security tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates the initial schema:
- rate_limits
- login_activities
- security_events
- device_profiles
- admin_profiles
- users
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all security tables."""
    # Rate-limit counters (keyed by hashed identifier)
    op.create_table(
        "rate_limits",
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_attempt", sa.DateTime(), nullable=False),
        sa.Column("last_attempt", sa.DateTime(), nullable=False),
        sa.Column("escalation_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("escalation_started_at", sa.DateTime(), nullable=False),
        sa.Column("is_locked_out", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("key", name=op.f("pk_rate_limits")),
    )

    # Login audit trail
    op.create_table(
        "login_activities",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("admin_id", sa.String(128), nullable=True),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("login_time", sa.DateTime(), nullable=False),
        sa.Column("ip_address", sa.String(50), nullable=False, server_default="unknown"),
        sa.Column("user_agent", sa.String(500), nullable=False, server_default="unknown"),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("failure_reason", sa.String(500), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_login_activities")),
    )
    op.create_index("ix_login_activities_email_time", "login_activities", ["email", "login_time"])
    op.create_index("ix_login_activities_admin_time", "login_activities", ["admin_id", "login_time"])
    op.create_index("ix_login_activities_login_time", "login_activities", ["login_time"])

    # Security event log
    op.create_table(
        "security_events",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("admin_id", sa.String(128), nullable=True),
        sa.Column("email", sa.String(100), nullable=True),
        sa.Column("ip_address", sa.String(50), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_by", sa.String(128), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_security_events")),
    )
    op.create_index("ix_security_events_timestamp", "security_events", ["timestamp"])
    op.create_index("ix_security_events_type", "security_events", ["type"])
    op.create_index("ix_security_events_severity", "security_events", ["severity"])

    # Known devices
    op.create_table(
        "device_profiles",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("admin_id", sa.String(128), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("fingerprint", sa.String(64), nullable=False),
        sa.Column("first_seen", sa.DateTime(), nullable=False),
        sa.Column("last_seen", sa.DateTime(), nullable=False),
        sa.Column("trust_score", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("login_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locations", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_device_profiles")),
        sa.UniqueConstraint(
            "admin_id", "fingerprint", name="uq_device_profiles_admin_fingerprint"
        ),
    )
    op.create_index("ix_device_profiles_admin_id", "device_profiles", ["admin_id"])

    # Authorization profiles
    op.create_table(
        "admin_profiles",
        sa.Column("uid", sa.String(128), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("approved_by", sa.String(128), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("uid", name=op.f("pk_admin_profiles")),
    )
    op.create_index("ix_admin_profiles_email", "admin_profiles", ["email"])
    op.create_index("ix_admin_profiles_status", "admin_profiles", ["status"])

    # Local identity provider accounts
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
    )
    op.create_index("ix_users_email", "users", ["email"])


def downgrade() -> None:
    """Drop all security tables."""
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_index("ix_admin_profiles_status", table_name="admin_profiles")
    op.drop_index("ix_admin_profiles_email", table_name="admin_profiles")
    op.drop_table("admin_profiles")

    op.drop_index("ix_device_profiles_admin_id", table_name="device_profiles")
    op.drop_table("device_profiles")

    op.drop_index("ix_security_events_severity", table_name="security_events")
    op.drop_index("ix_security_events_type", table_name="security_events")
    op.drop_index("ix_security_events_timestamp", table_name="security_events")
    op.drop_table("security_events")

    op.drop_index("ix_login_activities_login_time", table_name="login_activities")
    op.drop_index("ix_login_activities_admin_time", table_name="login_activities")
    op.drop_index("ix_login_activities_email_time", table_name="login_activities")
    op.drop_table("login_activities")

    op.drop_table("rate_limits")
