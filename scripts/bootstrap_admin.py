#!/usr/bin/env python3
"""Create (or approve) a local administrator.

Usage:
  python scripts/bootstrap_admin.py --email admin@example.com --password strongpass

Environment fallbacks:
  BOOTSTRAP_ADMIN_EMAIL, BOOTSTRAP_ADMIN_PASSWORD, DATABASE_URL
"""
from __future__ import annotations

import argparse
import sys

from loginguard.bootstrap import bootstrap_admin
from loginguard.config import get_settings
from loginguard.core import SecurityError, setup_logging
from loginguard.db import get_session_factory


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="loginguard admin bootstrap")
    parser.add_argument("--email", default=settings.bootstrap_admin_email)
    parser.add_argument("--password", default=settings.bootstrap_admin_password)
    parser.add_argument("--reset-password", action="store_true")
    parser.add_argument("--quiet", action="store_true")
    return parser.parse_args()


def exit_with(message: str, code: int = 1) -> None:
    print(message, file=sys.stderr)
    raise SystemExit(code)


def main() -> None:
    args = parse_args()
    setup_logging(level="WARNING" if args.quiet else get_settings().log_level)

    if not args.email or not args.password:
        exit_with("Missing credentials (use --email/--password or BOOTSTRAP_ADMIN_EMAIL/BOOTSTRAP_ADMIN_PASSWORD)")

    try:
        result = bootstrap_admin(
            get_session_factory(),
            args.email,
            args.password,
            reset_password=args.reset_password,
        )
    except SecurityError as exc:
        exit_with(f"Invalid credentials: {exc.message}")

    if not args.quiet:
        action = "created" if result.user_created else "approved"
        print(f"Admin {result.email} {action} (uid {result.uid})")


if __name__ == "__main__":
    main()
