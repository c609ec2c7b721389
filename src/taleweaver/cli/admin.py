"""CLI for seeding the administrator account or resetting its password."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

from taleweaver.adapters.observability import configure_runtime_logging
from taleweaver.adapters.sqlite_narrative_store import SQLiteNarrativeStore
from taleweaver.config import load_settings
from taleweaver.core.auth_gate import AuthGate

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage the taleweaver administrator account.")
    parser.add_argument("action", choices=["ensure", "reset-password"])
    parser.add_argument("--db-path", default="", help="SQLite path (default from environment).")
    parser.add_argument("--username", default="", help="Defaults to TALEWEAVER_ADMIN_USERNAME.")
    parser.add_argument(
        "--password",
        default="",
        help="Defaults to TALEWEAVER_ADMIN_PASSWORD for ensure; prompted for reset-password.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    configure_runtime_logging()
    parsed = build_arg_parser().parse_args(argv)
    db_path = str(parsed.db_path).strip()
    settings = load_settings(Path(db_path) if db_path else None)
    gate = AuthGate(SQLiteNarrativeStore(db_path=settings.db_path))
    username = str(parsed.username).strip() or settings.admin_username

    if parsed.action == "ensure":
        user = gate.ensure_admin(username, str(parsed.password) or settings.admin_password)
        print(f"admin ready: {user.username} ({user.user_id})")
        return 0

    password = str(parsed.password) or getpass.getpass("New password: ")
    if not password:
        print("password must not be empty", file=sys.stderr)
        return 2
    updated = gate.reset_password(username, password)
    if updated is None:
        print(f"unknown user: {username}", file=sys.stderr)
        return 1
    logger.info("auth.password_reset user_id=%s", updated.user_id)
    print(f"password updated: {updated.username}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
