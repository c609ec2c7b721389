"""Process-lifetime settings read once from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DB_PATH = Path("work/local/taleweaver.db")
DEFAULT_SESSION_SECRET = "change-this-secret-in-production"
SESSION_COOKIE_NAME = "taleweaver_session"


def int_env(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def _str_env(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the web application."""

    db_path: Path = DEFAULT_DB_PATH
    session_secret: str = DEFAULT_SESSION_SECRET
    session_max_age_days: int = 30
    admin_username: str = "admin"
    admin_password: str = "admin123"
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_max_age_days * 24 * 60 * 60


def load_settings(db_path: Path | None = None) -> Settings:
    """Resolve settings from explicit args, env vars, then defaults."""
    resolved_db_path = db_path
    if resolved_db_path is None:
        env_value = os.environ.get("TALEWEAVER_DB_PATH", "").strip()
        resolved_db_path = Path(env_value) if env_value else DEFAULT_DB_PATH
    return Settings(
        db_path=resolved_db_path,
        session_secret=_str_env("TALEWEAVER_SESSION_SECRET", DEFAULT_SESSION_SECRET),
        session_max_age_days=int_env(
            "TALEWEAVER_SESSION_MAX_AGE_DAYS", 30, minimum=1, maximum=365
        ),
        admin_username=_str_env("TALEWEAVER_ADMIN_USERNAME", "admin"),
        admin_password=_str_env("TALEWEAVER_ADMIN_PASSWORD", "admin123"),
        environment=_str_env("TALEWEAVER_ENV", "development").lower(),
    )
