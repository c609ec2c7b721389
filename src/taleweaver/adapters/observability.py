"""Runtime logging configuration with bounded retention."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from taleweaver.config import int_env

DEFAULT_LOG_PATH = Path("work/logs/taleweaver.log")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_CONFIGURED = False


def _level_from_env(name: str, default: int) -> int:
    level_name = os.environ.get(name, "").strip().upper()
    if not level_name:
        return default
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else default


def _log_path_from_env() -> Path:
    raw = os.environ.get("TALEWEAVER_LOG_PATH", "").strip()
    return Path(raw) if raw else DEFAULT_LOG_PATH


def configure_runtime_logging(*, log_path: Path | None = None, force: bool = False) -> None:
    """Install console + rotating file handlers on the root logger once per process.

    ``force`` re-applies the configuration, replacing handlers installed by an
    earlier call.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    effective_path = log_path or _log_path_from_env()
    max_bytes = int_env(
        "TALEWEAVER_LOG_MAX_BYTES", 5 * 1024 * 1024, minimum=64 * 1024, maximum=100 * 1024 * 1024
    )
    backup_count = int_env("TALEWEAVER_LOG_BACKUP_COUNT", 10, minimum=1, maximum=120)

    effective_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        RotatingFileHandler(
            filename=effective_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ),
    ]

    root = logging.getLogger()
    root.setLevel(_level_from_env("TALEWEAVER_LOG_LEVEL", logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # Request lines are noisy; the app logs its own key=value events.
    logging.getLogger("uvicorn.access").setLevel(
        _level_from_env("TALEWEAVER_ACCESS_LOG_LEVEL", logging.WARNING)
    )

    _CONFIGURED = True
    logging.getLogger(__name__).info("logging.configured path=%s", effective_path)
