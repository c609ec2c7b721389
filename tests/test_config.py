from __future__ import annotations

from pathlib import Path

import pytest

from taleweaver.config import DEFAULT_DB_PATH, DEFAULT_SESSION_SECRET, int_env, load_settings

_ENV_NAMES = (
    "TALEWEAVER_DB_PATH",
    "TALEWEAVER_SESSION_SECRET",
    "TALEWEAVER_SESSION_MAX_AGE_DAYS",
    "TALEWEAVER_ADMIN_USERNAME",
    "TALEWEAVER_ADMIN_PASSWORD",
    "TALEWEAVER_ENV",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_load_settings_defaults() -> None:
    settings = load_settings()

    assert settings.db_path == DEFAULT_DB_PATH
    assert settings.session_secret == DEFAULT_SESSION_SECRET
    assert settings.session_max_age_seconds == 30 * 24 * 60 * 60
    assert settings.admin_username == "admin"
    assert settings.admin_password == "admin123"
    assert settings.is_production is False


def test_load_settings_reads_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TALEWEAVER_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("TALEWEAVER_SESSION_SECRET", "s3cret")
    monkeypatch.setenv("TALEWEAVER_SESSION_MAX_AGE_DAYS", "7")
    monkeypatch.setenv("TALEWEAVER_ADMIN_USERNAME", "editor")
    monkeypatch.setenv("TALEWEAVER_ENV", "Production")

    settings = load_settings()

    assert settings.db_path == tmp_path / "env.db"
    assert settings.session_secret == "s3cret"
    assert settings.session_max_age_days == 7
    assert settings.admin_username == "editor"
    assert settings.is_production is True


def test_explicit_db_path_beats_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TALEWEAVER_DB_PATH", str(tmp_path / "env.db"))

    assert load_settings(tmp_path / "arg.db").db_path == tmp_path / "arg.db"


@pytest.mark.parametrize(("raw", "expected"), [("", 30), ("abc", 30), ("0", 1), ("9999", 365), ("12", 12)])
def test_int_env_clamps_and_falls_back(monkeypatch: pytest.MonkeyPatch, raw: str, expected: int) -> None:
    monkeypatch.setenv("TALEWEAVER_SESSION_MAX_AGE_DAYS", raw)

    assert int_env("TALEWEAVER_SESSION_MAX_AGE_DAYS", 30, minimum=1, maximum=365) == expected
