from __future__ import annotations

from pathlib import Path

from taleweaver.adapters.sqlite_narrative_store import SQLiteNarrativeStore
from taleweaver.core.auth_gate import (
    SESSION_USER_ID_KEY,
    SESSION_USERNAME_KEY,
    AuthGate,
    hash_password,
    verify_password,
)


def _gate(tmp_path: Path) -> tuple[SQLiteNarrativeStore, AuthGate]:
    store = SQLiteNarrativeStore(db_path=tmp_path / "auth.db")
    return store, AuthGate(store)


def test_password_hashes_are_salted_and_verifiable() -> None:
    first = hash_password("admin123")
    second = hash_password("admin123")

    assert first != second
    assert "admin123" not in first
    assert verify_password("admin123", first)
    assert not verify_password("admin124", first)


def test_malformed_hashes_never_verify() -> None:
    assert not verify_password("x", "")
    assert not verify_password("x", "plaintext")
    assert not verify_password("x", "md5$1$00$00")
    assert not verify_password("x", "pbkdf2_sha256$many$zz$00")


def test_ensure_admin_is_idempotent(tmp_path: Path) -> None:
    _, gate = _gate(tmp_path)

    created = gate.ensure_admin("admin", "admin123")
    again = gate.ensure_admin("admin", "different")

    assert again.user_id == created.user_id
    assert gate.verify_credentials("admin", "admin123") is not None
    assert gate.verify_credentials("admin", "different") is None


def test_verify_credentials_rejects_unknown_and_case_mismatch(tmp_path: Path) -> None:
    _, gate = _gate(tmp_path)
    gate.ensure_admin("admin", "admin123")

    assert gate.verify_credentials("ghost", "admin123") is None
    assert gate.verify_credentials("Admin", "admin123") is None
    assert gate.verify_credentials("admin", "ADMIN123") is None


def test_reset_password_replaces_the_hash(tmp_path: Path) -> None:
    _, gate = _gate(tmp_path)
    gate.ensure_admin("admin", "admin123")

    updated = gate.reset_password("admin", "s3cret")

    assert updated is not None
    assert gate.verify_credentials("admin", "s3cret") is not None
    assert gate.verify_credentials("admin", "admin123") is None
    assert gate.reset_password("ghost", "x") is None


def test_session_helpers_round_trip_the_principal(tmp_path: Path) -> None:
    _, gate = _gate(tmp_path)
    user = gate.ensure_admin("admin", "admin123")
    session: dict[str, object] = {"sessionId": "reader-token"}

    assert not AuthGate.require_authenticated(session)
    AuthGate.establish_session(session, user)

    assert session[SESSION_USER_ID_KEY] == user.user_id
    assert AuthGate.require_authenticated(session)
    assert AuthGate.session_username(session) == "admin"

    AuthGate.clear_session(session)

    assert SESSION_USERNAME_KEY not in session
    assert not AuthGate.require_authenticated(session)
    assert session == {"sessionId": "reader-token"}


def test_corrupted_iteration_counts_fail_closed() -> None:
    _, _, salt_hex, digest_hex = hash_password("admin123").split("$")

    for rounds in ("0", "-5", str(10**30)):
        assert not verify_password("admin123", f"pbkdf2_sha256${rounds}${salt_hex}${digest_hex}")
