"""Single-administrator credential checks and session gating."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from collections.abc import MutableMapping
from typing import Any

from taleweaver.domain.models import AdminUser
from taleweaver.domain.ports import NarrativeStore

PBKDF2_ITERATIONS = 310_000
PBKDF2_MAX_ITERATIONS = 10_000_000
SESSION_USER_ID_KEY = "userId"
SESSION_USERNAME_KEY = "username"

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt_hex, digest_hex = password_hash.split("$", maxsplit=3)
        salt = bytes.fromhex(salt_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256" or not 1 <= rounds <= PBKDF2_MAX_ITERATIONS:
        return False
    recomputed = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(recomputed.hex(), digest_hex)


class AuthGate:
    """Verify the administrator and read/write the session principal."""

    def __init__(self, store: NarrativeStore) -> None:
        self._store = store

    def ensure_admin(self, username: str, password: str) -> AdminUser:
        """Create the administrator account when it does not exist yet."""
        existing = self._store.get_user_by_username(username=username)
        if existing is not None:
            logger.info("auth.admin_exists user_id=%s", existing.user_id)
            return existing
        created = self._store.create_user(username=username, password_hash=hash_password(password))
        if created is None:
            # Lost a race with another process seeding the same account.
            raced = self._store.get_user_by_username(username=username)
            if raced is None:
                raise RuntimeError("Administrator account could not be created.")
            return raced
        logger.info("auth.admin_created user_id=%s username=%s", created.user_id, username)
        return created

    def reset_password(self, username: str, password: str) -> AdminUser | None:
        return self._store.set_user_password(
            username=username, password_hash=hash_password(password)
        )

    def verify_credentials(self, username: str, password: str) -> AdminUser | None:
        """Return the matching user for an exact username/password pair, else None."""
        user = self._store.get_user_by_username(username=username)
        if user is None:
            logger.info("auth.login_rejected reason=unknown_user")
            return None
        if not verify_password(password, user.password_hash):
            logger.info("auth.login_rejected reason=bad_password user_id=%s", user.user_id)
            return None
        logger.info("auth.login_accepted user_id=%s", user.user_id)
        return user

    @staticmethod
    def establish_session(session: MutableMapping[str, Any], user: AdminUser) -> None:
        session[SESSION_USER_ID_KEY] = user.user_id
        session[SESSION_USERNAME_KEY] = user.username

    @staticmethod
    def clear_session(session: MutableMapping[str, Any]) -> None:
        session.pop(SESSION_USER_ID_KEY, None)
        session.pop(SESSION_USERNAME_KEY, None)

    @staticmethod
    def require_authenticated(session: MutableMapping[str, Any]) -> bool:
        return bool(session.get(SESSION_USER_ID_KEY))

    @staticmethod
    def session_username(session: MutableMapping[str, Any]) -> str | None:
        username = session.get(SESSION_USERNAME_KEY)
        return str(username) if username else None
