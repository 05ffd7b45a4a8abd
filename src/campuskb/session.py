"""
Session/identity holder.

The current user lives in the key-value store under a single key. Roles are asserted
locally: the configured administrator pair never reaches the backend, and any other
accepted credentials become a standard user.
"""
from __future__ import annotations

import json
import secrets
import time
from dataclasses import dataclass

from .config import ADMIN_EMAIL, ADMIN_PASSWORD
from .errors import AccessDenied, NotSignedIn, ValidationFailed
from .kb_client import KnowledgeBaseClient
from .models import Role, User
from .observability import get_logger
from .storage_provider import SESSION_KEY, KeyValueStore

logger = get_logger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    value = int(value)
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_session_id() -> str:
    """Opaque token: random part followed by the current time, both base36."""
    return _to_base36(secrets.randbits(64)) + _to_base36(int(time.time() * 1000))


@dataclass(frozen=True)
class AuthResult:
    success: bool
    message: str = ""
    user: User | None = None
    network_error: bool = False


class SessionManager:
    def __init__(
        self,
        store: KeyValueStore,
        client: KnowledgeBaseClient,
        *,
        admin_email: str = ADMIN_EMAIL,
        admin_password: str = ADMIN_PASSWORD,
    ):
        self.store = store
        self.client = client
        self.admin_email = admin_email
        self._admin_password = admin_password

    def current_user(self) -> User | None:
        raw = self.store.get(SESSION_KEY)
        if not raw:
            return None
        try:
            return User.from_dict(json.loads(raw))
        except (TypeError, ValueError, KeyError) as exc:
            logger.warning("session_load_failed", error=str(exc))
            return None

    def require_user(self, message: str = "Please sign in to continue") -> User:
        user = self.current_user()
        if user is None:
            raise NotSignedIn(message)
        return user

    def require_admin(self, message: str = "Only administrators can perform this action") -> User:
        user = self.require_user()
        if not user.is_admin:
            logger.warning("admin_action_denied", email=user.email)
            raise AccessDenied(message)
        return user

    def _persist(self, user: User) -> User:
        self.store.set(SESSION_KEY, json.dumps(user.to_dict(), ensure_ascii=True))
        return user

    @staticmethod
    def _check_fields(email: str, password: str) -> str:
        cleaned = str(email or "").strip()
        if not cleaned or not password:
            raise ValidationFailed("Email and password are required")
        return cleaned

    def sign_in(self, email: str, password: str) -> AuthResult:
        email = self._check_fields(email, password)
        if email == self.admin_email and password == self._admin_password:
            user = self._persist(User(email=email, role=Role.ADMIN, session_id=generate_session_id()))
            logger.info("signed_in", email=email, role=user.role.value, remote=False)
            return AuthResult(True, user=user)

        result = self.client.sign_in(email, password)
        if result.success:
            user = self._persist(User(email=email, role=Role.USER, session_id=generate_session_id()))
            logger.info("signed_in", email=email, role=user.role.value, remote=True)
            return AuthResult(True, user=user)
        if result.status_code is None:
            return AuthResult(False, result.message, network_error=True)
        return AuthResult(False, "Invalid credentials")

    def sign_up(self, email: str, password: str) -> AuthResult:
        email = self._check_fields(email, password)
        result = self.client.sign_up(email, password)
        if result.success:
            user = self._persist(User(email=email, role=Role.USER, session_id=generate_session_id()))
            logger.info("signed_up", email=email)
            return AuthResult(True, user=user)
        if result.status_code is None:
            return AuthResult(False, result.message, network_error=True)
        return AuthResult(False, "Registration failed")

    def sign_out(self):
        user = self.current_user()
        self.store.remove(SESSION_KEY)
        if user is not None:
            logger.info("signed_out", email=user.email)
