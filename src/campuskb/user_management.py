"""
Administrator-maintained user directory.

Accounts are created on the backend through /signup; the directory keeps the local list
shown to administrators, including the role they picked. The built-in administrator is
always present and cannot be removed.
"""
from __future__ import annotations

import json
import threading
from datetime import date

from .config import ADMIN_EMAIL, MIN_PASSWORD_LENGTH
from .errors import AccessDenied, BackendRequestFailed, ValidationFailed
from .kb_client import KnowledgeBaseClient
from .models import DirectoryUser, Role, new_id
from .observability import get_logger
from .storage_provider import USERS_KEY, KeyValueStore

logger = get_logger(__name__)

SEED_ADMIN_CREATED_AT = "2024-01-01"


class UserDirectory:
    def __init__(
        self,
        store: KeyValueStore,
        client: KnowledgeBaseClient,
        *,
        admin_email: str = ADMIN_EMAIL,
        min_password_length: int = MIN_PASSWORD_LENGTH,
    ):
        self.store = store
        self.client = client
        self.admin_email = admin_email
        self.min_password_length = int(min_password_length)
        self._lock = threading.RLock()

    def _seed(self) -> list[DirectoryUser]:
        return [DirectoryUser(id="1", email=self.admin_email, role=Role.ADMIN, created_at=SEED_ADMIN_CREATED_AT)]

    def list_users(self) -> list[DirectoryUser]:
        raw = self.store.get(USERS_KEY)
        if not raw:
            return self._seed()
        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise TypeError(f"expected a list, got {type(payload).__name__}")
            users = [DirectoryUser.from_dict(item) for item in payload]
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            logger.error("user_directory_load_failed", error=str(exc))
            return self._seed()
        if not any(user.email == self.admin_email for user in users):
            users = self._seed() + users
        return users

    def _save(self, users: list[DirectoryUser]):
        self.store.set(USERS_KEY, json.dumps([user.to_dict() for user in users], ensure_ascii=True))

    def add_user(self, email: str, password: str, role: Role = Role.USER) -> DirectoryUser:
        email = str(email or "").strip()
        if not email:
            raise ValidationFailed("Please enter an email address")
        if not password:
            raise ValidationFailed("Please enter a password")
        if len(password) < self.min_password_length:
            raise ValidationFailed(f"Password must be at least {self.min_password_length} characters long")

        with self._lock:
            users = self.list_users()
            if any(user.email == email for user in users):
                raise ValidationFailed("User with this email already exists")

            result = self.client.sign_up(email, password)
            if not result.success:
                if result.status_code is None:
                    raise BackendRequestFailed("Failed to create user. Please check your connection.")
                raise BackendRequestFailed(f"Failed to create user: {result.body or ''}".rstrip())

            created = DirectoryUser(
                id=new_id("user"),
                email=email,
                role=Role(role),
                created_at=date.today().isoformat(),
            )
            users.append(created)
            self._save(users)
        logger.info("directory_user_added", email=email, role=created.role.value)
        return created

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            users = self.list_users()
            target = next((user for user in users if user.id == user_id), None)
            if target is None:
                return False
            if target.email == self.admin_email:
                raise AccessDenied("Cannot delete the main admin user")
            self._save([user for user in users if user.id != user_id])
        logger.info("directory_user_deleted", email=target.email)
        return True
