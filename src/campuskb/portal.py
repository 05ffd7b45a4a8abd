"""
Composition root for the portal.

Builds the key-value store, backend client, catalog and services once, and exposes the
actions the terminal and HTTP front ends share. Role checks and form validation happen
here, before anything is mutated or sent to the backend.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import httpx

from .config import BACKEND_TIMEOUT_S, BACKEND_URL, DEFAULT_MIME_TYPE, METRICS_DIR, STATE_DB_PATH
from .conversation import ConversationStore
from .document_catalog import DocumentCatalog
from .errors import BackendRequestFailed, NotFound, ValidationFailed
from .kb_client import KnowledgeBaseClient
from .metrics import MetricsCollector
from .models import CatalogStats, DirectoryUser, Document, QueryMessage, Role, UploadedFile, User
from .observability import get_logger
from .query_processor import QueryProcessor
from .session import AuthResult, SessionManager
from .storage_provider import KeyValueStore, SqliteKeyValueStore
from .suggestions import suggest
from .user_management import UserDirectory

logger = get_logger(__name__)


@dataclass
class Portal:
    store: KeyValueStore
    client: KnowledgeBaseClient
    metrics: MetricsCollector
    catalog: DocumentCatalog
    sessions: SessionManager
    directory: UserDirectory
    queries: QueryProcessor

    @classmethod
    def build(
        cls,
        store: KeyValueStore,
        *,
        base_url: str = BACKEND_URL,
        transport: httpx.BaseTransport | None = None,
        metrics: MetricsCollector | None = None,
        catalog: DocumentCatalog | None = None,
    ) -> "Portal":
        metrics = metrics or MetricsCollector(METRICS_DIR)
        client = KnowledgeBaseClient(base_url, timeout=BACKEND_TIMEOUT_S, transport=transport, metrics=metrics)
        portal = cls(
            store=store,
            client=client,
            metrics=metrics,
            catalog=catalog or DocumentCatalog(store),
            sessions=SessionManager(store, client),
            directory=UserDirectory(store, client),
            queries=QueryProcessor(client=client, conversations=ConversationStore(store)),
        )
        portal.catalog.load()
        return portal

    @classmethod
    def open(cls, db_path: str | Path = STATE_DB_PATH, **kwargs) -> "Portal":
        """Portal backed by the on-disk state database."""
        return cls.build(SqliteKeyValueStore(db_path), **kwargs)

    def close(self):
        self.catalog.flush()
        self.client.close()
        self.store.close()
        logger.info("portal_closed")

    # --- Session ---

    def current_user(self) -> User | None:
        return self.sessions.current_user()

    def sign_in(self, email: str, password: str) -> AuthResult:
        return self.sessions.sign_in(email, password)

    def sign_up(self, email: str, password: str) -> AuthResult:
        return self.sessions.sign_up(email, password)

    def sign_out(self):
        self.sessions.sign_out()

    # --- Documents ---

    def list_documents(self, search: str | None = None, category: str | None = None) -> list[Document]:
        self.sessions.require_user()
        if search:
            documents = self.catalog.search(search)
        else:
            documents = self.catalog.list()
        if category:
            documents = [doc for doc in documents if doc.category == category]
        return documents

    def upload_document(self, file: UploadedFile | None, category: str, description: str | None = None) -> Document:
        """Uploads to the backend first; the catalog entry is added only when that succeeds."""
        category = str(category or "").strip()
        if file is None or not file.name or not category:
            raise ValidationFailed("Please select a file and category")
        user = self.sessions.require_admin("Only administrators can upload documents")

        result = self.client.upload(user.email, file)
        if not result.success:
            raise BackendRequestFailed(result.message)
        return self.catalog.add(
            name=file.name,
            type=file.content_type or DEFAULT_MIME_TYPE,
            size=file.size,
            uploaded_by=user.email,
            category=category,
            description=(description or "").strip() or None,
        )

    def delete_document(self, doc_id: str):
        self.sessions.require_admin("Only administrators can delete documents.")
        if not self.catalog.delete(doc_id):
            raise NotFound("Could not delete the document.")

    def stats(self) -> CatalogStats:
        self.sessions.require_admin()
        return self.catalog.stats()

    # --- Users ---

    def list_users(self) -> list[DirectoryUser]:
        self.sessions.require_admin()
        return self.directory.list_users()

    def add_user(self, email: str, password: str, role: Role | str = Role.USER) -> DirectoryUser:
        self.sessions.require_admin()
        try:
            role = Role(role)
        except ValueError:
            raise ValidationFailed(f"Unknown role: {role}") from None
        return self.directory.add_user(email, password, role)

    def delete_user(self, user_id: str):
        self.sessions.require_admin()
        if not self.directory.delete_user(user_id):
            raise NotFound("User not found")

    # --- Questions ---

    def ask(self, text: str) -> QueryMessage:
        user = self.sessions.require_user("Please log in to ask questions")
        return self.queries.submit(user, text)

    def retry(self, message_id: str) -> QueryMessage:
        user = self.sessions.require_user()
        return self.queries.retry(user, message_id)

    def conversation(self) -> list[QueryMessage]:
        user = self.sessions.require_user()
        return self.queries.history(user)

    def clear_conversation(self):
        user = self.sessions.require_user()
        self.queries.clear(user)

    def suggestions(self, text: str = "") -> dict[str, list[str]]:
        return suggest(text)

    def backend_metrics(self) -> dict:
        self.sessions.require_admin()
        return self.metrics.get_summary()
