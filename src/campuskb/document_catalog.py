# /campuskb/document_catalog.py
"""
Local catalog of uploaded document metadata.
The catalog never talks to the network: it records what this profile has uploaded,
mirrored to the key-value store after every mutation.
"""
from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta
from typing import Callable

from rich.table import Table, box

# Local Imports
from .config import RECENT_UPLOAD_DAYS
from .models import CatalogStats, CategoryCount, Document, new_id, utcnow
from .observability import get_logger
from .storage_provider import DOCUMENTS_KEY, KeyValueStore

logger = get_logger(__name__)

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size: int) -> str:
    """Human-readable size, e.g. 1536 -> '1.5 KB'."""
    size = int(size or 0)
    if size <= 0:
        return "0 Bytes"
    index = 0
    while size >= 1024 ** (index + 1) and index < len(_SIZE_UNITS) - 1:
        index += 1
    value = round(size / (1024 ** index), 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[index]}"


class DocumentCatalog:
    """In-memory list of Document records backed by a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        recent_days: int = RECENT_UPLOAD_DAYS,
    ):
        self.store = store
        self._clock = clock
        self._recent_window = timedelta(days=int(recent_days))
        self._lock = threading.RLock()
        self._documents: list[Document] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    @staticmethod
    def _newest_first(documents: list[Document]) -> list[Document]:
        return sorted(documents, key=lambda doc: doc.uploaded_at, reverse=True)

    def load(self) -> int:
        """Replaces in-memory state with the persisted collection; returns the record count."""
        raw = self.store.get(DOCUMENTS_KEY)
        documents: list[Document] = []
        if raw:
            try:
                payload = json.loads(raw)
                if not isinstance(payload, list):
                    raise TypeError(f"expected a list, got {type(payload).__name__}")
                documents = [Document.from_dict(item) for item in payload]
            except (TypeError, ValueError, KeyError, AttributeError) as exc:
                logger.error("catalog_load_failed", error=str(exc))
                documents = []
        with self._lock:
            self._documents = documents
        logger.info("catalog_loaded", documents=len(documents))
        return len(documents)

    def flush(self):
        """Persists the full collection."""
        with self._lock:
            payload = json.dumps([doc.to_dict() for doc in self._documents], ensure_ascii=True)
        self.store.set(DOCUMENTS_KEY, payload)

    def add(
        self,
        *,
        name: str,
        type: str,
        size: int,
        uploaded_by: str,
        category: str,
        description: str | None = None,
        download_url: str | None = None,
    ) -> Document:
        """Records a new document with a fresh id and the current timestamp."""
        if int(size) < 0:
            raise ValueError("document size must be >= 0")
        with self._lock:
            known_ids = {doc.id for doc in self._documents}
            doc_id = new_id("doc")
            while doc_id in known_ids:
                doc_id = new_id("doc")
            document = Document(
                id=doc_id,
                name=str(name),
                type=str(type),
                size=int(size),
                uploaded_by=str(uploaded_by),
                uploaded_at=self._clock(),
                category=str(category),
                description=description or None,
                download_url=download_url or None,
            )
            self._documents.append(document)
            self.flush()
        logger.info(
            "document_added",
            doc_id=document.id,
            category=document.category,
            bytes=document.size,
            uploaded_by=document.uploaded_by,
        )
        return document

    def get(self, doc_id: str) -> Document | None:
        with self._lock:
            for doc in self._documents:
                if doc.id == doc_id:
                    return doc
        return None

    def list(self) -> list[Document]:
        with self._lock:
            return self._newest_first(self._documents)

    def delete(self, doc_id: str) -> bool:
        """Removes a document by id. Authorization is the caller's job."""
        with self._lock:
            for index, doc in enumerate(self._documents):
                if doc.id == doc_id:
                    del self._documents[index]
                    self.flush()
                    break
            else:
                return False
        logger.info("document_deleted", doc_id=str(doc_id))
        return True

    def search(self, text: str) -> list[Document]:
        """Case-insensitive substring match on name, category and description."""
        needle = str(text or "").casefold()
        with self._lock:
            matches = [
                doc
                for doc in self._documents
                if needle in doc.name.casefold()
                or needle in doc.category.casefold()
                or needle in (doc.description or "").casefold()
            ]
        return self._newest_first(matches)

    def filter_by_category(self, category: str) -> list[Document]:
        with self._lock:
            matches = [doc for doc in self._documents if doc.category == category]
        return self._newest_first(matches)

    def stats(self, now: datetime | None = None) -> CatalogStats:
        current = now or self._clock()
        cutoff = current - self._recent_window
        with self._lock:
            documents = list(self._documents)

        counts: dict[str, int] = {}
        for doc in documents:
            counts[doc.category] = counts.get(doc.category, 0) + 1

        return CatalogStats(
            total_documents=len(documents),
            total_size=sum(doc.size for doc in documents),
            categories=len(counts),
            recent_uploads=sum(1 for doc in documents if doc.uploaded_at > cutoff),
            category_breakdown=[CategoryCount(name=name, count=count) for name, count in counts.items()],
        )


def build_documents_table(documents: list[Document], title: str = "Documents") -> Table:
    """Renders catalog records as a rich table."""
    table = Table(title=title, border_style="blue", header_style="bold", box=box.SQUARE)
    table.add_column("ID", style="cyan", overflow="fold")
    table.add_column("Name", style="magenta")
    table.add_column("Category", style="green")
    table.add_column("Size", style="yellow", justify="right")
    table.add_column("Uploaded By", style="white")
    table.add_column("Uploaded At", style="white")

    for doc in documents:
        table.add_row(
            doc.id,
            doc.name,
            doc.category,
            format_file_size(doc.size),
            doc.uploaded_by,
            doc.uploaded_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table
