"""
Domain records shared by the catalog, session holder and conversation log.
Records serialize to plain JSON-compatible dicts; datetimes travel as ISO-8601 strings.
"""
from __future__ import annotations

import mimetypes
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(raw: Any) -> datetime:
    """Parses an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(raw, datetime):
        value = raw
    else:
        text = str(raw or "").strip()
        if not text:
            raise ValueError("empty timestamp")
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    ERROR = "error"


@dataclass(frozen=True)
class Document:
    id: str
    name: str
    type: str
    size: int
    uploaded_by: str
    uploaded_at: datetime
    category: str
    description: str | None = None
    download_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "size": int(self.size),
            "uploadedBy": self.uploaded_by,
            "uploadedAt": self.uploaded_at.isoformat(),
            "category": self.category,
            "description": self.description,
            "downloadUrl": self.download_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            type=str(data.get("type") or ""),
            size=max(0, int(data.get("size") or 0)),
            uploaded_by=str(data.get("uploadedBy") or ""),
            uploaded_at=parse_timestamp(data["uploadedAt"]),
            category=str(data.get("category") or ""),
            description=data.get("description") or None,
            download_url=data.get("downloadUrl") or None,
        )


@dataclass(frozen=True)
class CategoryCount:
    name: str
    count: int


@dataclass(frozen=True)
class CatalogStats:
    total_documents: int
    total_size: int
    categories: int
    recent_uploads: int
    category_breakdown: list[CategoryCount] = field(default_factory=list)


@dataclass(frozen=True)
class User:
    """The locally recognized identity for this profile."""

    email: str
    role: Role
    session_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> dict[str, Any]:
        return {"email": self.email, "role": self.role.value, "sessionId": self.session_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            email=str(data["email"]),
            role=Role(str(data["role"])),
            session_id=data.get("sessionId") or None,
        )


@dataclass(frozen=True)
class DirectoryUser:
    id: str
    email: str
    role: Role
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email, "role": self.role.value, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DirectoryUser":
        return cls(
            id=str(data["id"]),
            email=str(data["email"]),
            role=Role(str(data.get("role") or Role.USER.value)),
            created_at=str(data.get("createdAt") or ""),
        )


@dataclass(frozen=True)
class QueryMessage:
    id: str
    role: MessageRole
    content: str
    timestamp: datetime
    query: str | None = None
    sources: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "query": self.query,
            "sources": list(self.sources),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueryMessage":
        return cls(
            id=str(data["id"]),
            role=MessageRole(str(data["type"])),
            content=str(data.get("content") or ""),
            timestamp=parse_timestamp(data["timestamp"]),
            query=data.get("query") or None,
            sources=tuple(str(s) for s in (data.get("sources") or [])),
        )


@dataclass(frozen=True)
class UploadedFile:
    """A file selected for upload: name, raw bytes and MIME type."""

    name: str
    content: bytes
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadedFile":
        source = Path(path)
        guessed, _ = mimetypes.guess_type(source.name)
        return cls(name=source.name, content=source.read_bytes(), content_type=guessed or "")
