"""
FastAPI gateway for the knowledge-base portal.

Serves the portal actions as JSON so a browser page can drive them. The session is the
single profile-wide session held in local state, mirroring browser local storage.

Run with:
    uvicorn campuskb.api_server:app --host 127.0.0.1 --port 8080
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import API_HOST, API_PORT, API_RELOAD, DOCUMENT_CATEGORIES
from .errors import PortalError
from .models import CatalogStats, DirectoryUser, Document, QueryMessage, Role, UploadedFile, User
from .observability import get_logger
from .portal import Portal

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Question for the knowledge base")


class SessionOut(BaseModel):
    email: str
    role: Role
    session_id: str | None = None

    @classmethod
    def of(cls, user: User) -> "SessionOut":
        return cls(email=user.email, role=user.role, session_id=user.session_id)


class DocumentOut(BaseModel):
    id: str
    name: str
    type: str
    size: int
    uploaded_by: str
    uploaded_at: datetime
    category: str
    description: str | None = None
    download_url: str | None = None

    @classmethod
    def of(cls, doc: Document) -> "DocumentOut":
        return cls(
            id=doc.id,
            name=doc.name,
            type=doc.type,
            size=doc.size,
            uploaded_by=doc.uploaded_by,
            uploaded_at=doc.uploaded_at,
            category=doc.category,
            description=doc.description,
            download_url=doc.download_url,
        )


class CategoryCountOut(BaseModel):
    name: str
    count: int


class StatsOut(BaseModel):
    total_documents: int
    total_size: int
    categories: int
    recent_uploads: int
    category_breakdown: list[CategoryCountOut]

    @classmethod
    def of(cls, stats: CatalogStats) -> "StatsOut":
        return cls(
            total_documents=stats.total_documents,
            total_size=stats.total_size,
            categories=stats.categories,
            recent_uploads=stats.recent_uploads,
            category_breakdown=[CategoryCountOut(name=c.name, count=c.count) for c in stats.category_breakdown],
        )


class UserOut(BaseModel):
    id: str
    email: str
    role: Role
    created_at: str

    @classmethod
    def of(cls, user: DirectoryUser) -> "UserOut":
        return cls(id=user.id, email=user.email, role=user.role, created_at=user.created_at)


class MessageOut(BaseModel):
    id: str
    type: str
    content: str
    timestamp: datetime
    query: str | None = None
    sources: list[str] = Field(default_factory=list)

    @classmethod
    def of(cls, message: QueryMessage) -> "MessageOut":
        return cls(
            id=message.id,
            type=message.role.value,
            content=message.content,
            timestamp=message.timestamp,
            query=message.query,
            sources=list(message.sources),
        )


# ---------------------------------------------------------------------------
# Application state populated at startup
# ---------------------------------------------------------------------------

_state: dict[str, Any] = {}

# Swapped out in tests to run against an in-memory store and a fake backend.
_portal_factory: Callable[[], Portal] = Portal.open


def _portal() -> Portal:
    return _state["portal"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the portal (load local state) at startup; flush and close on shutdown."""
    portal = _portal_factory()
    _state["portal"] = portal
    logger.info("gateway_started", documents=len(portal.catalog))

    yield

    portal.close()
    _state.clear()


app = FastAPI(
    title="Campus Knowledge Base Portal",
    description="Document catalog, user management and Q&A over a remote retrieval backend",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(PortalError)
async def portal_error_handler(_request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ---------------------------------------------------------------------------
# Session endpoints
# ---------------------------------------------------------------------------

@app.post("/auth/signin", response_model=SessionOut)
def signin_endpoint(email: str = Form(""), password: str = Form("")):
    result = _portal().sign_in(email, password)
    if not result.success:
        return JSONResponse(status_code=502 if result.network_error else 401, content={"detail": result.message})
    return SessionOut.of(result.user)


@app.post("/auth/signup", response_model=SessionOut)
def signup_endpoint(email: str = Form(""), password: str = Form("")):
    result = _portal().sign_up(email, password)
    if not result.success:
        return JSONResponse(status_code=502 if result.network_error else 400, content={"detail": result.message})
    return SessionOut.of(result.user)


@app.post("/auth/signout", status_code=204)
def signout_endpoint():
    _portal().sign_out()


@app.get("/auth/me", response_model=SessionOut)
def me_endpoint():
    return SessionOut.of(_portal().sessions.require_user())


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------

@app.get("/categories")
def categories_endpoint() -> list[str]:
    return list(DOCUMENT_CATEGORIES)


@app.get("/documents", response_model=list[DocumentOut])
def list_documents_endpoint(q: str | None = None, category: str | None = None):
    return [DocumentOut.of(doc) for doc in _portal().list_documents(search=q, category=category)]


@app.get("/documents/stats", response_model=StatsOut)
def stats_endpoint():
    return StatsOut.of(_portal().stats())


@app.post("/documents", response_model=DocumentOut, status_code=201)
def upload_endpoint(
    file: UploadFile | None = File(None),
    category: str = Form(""),
    description: str = Form(""),
):
    uploaded = None
    if file is not None and file.filename:
        uploaded = UploadedFile(
            name=file.filename,
            content=file.file.read(),
            content_type=file.content_type or "",
        )
    return DocumentOut.of(_portal().upload_document(uploaded, category, description))


@app.delete("/documents/{doc_id}", status_code=204)
def delete_document_endpoint(doc_id: str):
    _portal().delete_document(doc_id)


# ---------------------------------------------------------------------------
# User directory endpoints
# ---------------------------------------------------------------------------

@app.get("/users", response_model=list[UserOut])
def list_users_endpoint():
    return [UserOut.of(user) for user in _portal().list_users()]


@app.post("/users", response_model=UserOut, status_code=201)
def add_user_endpoint(email: str = Form(""), password: str = Form(""), role: str = Form(Role.USER.value)):
    return UserOut.of(_portal().add_user(email, password, role))


@app.delete("/users/{user_id}", status_code=204)
def delete_user_endpoint(user_id: str):
    _portal().delete_user(user_id)


# ---------------------------------------------------------------------------
# Question endpoints
# ---------------------------------------------------------------------------

@app.post("/query", response_model=MessageOut)
def query_endpoint(request: QueryRequest):
    return MessageOut.of(_portal().ask(request.query))


@app.post("/conversation/{message_id}/retry", response_model=MessageOut)
def retry_endpoint(message_id: str):
    return MessageOut.of(_portal().retry(message_id))


@app.get("/conversation", response_model=list[MessageOut])
def conversation_endpoint():
    return [MessageOut.of(message) for message in _portal().conversation()]


@app.delete("/conversation", status_code=204)
def clear_conversation_endpoint():
    _portal().clear_conversation()


@app.get("/suggestions")
def suggestions_endpoint(q: str = "") -> dict[str, list[str]]:
    return _portal().suggestions(q)


@app.get("/metrics")
def metrics_endpoint():
    """Backend call metrics (administrators only)."""
    return _portal().backend_metrics()


def serve():
    import uvicorn

    uvicorn.run("campuskb.api_server:app", host=API_HOST, port=API_PORT, reload=API_RELOAD)
