"""
HTTP client for the remote knowledge-base backend.

Wraps the four backend endpoints (/upload, /signin, /signup, /retrieve) and folds every
outcome, including transport errors, into an ApiResult. Nothing here raises to the caller.
"""
from __future__ import annotations

import time
from dataclasses import dataclass

import httpx

from .config import BACKEND_TIMEOUT_S, BACKEND_URL, DEFAULT_MIME_TYPE
from .metrics import MetricsCollector
from .models import UploadedFile
from .observability import get_logger

logger = get_logger(__name__)

NETWORK_ERROR_MESSAGE = "Network error. Please try again."
UPLOAD_OK_MESSAGE = "Document uploaded successfully"
UPLOAD_FAILED_MESSAGE = "Failed to upload document"
QUERY_FAILED_MESSAGE = "Failed to query knowledge base"


@dataclass(frozen=True)
class ApiResult:
    success: bool
    message: str = ""
    body: str | None = None
    status_code: int | None = None


class KnowledgeBaseClient:
    """Thin request/response wrapper around the backend endpoints."""

    def __init__(
        self,
        base_url: str = BACKEND_URL,
        *,
        timeout: float = BACKEND_TIMEOUT_S,
        transport: httpx.BaseTransport | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.base_url = str(base_url).rstrip("/")
        self.metrics = metrics
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"accept": "application/json"},
            transport=transport,
        )

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        self.close()

    def _post(self, endpoint: str, **kwargs) -> httpx.Response | None:
        """POSTs and returns the response, or None when the transport failed."""
        start = time.perf_counter()
        try:
            response = self._http.post(endpoint, **kwargs)
        except httpx.HTTPError as exc:
            latency_ms = (time.perf_counter() - start) * 1000.0
            logger.error(
                "backend_request_failed",
                endpoint=endpoint,
                error=f"{type(exc).__name__}: {exc}",
                latency_ms=round(latency_ms, 2),
            )
            if self.metrics is not None:
                self.metrics.record_request(endpoint, latency_ms, success=False)
            return None

        latency_ms = (time.perf_counter() - start) * 1000.0
        if self.metrics is not None:
            self.metrics.record_request(
                endpoint,
                latency_ms,
                success=response.is_success,
                status_code=response.status_code,
            )
        if not response.is_success:
            logger.warning(
                "backend_error_status",
                endpoint=endpoint,
                status_code=response.status_code,
                latency_ms=round(latency_ms, 2),
            )
        return response

    def upload(self, email: str, file: UploadedFile) -> ApiResult:
        """Sends a file to /upload as multipart form data. The response body is not used."""
        response = self._post(
            "/upload",
            data={"email": email},
            files={"file": (file.name, file.content, file.content_type or DEFAULT_MIME_TYPE)},
        )
        if response is None:
            return ApiResult(False, NETWORK_ERROR_MESSAGE)
        if response.is_success:
            logger.info("backend_upload_ok", file_name=file.name, bytes=file.size)
            return ApiResult(True, UPLOAD_OK_MESSAGE, status_code=response.status_code)
        return ApiResult(False, UPLOAD_FAILED_MESSAGE, body=response.text, status_code=response.status_code)

    def query(self, email: str, session_id: str, text: str) -> ApiResult:
        """Asks /retrieve; on success the raw text body is returned for answer extraction."""
        response = self._post(
            "/retrieve",
            data={"email": email, "session_id": session_id, "query": text},
        )
        if response is None:
            return ApiResult(False, NETWORK_ERROR_MESSAGE)
        if response.is_success:
            return ApiResult(True, body=response.text, status_code=response.status_code)
        return ApiResult(False, QUERY_FAILED_MESSAGE, status_code=response.status_code)

    def sign_in(self, email: str, password: str) -> ApiResult:
        return self._credentials_call("/signin", email, password)

    def sign_up(self, email: str, password: str) -> ApiResult:
        return self._credentials_call("/signup", email, password)

    def _credentials_call(self, endpoint: str, email: str, password: str) -> ApiResult:
        response = self._post(endpoint, data={"email": email, "password": password})
        if response is None:
            return ApiResult(False, NETWORK_ERROR_MESSAGE)
        return ApiResult(
            response.is_success,
            body=response.text,
            status_code=response.status_code,
        )
