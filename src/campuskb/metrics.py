"""
Request metrics for calls made to the remote knowledge-base backend.

Tracks: latency, call counts per endpoint, failures.
Logs one JSON line per call to <log_dir>/metrics.jsonl.
"""
from __future__ import annotations

import json
import threading
import time
from pathlib import Path

from .config import METRICS_DIR


class MetricsCollector:
    """Thread-safe backend call tracker with JSONL file logging."""

    def __init__(self, log_dir: str | Path = METRICS_DIR):
        self._lock = threading.Lock()
        self._start_time: float = time.time()

        # Counters.
        self._total_requests: int = 0
        self._total_latency_ms: float = 0.0
        self._error_count: int = 0
        self._min_latency_ms: float = float("inf")
        self._max_latency_ms: float = 0.0
        self._per_endpoint: dict[str, dict[str, int]] = {}

        # Logging.
        self._log_dir = Path(log_dir)
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._log_path = self._log_dir / "metrics.jsonl"

    @property
    def log_path(self) -> Path:
        return self._log_path

    def record_request(
        self,
        endpoint: str,
        latency_ms: float,
        success: bool,
        status_code: int | None = None,
    ) -> None:
        """Records a single backend call and appends it to the JSONL log."""
        entry = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "endpoint": endpoint,
            "latency_ms": round(latency_ms, 2),
            "success": success,
            "status_code": status_code,
        }

        with self._lock:
            self._total_requests += 1
            self._total_latency_ms += latency_ms
            if latency_ms < self._min_latency_ms:
                self._min_latency_ms = latency_ms
            if latency_ms > self._max_latency_ms:
                self._max_latency_ms = latency_ms
            if not success:
                self._error_count += 1
            bucket = self._per_endpoint.setdefault(endpoint, {"requests": 0, "errors": 0})
            bucket["requests"] += 1
            if not success:
                bucket["errors"] += 1

        # Append to JSONL file outside the lock.
        try:
            with open(self._log_path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry, ensure_ascii=True) + "\n")
        except OSError:
            pass

    def get_summary(self) -> dict:
        """Returns a metrics snapshot."""
        with self._lock:
            total = self._total_requests
            avg_lat = (self._total_latency_ms / total) if total > 0 else 0.0
            min_lat = self._min_latency_ms if total > 0 else 0.0
            max_lat = self._max_latency_ms if total > 0 else 0.0
            errors = self._error_count
            endpoints = {name: dict(counts) for name, counts in self._per_endpoint.items()}

        uptime_s = time.time() - self._start_time

        return {
            "latency": {
                "avg_ms": round(avg_lat, 2),
                "min_ms": round(min_lat, 2),
                "max_ms": round(max_lat, 2),
            },
            "throughput": {
                "total_requests": total,
                "uptime_seconds": round(uptime_s, 1),
            },
            "endpoints": endpoints,
            "errors": {
                "count": errors,
                "rate_percent": round((errors / total * 100) if total > 0 else 0.0, 2),
            },
        }
