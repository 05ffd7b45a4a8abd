# /campuskb/config.py
"""
Centralized configuration for the knowledge-base portal.
Includes backend location, credentials, local state paths and catalog tuning.
"""
import os
from pathlib import Path
from dotenv import load_dotenv
from rich.console import Console
from .observability import configure_logging

# ==============================================================================
# CONSOLE & ENVIRONMENT
# ==============================================================================
console = Console()
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        value = int(raw)
    except ValueError:
        return int(default)
    return max(minimum, value)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    return max(float(minimum), value)


# ==============================================================================
# GLOBAL CONFIGURATION
# ==============================================================================
# --- Remote Backend ---
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/")
BACKEND_TIMEOUT_S = _env_float("BACKEND_TIMEOUT_S", 60.0, minimum=1.0)

# --- Built-in Administrator ---
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@uol.edu.pk")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

# --- Catalog & Directory Tuning ---
RECENT_UPLOAD_DAYS = _env_int("RECENT_UPLOAD_DAYS", 7, minimum=1)
MIN_PASSWORD_LENGTH = _env_int("MIN_PASSWORD_LENGTH", 6, minimum=1)
DEFAULT_SESSION_ID = "default"
DEFAULT_MIME_TYPE = "application/octet-stream"
UPLOAD_EXTENSIONS = (".pdf", ".doc", ".docx", ".txt")
DOCUMENT_CATEGORIES = (
    "Academic",
    "Admissions",
    "Administration",
    "Campus Life",
    "Faculty",
    "Research",
    "Student Services",
    "Technology",
    "Other",
)

# --- Gateway ---
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = _env_int("API_PORT", 8080)
API_RELOAD = _env_bool("API_RELOAD", False)

# --- Path Configuration ---
# Data directory is at ../../data relative to this file (src/campuskb/config.py)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(_BASE_DIR / "data")))

STATE_DB_PATH = Path(os.getenv("STATE_DB_PATH", str(DATA_DIR / "local_state.sqlite")))
METRICS_DIR = Path(os.getenv("METRICS_DIR", str(DATA_DIR / "logs")))

# --- Create necessary directories ---
DATA_DIR.mkdir(parents=True, exist_ok=True)
STATE_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
METRICS_DIR.mkdir(parents=True, exist_ok=True)
LOG_PATH = Path(os.getenv("LOG_PATH", str(DATA_DIR / "logs" / "app.log")))
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
configure_logging(LOG_PATH)
