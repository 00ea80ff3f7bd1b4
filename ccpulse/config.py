"""ccpulse configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(value.strip()).expanduser()

# Agent data locations
CLAUDE_HOME = _env_path("CCPULSE_CLAUDE_HOME", Path.home() / ".claude")
PROJECTS_DIR = _env_path("CCPULSE_PROJECTS_DIR", CLAUDE_HOME / "projects")
HISTORY_FILE = _env_path("CCPULSE_HISTORY_FILE", CLAUDE_HOME / "history.jsonl")

# Polling
POLL_INTERVAL_SECONDS = _env_float("CCPULSE_POLL_INTERVAL_SECONDS", 2.0)
WATCHER_ENABLED = _env_bool("CCPULSE_WATCHER_ENABLED", True)
EMIT_HISTORICAL_EVENTS_ON_FIRST_POLL = _env_bool("CCPULSE_EMIT_HISTORICAL_EVENTS", False)
INITIAL_PENDING_MAX_AGE_SECONDS = _env_int("CCPULSE_INITIAL_PENDING_MAX_AGE_SECONDS", 30 * 60)
SESSION_ACTIVITY_WINDOW_SECONDS = _env_int("CCPULSE_SESSION_ACTIVITY_WINDOW_SECONDS", 120)

# Agent toasts
AGENT_TOASTS_ENABLED = _env_bool("CCPULSE_AGENT_TOASTS_ENABLED", True)
TOAST_AUTO_HIDE_SECONDS = _env_float("CCPULSE_TOAST_AUTO_HIDE_SECONDS", 4.0)
TOAST_MAX_VISIBLE = _env_int("CCPULSE_TOAST_MAX_VISIBLE", 3)

# Observability
OTEL_ENABLED = _env_bool("CCPULSE_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CCPULSE_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CCPULSE_OTEL_SERVICE_NAME", "ccpulse")
PROM_PORT = _env_int("CCPULSE_PROM_PORT", 0)

# Server settings
HOST = os.getenv("CCPULSE_HOST", "127.0.0.1")
PORT = _env_int("CCPULSE_PORT", 8000)

# CORS
FRONTEND_ORIGIN = os.getenv("CCPULSE_FRONTEND_ORIGIN", "http://localhost:3000")
