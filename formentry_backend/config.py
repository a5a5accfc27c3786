from __future__ import annotations

import os
from pathlib import Path


_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _dir_from_env(name: str, default: Path) -> Path:
    raw = os.environ.get(name)
    if raw and raw.strip():
        return Path(raw).resolve()
    return default.resolve()


# Session files live here, one JSON document per session.
# Override with env var FORMENTRY_SESSIONS_ROOT.
SESSIONS_ROOT = _dir_from_env("FORMENTRY_SESSIONS_ROOT", _PROJECT_ROOT / "sessions")

# Idle lifetime of a session before it counts as expired.
SESSION_TTL_HOURS = float(os.environ.get("FORMENTRY_SESSION_TTL_HOURS", "8"))

# How often the server sweeps expired sessions.
CLEANUP_INTERVAL_SECONDS = int(os.environ.get("FORMENTRY_CLEANUP_INTERVAL_SECONDS", "600"))

# Root of the directory record store: <root>/queue, <root>/archive, <root>/error.
STORE_ROOT = _dir_from_env("FORMENTRY_STORE_ROOT", _PROJECT_ROOT / "formentry")

# Archives are spooled in memory up to this size, then spill to a temp file.
EXPORT_SPOOL_BYTES = int(os.environ.get("FORMENTRY_EXPORT_SPOOL_BYTES", str(8 * 1024 * 1024)))  # 8MB
EXPORT_CHUNK_BYTES = int(os.environ.get("FORMENTRY_EXPORT_CHUNK_BYTES", str(64 * 1024)))  # 64KB

LOG_LEVEL = os.environ.get("FORMENTRY_LOG_LEVEL", "INFO").upper()

SESSION_COOKIE = "formentry_session"
SESSION_ERROR_ATTR = "error"
SESSION_EXPIRED_MESSAGE = "auth.session.expired"

LOGOUT_PATH = "/logout"
EXPORT_PATHS = ("/moduleServlet/formentry/formEntryQueueDownload", "/api/queue/download")

ENTRY_PREFIX = "formEntryQueue"
ENTRY_SUFFIX = ".xml"
