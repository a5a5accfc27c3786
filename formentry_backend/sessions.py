from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .config import SESSION_TTL_HOURS, SESSIONS_ROOT
from .security import normalize_session_id, safe_join


logger = logging.getLogger(__name__)


@dataclass
class Session:
    session_id: str
    created_at: float
    last_access: float
    user: Optional[str] = None
    attributes: dict[str, Any] = field(default_factory=dict)
    expired: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user) and not self.expired

    def set_attribute(self, name: str, value: Any) -> None:
        self.attributes[name] = value

    def pop_attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.pop(name, default)

    def to_meta(self) -> dict:
        return {
            "created_at": self.created_at,
            "last_access": self.last_access,
            "user": self.user,
            "attributes": self.attributes,
            "version": 1,
        }


def _now_epoch() -> float:
    return time.time()


def _load_meta(path: Path) -> Optional[dict]:
    try:
        meta = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return meta if isinstance(meta, dict) else None


def _meta_timestamps(meta: dict) -> Optional[tuple[float, float]]:
    """(created_at, last_access) from session meta, or None when malformed."""
    try:
        created_at = float(meta.get("created_at", 0))
        last_access = float(meta.get("last_access", created_at))
    except (TypeError, ValueError):
        return None
    return created_at, last_access


def _write_meta(path: Path, meta: dict) -> None:
    path.write_text(json.dumps(meta, indent=2, sort_keys=True), encoding="utf-8")


def is_authenticated(session: Optional[Session]) -> bool:
    return session is not None and session.is_authenticated


class SessionStore:
    """File-backed web sessions: <root>/<session_id>.json.

    A session is authenticated when a user is bound to it and it has been
    accessed within the TTL. Expired sessions stay readable (so an error
    message can be attached before the logout redirect) until the sweep
    removes them.
    """

    def __init__(self, root: Path = SESSIONS_ROOT, ttl_hours: float = SESSION_TTL_HOURS):
        self.root = Path(root).resolve()
        self.ttl_seconds = max(0.0, ttl_hours) * 3600.0
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return safe_join(self.root, f"{normalize_session_id(session_id)}.json")

    def _is_expired(self, last_access: float, now: float) -> bool:
        return bool(self.ttl_seconds) and (now - last_access) > self.ttl_seconds

    def create(self, user: Optional[str] = None) -> Session:
        now = _now_epoch()
        session = Session(session_id=str(uuid.uuid4()), created_at=now, last_access=now, user=user)
        self.save(session)
        logger.info("Created session for user %s", user or "<anonymous>")
        return session

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        try:
            path = self._path(session_id)
        except ValueError:
            return None
        meta = _load_meta(path)
        if meta is None:
            return None
        timestamps = _meta_timestamps(meta)
        if timestamps is None:
            return None
        created_at, last_access = timestamps
        attributes = meta.get("attributes")
        return Session(
            session_id=path.stem,
            created_at=created_at,
            last_access=last_access,
            user=meta.get("user"),
            attributes=attributes if isinstance(attributes, dict) else {},
            expired=self._is_expired(last_access, _now_epoch()),
        )

    def save(self, session: Session) -> None:
        _write_meta(self._path(session.session_id), session.to_meta())

    def touch(self, session_id: str) -> Session:
        session = self.get(session_id)
        if session is None:
            raise FileNotFoundError("Session not found")
        if not session.expired:
            session.last_access = _now_epoch()
            self.save(session)
        return session

    def delete(self, session_id: str) -> None:
        try:
            path = self._path(session_id)
        except ValueError:
            return
        path.unlink(missing_ok=True)

    def cleanup_expired(self) -> int:
        """Delete sessions whose last_access is older than the TTL.

        Returns the number of deleted sessions.
        """
        deleted = 0
        if not self.root.exists():
            return 0

        now = _now_epoch()
        for child in self.root.glob("*.json"):
            meta = _load_meta(child)
            timestamps = _meta_timestamps(meta) if meta is not None else None
            if timestamps is None:
                continue
            if self._is_expired(timestamps[1], now):
                child.unlink(missing_ok=True)
                deleted += 1
        if deleted:
            logger.info("Removed %d expired session(s)", deleted)
        return deleted
