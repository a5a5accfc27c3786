from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Optional


_SESSION_ID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}$")

# Signed 32-bit record ids; anything wider is rejected like malformed input.
_RECORD_ID_RE = re.compile(r"[+-]?\d+")
RECORD_ID_MIN = -(2**31)
RECORD_ID_MAX = 2**31 - 1


class InvalidParameter(ValueError):
    """A request parameter could not be parsed."""

    def __init__(self, name: str, value: Optional[str]):
        super().__init__(f"Invalid {name} parameter: {value!r}")
        self.name = name
        self.value = value


def normalize_session_id(session_id: str) -> str:
    """Validate and normalize a session id.

    Treat session IDs as capability tokens; keep them unguessable and validate
    them strictly to reduce accidental path tricks.
    """
    if not isinstance(session_id, str):
        raise ValueError("Invalid session id")
    session_id = session_id.strip()
    if not _SESSION_ID_RE.match(session_id):
        # uuid.UUID also accepts many formats; we want strict canonical UUID4 string.
        raise ValueError("Invalid session id")
    return str(uuid.UUID(session_id))


def parse_record_id(value: Optional[str], name: str = "id") -> int:
    """Parse a base-10 record id.

    Only an optional sign followed by decimal digits (any script) is accepted:
    no surrounding whitespace, no underscores, nothing outside the signed
    32-bit range. int() alone is far more lenient than that.
    """
    if not isinstance(value, str) or not _RECORD_ID_RE.fullmatch(value):
        raise InvalidParameter(name, value)
    parsed = int(value)
    if parsed < RECORD_ID_MIN or parsed > RECORD_ID_MAX:
        raise InvalidParameter(name, value)
    return parsed


def safe_join(base_dir: Path, *parts: str) -> Path:
    """Join paths and ensure the result stays within base_dir."""
    base_dir = base_dir.resolve()
    candidate = base_dir
    for part in parts:
        candidate = candidate / part
    resolved = candidate.resolve()
    if resolved == base_dir:
        return resolved
    if base_dir not in resolved.parents:
        raise ValueError("Path traversal attempt")
    return resolved
