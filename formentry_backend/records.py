from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Protocol, Union

from .security import safe_join


logger = logging.getLogger(__name__)

_MISSING = object()


class QueueType(str, Enum):
    PENDING = "pending"
    ARCHIVE = "archive"
    ERROR = "error"
    # Any other queueType value; exports of it contain only empty entries.
    UNRECOGNIZED = ""

    @classmethod
    def from_param(cls, raw: Optional[str]) -> "QueueType":
        """Exact, case-sensitive match against the three record kinds."""
        for member in (cls.PENDING, cls.ARCHIVE, cls.ERROR):
            if raw == member.value:
                return member
        return cls.UNRECOGNIZED


@dataclass(frozen=True)
class FormEntryQueue:
    form_entry_queue_id: int
    form_data: str


@dataclass(frozen=True)
class FormEntryArchive:
    form_entry_archive_id: int
    form_data: str


@dataclass(frozen=True)
class FormEntryError:
    form_entry_error_id: int
    form_data: str
    error: str = ""


FormEntryRecord = Union[FormEntryQueue, FormEntryArchive, FormEntryError]


class FormEntryService(Protocol):
    def get_form_entry_queue(self, record_id: int) -> Optional[FormEntryQueue]: ...

    def get_form_entry_archive(self, record_id: int) -> Optional[FormEntryArchive]: ...

    def get_form_entry_error(self, record_id: int) -> Optional[FormEntryError]: ...

    def garbage_collect(self) -> None: ...


def lookup_record(service: FormEntryService, queue_type: QueueType, record_id: int) -> Optional[FormEntryRecord]:
    if queue_type is QueueType.PENDING:
        return service.get_form_entry_queue(record_id)
    if queue_type is QueueType.ARCHIVE:
        return service.get_form_entry_archive(record_id)
    if queue_type is QueueType.ERROR:
        return service.get_form_entry_error(record_id)
    # UNRECOGNIZED: nothing to look up.
    return None


def lookup_form_data(service: FormEntryService, queue_type: QueueType, record_id: int) -> str:
    """Form data of the record, or "" when the record is absent."""
    record = lookup_record(service, queue_type, record_id)
    if record is None:
        return ""
    return record.form_data or ""


class InMemoryFormEntryService:
    """Dict-backed record store."""

    def __init__(
        self,
        queue: Iterable[FormEntryQueue] = (),
        archive: Iterable[FormEntryArchive] = (),
        errors: Iterable[FormEntryError] = (),
    ):
        self.queue = {r.form_entry_queue_id: r for r in queue}
        self.archive = {r.form_entry_archive_id: r for r in archive}
        self.errors = {r.form_entry_error_id: r for r in errors}
        self.garbage_collect_calls = 0

    def get_form_entry_queue(self, record_id: int) -> Optional[FormEntryQueue]:
        return self.queue.get(record_id)

    def get_form_entry_archive(self, record_id: int) -> Optional[FormEntryArchive]:
        return self.archive.get(record_id)

    def get_form_entry_error(self, record_id: int) -> Optional[FormEntryError]:
        return self.errors.get(record_id)

    def garbage_collect(self) -> None:
        self.garbage_collect_calls += 1


class DirectoryFormEntryService:
    """Records stored as UTF-8 files: <root>/<queue|archive|error>/<id>.xml.

    Loaded records are kept in an identity map so repeated lookups within a
    unit of work return the same object; garbage_collect() drops it.
    """

    QUEUE_DIR = "queue"
    ARCHIVE_DIR = "archive"
    ERROR_DIR = "error"
    # Optional error text for an error record sits next to it as <id>.error.txt.
    ERROR_TEXT_SUFFIX = ".error.txt"

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self._loaded: dict[tuple[str, int], Optional[FormEntryRecord]] = {}

    def _read_text(self, subdir: str, filename: str) -> Optional[str]:
        path = safe_join(self.root, subdir, filename)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _load(self, subdir: str, record_id: int) -> Optional[FormEntryRecord]:
        key = (subdir, record_id)
        # Single read: garbage_collect() may clear the map from another request.
        cached = self._loaded.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        form_data = self._read_text(subdir, f"{record_id}.xml")
        record: Optional[FormEntryRecord] = None
        if form_data is not None:
            if subdir == self.QUEUE_DIR:
                record = FormEntryQueue(form_entry_queue_id=record_id, form_data=form_data)
            elif subdir == self.ARCHIVE_DIR:
                record = FormEntryArchive(form_entry_archive_id=record_id, form_data=form_data)
            else:
                error = self._read_text(subdir, f"{record_id}{self.ERROR_TEXT_SUFFIX}") or ""
                record = FormEntryError(form_entry_error_id=record_id, form_data=form_data, error=error)
        self._loaded[key] = record
        return record

    def get_form_entry_queue(self, record_id: int) -> Optional[FormEntryQueue]:
        return self._load(self.QUEUE_DIR, record_id)

    def get_form_entry_archive(self, record_id: int) -> Optional[FormEntryArchive]:
        return self._load(self.ARCHIVE_DIR, record_id)

    def get_form_entry_error(self, record_id: int) -> Optional[FormEntryError]:
        return self._load(self.ERROR_DIR, record_id)

    def garbage_collect(self) -> None:
        logger.debug("Dropping %d loaded record(s)", len(self._loaded))
        self._loaded.clear()
