from __future__ import annotations

import logging
import zipfile
from typing import BinaryIO, Iterator

from .config import ENTRY_PREFIX, ENTRY_SUFFIX
from .records import FormEntryService, QueueType, lookup_form_data


logger = logging.getLogger(__name__)


def entry_name(queue_label: str, record_id: int) -> str:
    return f"{ENTRY_PREFIX}-{queue_label}-{record_id}{ENTRY_SUFFIX}"


def archive_filename(queue_label: str, start_id: int, end_id: int) -> str:
    return f"{ENTRY_PREFIX}-{queue_label}-({start_id}-{end_id}).zip"


def write_queue_archive(
    fileobj: BinaryIO,
    service: FormEntryService,
    queue_label: str,
    start_id: int,
    end_id: int,
) -> int:
    """Write one entry per id in [start_id, end_id] into a ZIP on fileobj.

    Absent records and unrecognized queue types produce empty entries, never
    missing ones. service.garbage_collect() runs once after every entry.
    Lookup and maintenance errors propagate; the ZIP is closed either way.

    Returns the number of entries written.
    """
    queue_type = QueueType.from_param(queue_label)
    written = 0
    with zipfile.ZipFile(fileobj, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for record_id in range(start_id, end_id + 1):
            form_data = lookup_form_data(service, queue_type, record_id)
            name = entry_name(queue_label, record_id)
            zf.writestr(name, form_data.encode("utf-8"))
            written += 1
            logger.debug("Wrote %s (%d chars)", name, len(form_data))
            service.garbage_collect()
    return written


def iter_file_chunks(fileobj: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """Yield fileobj from the start in chunks, closing it when done or abandoned."""
    try:
        fileobj.seek(0)
        while True:
            chunk = fileobj.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        fileobj.close()
