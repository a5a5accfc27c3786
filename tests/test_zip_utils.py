import io
import zipfile

import pytest

from formentry_backend.records import InMemoryFormEntryService
from formentry_backend.zip_utils import archive_filename, entry_name, iter_file_chunks, write_queue_archive


class _EventService(InMemoryFormEntryService):
    """Records the order of lookups and maintenance calls."""

    def __init__(self, fail_at=None):
        super().__init__()
        self.events = []
        self.fail_at = fail_at

    def get_form_entry_queue(self, record_id):
        if record_id == self.fail_at:
            raise RuntimeError(f"lookup of {record_id} failed")
        self.events.append(("lookup", record_id))
        return super().get_form_entry_queue(record_id)

    def garbage_collect(self):
        super().garbage_collect()
        self.events.append(("gc",))


def test_names():
    assert entry_name("pending", 12) == "formEntryQueue-pending-12.xml"
    assert archive_filename("error", 3, 9) == "formEntryQueue-error-(3-9).zip"


def test_entries_in_ascending_order(service):
    buf = io.BytesIO()

    written = write_queue_archive(buf, service, "pending", 4, 8)

    assert written == 5
    with zipfile.ZipFile(io.BytesIO(buf.getvalue())) as zf:
        assert zf.namelist() == [entry_name("pending", i) for i in range(4, 9)]
        assert zf.read(entry_name("pending", 5)) == b"A"
        assert zf.read(entry_name("pending", 4)) == b""
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())


def test_maintenance_follows_each_entry():
    service = _EventService()

    write_queue_archive(io.BytesIO(), service, "pending", 1, 3)

    assert service.events == [
        ("lookup", 1),
        ("gc",),
        ("lookup", 2),
        ("gc",),
        ("lookup", 3),
        ("gc",),
    ]


def test_empty_range_is_valid_archive():
    service = _EventService()
    buf = io.BytesIO()

    assert write_queue_archive(buf, service, "pending", 10, 9) == 0

    assert service.events == []
    with zipfile.ZipFile(io.BytesIO(buf.getvalue())) as zf:
        assert zf.namelist() == []


def test_lookup_failure_propagates_after_closing_archive():
    service = _EventService(fail_at=3)
    buf = io.BytesIO()

    with pytest.raises(RuntimeError, match="lookup of 3 failed"):
        write_queue_archive(buf, service, "pending", 1, 5)

    # Entries written before the failure are still in a readable archive.
    with zipfile.ZipFile(io.BytesIO(buf.getvalue())) as zf:
        assert zf.namelist() == [entry_name("pending", 1), entry_name("pending", 2)]
    assert service.garbage_collect_calls == 2


def test_iter_file_chunks_closes_file():
    fileobj = io.BytesIO(b"abcdefg")
    fileobj.seek(4)

    chunks = list(iter_file_chunks(fileobj, 3))

    assert chunks == [b"abc", b"def", b"g"]
    assert fileobj.closed


def test_iter_file_chunks_closes_abandoned_file():
    fileobj = io.BytesIO(b"abcdefg")
    chunks = iter_file_chunks(fileobj, 2)

    assert next(chunks) == b"ab"
    chunks.close()

    assert fileobj.closed
