import pytest
from fastapi.testclient import TestClient

from formentry_backend.config import SESSION_COOKIE
from formentry_backend.records import (
    FormEntryArchive,
    FormEntryError,
    FormEntryQueue,
    InMemoryFormEntryService,
)
from formentry_backend.sessions import SessionStore
from server import create_app


EXPORT_PATH = "/moduleServlet/formentry/formEntryQueueDownload"


@pytest.fixture
def service():
    """Pending records at 5 and 7 (6 is absent), one archive and one error record."""
    return InMemoryFormEntryService(
        queue=[
            FormEntryQueue(form_entry_queue_id=5, form_data="A"),
            FormEntryQueue(form_entry_queue_id=7, form_data="C"),
        ],
        archive=[FormEntryArchive(form_entry_archive_id=5, form_data="<form>archived</form>")],
        errors=[FormEntryError(form_entry_error_id=6, form_data="<form>broken</form>", error="bad patient")],
    )


@pytest.fixture
def sessions(tmp_path):
    return SessionStore(tmp_path / "sessions", ttl_hours=1)


@pytest.fixture
def app(service, sessions):
    return create_app(service=service, sessions=sessions)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_client(client, sessions):
    session = sessions.create(user="admin")
    client.cookies.set(SESSION_COOKIE, session.session_id)
    return client
