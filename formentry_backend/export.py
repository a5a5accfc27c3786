from __future__ import annotations

import logging
import tempfile
from typing import Mapping, Optional

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict

from .config import (
    EXPORT_CHUNK_BYTES,
    EXPORT_SPOOL_BYTES,
    LOGOUT_PATH,
    SESSION_COOKIE,
    SESSION_ERROR_ATTR,
    SESSION_EXPIRED_MESSAGE,
)
from .records import FormEntryService
from .security import InvalidParameter, parse_record_id
from .sessions import Session, SessionStore, is_authenticated
from .zip_utils import archive_filename, iter_file_chunks, write_queue_archive


logger = logging.getLogger(__name__)


class ExportRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_id: int
    end_id: int
    # Raw queueType value; names use it verbatim even when unrecognized.
    queue_type: str = ""


def parse_export_request(params: Mapping[str, str]) -> ExportRequest:
    start_id = parse_record_id(params.get("startId"), "startId")
    end_id = parse_record_id(params.get("endId"), "endId")
    return ExportRequest(start_id=start_id, end_id=end_id, queue_type=params.get("queueType") or "")


async def read_params(request: Request) -> dict[str, str]:
    """First value of each parameter, query string before form body."""
    params: dict[str, str] = {}
    form = await request.form()
    for key, value in [*request.query_params.multi_items(), *form.multi_items()]:
        if isinstance(value, str):
            params.setdefault(key, value)
    return params


class QueueExportHandler:
    """Streams a range of form entry records as a ZIP download.

    Flow per request:
    - unauthenticated session: attach the expiry message and redirect to logout
    - startId/endId not integers: log a warning, empty 400 response
    - otherwise one ZIP entry per id in [startId, endId], ascending

    The archive is built in a worker thread into a spooled temp file before the
    response starts, so a failing record lookup surfaces as a 500 instead of a
    truncated download.
    """

    def __init__(self, service: FormEntryService, sessions: SessionStore):
        self.service = service
        self.sessions = sessions

    def _redirect_to_logout(self, request: Request, session: Optional[Session]) -> Response:
        if session is None:
            session = self.sessions.create()
        session.set_attribute(SESSION_ERROR_ATTR, SESSION_EXPIRED_MESSAGE)
        self.sessions.save(session)

        root_path = request.scope.get("root_path", "") or ""
        response = RedirectResponse(f"{root_path}{LOGOUT_PATH}", status_code=302)
        response.set_cookie(SESSION_COOKIE, session.session_id, httponly=True, samesite="lax")
        return response

    async def handle(self, request: Request) -> Response:
        session = self.sessions.get(request.cookies.get(SESSION_COOKIE))
        if not is_authenticated(session):
            return self._redirect_to_logout(request, session)
        self.sessions.touch(session.session_id)

        params = await read_params(request)
        try:
            export = parse_export_request(params)
        except InvalidParameter as e:
            logger.warning("Invalid start or end id parameter", exc_info=e)
            return Response(status_code=400)

        logger.info(
            "User %s exporting %s records %d..%d",
            session.user,
            export.queue_type or "<none>",
            export.start_id,
            export.end_id,
        )

        spool = tempfile.SpooledTemporaryFile(max_size=EXPORT_SPOOL_BYTES)
        try:
            written = await run_in_threadpool(
                write_queue_archive,
                spool,
                self.service,
                export.queue_type,
                export.start_id,
                export.end_id,
            )
        except Exception:
            spool.close()
            logger.exception(
                "Export of %s records %d..%d failed", export.queue_type, export.start_id, export.end_id
            )
            raise

        logger.info("Export of %s records finished with %d entries", export.queue_type, written)
        headers = {
            "Content-Disposition": f"attachment; filename={archive_filename(export.queue_type, export.start_id, export.end_id)}",
            "Cache-Control": "no-store",
            "X-Content-Type-Options": "nosniff",
        }
        return StreamingResponse(
            iter_file_chunks(spool, EXPORT_CHUNK_BYTES),
            media_type="application/zip",
            headers=headers,
        )
