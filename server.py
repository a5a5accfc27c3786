from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from formentry_backend.config import (
    CLEANUP_INTERVAL_SECONDS,
    EXPORT_PATHS,
    LOG_LEVEL,
    LOGOUT_PATH,
    SESSION_COOKIE,
    SESSION_ERROR_ATTR,
    SESSIONS_ROOT,
    STORE_ROOT,
)
from formentry_backend.export import QueueExportHandler
from formentry_backend.records import DirectoryFormEntryService, FormEntryService
from formentry_backend.security import normalize_session_id
from formentry_backend.sessions import SessionStore


logger = logging.getLogger(__name__)


async def _cleanup_worker(sessions: SessionStore) -> None:
    # Periodically delete expired sessions; a failed sweep is retried next round.
    while True:
        try:
            sessions.cleanup_expired()
        except Exception:
            logger.exception("Session cleanup failed")
        await asyncio.sleep(max(30, CLEANUP_INTERVAL_SECONDS))


def create_app(
    service: Optional[FormEntryService] = None,
    sessions: Optional[SessionStore] = None,
) -> FastAPI:
    """Build the web app around an explicit record service and session store."""
    if service is None:
        service = DirectoryFormEntryService(STORE_ROOT)
    if sessions is None:
        sessions = SessionStore(SESSIONS_ROOT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Run a cleanup pass at startup, then start the periodic cleanup task.
        try:
            sessions.cleanup_expired()
        except Exception:
            logger.exception("Initial session cleanup failed")

        task = asyncio.create_task(_cleanup_worker(sessions))
        app.state._cleanup_task = task
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    app = FastAPI(lifespan=lifespan)
    app.state.sessions = sessions
    app.state.export_handler = QueueExportHandler(service, sessions)

    async def download_queue(request: Request) -> Response:
        """Download form entry records [startId, endId] of one queueType as a ZIP."""
        return await request.app.state.export_handler.handle(request)

    for path in EXPORT_PATHS:
        app.add_api_route(path, download_queue, methods=["POST"], response_class=Response)

    @app.get(LOGOUT_PATH)
    async def logout(request: Request) -> JSONResponse:
        # Unbind the user and hand back any message left on the session.
        store: SessionStore = request.app.state.sessions
        session = store.get(request.cookies.get(SESSION_COOKIE))
        error = None
        if session is not None:
            error = session.pop_attribute(SESSION_ERROR_ATTR)
            session.user = None
            store.save(session)
        return JSONResponse({"ok": True, "error": error})

    @app.post("/api/session/{session_id}/touch")
    async def touch(session_id: str, request: Request) -> JSONResponse:
        store: SessionStore = request.app.state.sessions
        try:
            sid = normalize_session_id(session_id)
            store.touch(sid)
        except (ValueError, FileNotFoundError):
            raise HTTPException(status_code=404, detail="Session not found")
        return JSONResponse({"ok": True})

    return app


app = create_app()


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.environ.get("PORT", "8010"))
    uvicorn.run("server:app", host="127.0.0.1", port=port, reload=False)
