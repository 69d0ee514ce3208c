"""Shared FastAPI dependencies – prediction client, sessions and uploads."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response, UploadFile

from src.app.config import settings
from src.app.services.prediction_service import PredictionClient
from src.app.services.session_service import PredictionSession, SessionStore, UploadedFile

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# Process-wide singletons
# ──────────────────────────────────────────────
session_store = SessionStore(max_sessions=settings.max_sessions)
_client_cache: dict[str, PredictionClient] = {}


def init_prediction_client() -> PredictionClient:
    """Build the shared client from ``settings`` (called at startup)."""
    client = PredictionClient(settings)
    _client_cache["default"] = client
    logger.info("Prediction client ready (model=%s).", client.model_name)
    return client


def clear_prediction_client() -> None:
    _client_cache.clear()


def get_prediction_client() -> PredictionClient:
    """Return the shared client, building it lazily if startup was skipped."""
    client = _client_cache.get("default")
    if client is None:
        client = init_prediction_client()
    return client


def get_session(request: Request) -> PredictionSession:
    """Return the session bound to the caller's cookie."""
    return request.state.session


# ──────────────────────────────────────────────
# Session cookie middleware
# ──────────────────────────────────────────────
async def session_cookie_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Attach the caller's session to ``request.state``.

    A cookie naming a session this server did not issue (or has since
    dropped) is ignored and a fresh session id is issued in its place.
    """
    cookie_name = settings.session_cookie_name
    session_id = request.cookies.get(cookie_name)
    is_new = session_id not in session_store
    if is_new:
        session_id = session_store.create()
    request.state.session_id = session_id
    request.state.session = session_store.get(session_id)

    response = await call_next(request)
    if is_new:
        response.set_cookie(cookie_name, session_id, httponly=True, samesite="lax")
    return response


# ──────────────────────────────────────────────
# Upload helpers
# ──────────────────────────────────────────────
async def read_uploads(uploads: list[UploadFile] | None) -> list[UploadedFile]:
    """Read multipart uploads into memory, preserving their order.

    Browsers send one nameless, empty part when the picker is left empty;
    such parts are skipped.
    """
    files: list[UploadedFile] = []
    for upload in uploads or []:
        if not upload.filename:
            continue
        content = await upload.read()
        files.append(UploadedFile.create(upload.filename, content, upload.content_type))
    return files
