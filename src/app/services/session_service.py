"""Service layer – per-browser form state and the submission flow.

A :class:`PredictionSession` owns everything the user can see: the
selected files, the context text, and the result of the last submission.
State changes only through its methods; subscribers are notified with a
:class:`SessionSnapshot` after every change so a view can re-render.
"""

from __future__ import annotations

import asyncio
import base64
import enum
import logging
import mimetypes
import uuid
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from src.app.config import DEFAULT_MIME_TYPE, NO_FILES_MESSAGE, UNKNOWN_ERROR_MESSAGE
from src.app.errors import PredictionError, SubmissionInProgressError
from src.app.schemas.predict import EncodedFilePart, PredictionRequest

logger = logging.getLogger(__name__)


class Status(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadedFile:
    """A file chosen by the user, held in memory until it is removed."""
    name: str
    mime_type: str
    content: bytes

    @classmethod
    def create(cls, name: str, content: bytes, mime_type: str | None = None) -> UploadedFile:
        """Build a file, guessing the MIME type from *name* when none is given."""
        if not mime_type:
            mime_type = mimetypes.guess_type(name)[0] or DEFAULT_MIME_TYPE
        return cls(name=name, mime_type=mime_type, content=content)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class SessionSnapshot:
    files: tuple[UploadedFile, ...]
    context_text: str
    status: Status
    prediction: str | None
    error: str | None

    @property
    def view(self) -> str:
        """Which output block is visible: loading, error, empty or prediction."""
        if self.status is Status.LOADING:
            return "loading"
        if self.error:
            return "error"
        if self.prediction:
            return "prediction"
        return "empty"

    @property
    def submit_enabled(self) -> bool:
        return self.status is not Status.LOADING and bool(self.files)


class Predictor(Protocol):
    async def predict(self, request: PredictionRequest) -> str: ...


Listener = Callable[[SessionSnapshot], None]


# ──────────────────────────────────────────────
# Encoding
# ──────────────────────────────────────────────
def encode_file(file: UploadedFile) -> EncodedFilePart:
    return EncodedFilePart(
        data=base64.b64encode(file.content).decode("ascii"),
        mime_type=file.mime_type,
    )


async def encode_files(files: Iterable[UploadedFile]) -> list[EncodedFilePart]:
    """Encode every file off the event loop; result order matches input order."""
    return list(await asyncio.gather(
        *(asyncio.to_thread(encode_file, file) for file in files)
    ))


# ──────────────────────────────────────────────
# Session
# ──────────────────────────────────────────────
class PredictionSession:
    def __init__(self) -> None:
        self._files: list[UploadedFile] = []
        self._context_text = ""
        self._status = Status.IDLE
        self._prediction: str | None = None
        self._error: str | None = None
        self._request_id = 0
        self._listeners: list[Listener] = []

    # ── read side ──
    @property
    def files(self) -> tuple[UploadedFile, ...]:
        return tuple(self._files)

    @property
    def context_text(self) -> str:
        return self._context_text

    @property
    def status(self) -> Status:
        return self._status

    @property
    def prediction(self) -> str | None:
        return self._prediction

    @property
    def error(self) -> str | None:
        return self._error

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            files=self.files,
            context_text=self._context_text,
            status=self._status,
            prediction=self._prediction,
            error=self._error,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # ── input side ──
    def select_files(self, files: Iterable[UploadedFile]) -> None:
        """Append *files* after the ones already selected."""
        self._files.extend(files)
        self._notify()

    def remove_file(self, index: int) -> UploadedFile:
        """Remove and return the file at *index* (current indices only)."""
        if not 0 <= index < len(self._files):
            raise IndexError(f"No file at index {index}")
        removed = self._files.pop(index)
        self._notify()
        return removed

    def set_context_text(self, text: str) -> None:
        self._context_text = text
        self._notify()

    # ── result transitions ──
    def _start_loading(self) -> int:
        self._request_id += 1
        self._status = Status.LOADING
        self._prediction = None
        self._error = None
        self._notify()
        return self._request_id

    def _succeed(self, request_id: int, text: str) -> None:
        if request_id != self._request_id:
            logger.info("Discarding stale result for request %d.", request_id)
            return
        self._status = Status.SUCCEEDED
        self._prediction = text
        self._error = None
        self._notify()

    def _fail(self, request_id: int, message: str) -> None:
        if request_id != self._request_id:
            logger.info("Discarding stale failure for request %d.", request_id)
            return
        self._status = Status.FAILED
        self._prediction = None
        self._error = message
        self._notify()

    async def submit(self, client: Predictor) -> SessionSnapshot:
        """Run one prediction with the current files and context text.

        Never raises for prediction failures: the outcome is recorded in
        the session and returned as a snapshot.  Raises
        :class:`SubmissionInProgressError` if a submission is already
        running.
        """
        if self._status is Status.LOADING:
            raise SubmissionInProgressError("A prediction is already in progress")

        if not self._files:
            self._status = Status.FAILED
            self._prediction = None
            self._error = NO_FILES_MESSAGE
            self._notify()
            return self.snapshot()

        request_id = self._start_loading()
        try:
            parts = await encode_files(self._files)
            request = PredictionRequest(context_text=self._context_text, files=tuple(parts))
            text = await client.predict(request)
        except PredictionError as exc:
            self._fail(request_id, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error during prediction")
            self._fail(request_id, str(exc) or UNKNOWN_ERROR_MESSAGE)
        else:
            self._succeed(request_id, text)
        return self.snapshot()


# ──────────────────────────────────────────────
# Store
# ──────────────────────────────────────────────
class SessionStore:
    """In-memory map of session id → :class:`PredictionSession`.

    Only ids created by :meth:`create` are known.  At most *max_sessions*
    are kept; the least recently used one is dropped when a new session
    would exceed the limit.
    """

    def __init__(self, max_sessions: int = 1000) -> None:
        self._sessions: OrderedDict[str, PredictionSession] = OrderedDict()
        self.max_sessions = max_sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def create(self) -> str:
        """Start a new session and return its freshly generated id."""
        session_id = uuid.uuid4().hex
        session = PredictionSession()
        session.subscribe(_log_transition(session_id))
        self._sessions[session_id] = session
        logger.info("Created session %s.", session_id[:8])
        self._evict()
        return session_id

    def get(self, session_id: str) -> PredictionSession:
        """Return the session for *session_id*, marking it recently used.

        Raises ``KeyError`` for ids this store never issued or already dropped.
        """
        session = self._sessions[session_id]
        self._sessions.move_to_end(session_id)
        return session

    def _evict(self) -> None:
        while len(self._sessions) > self.max_sessions:
            session_id, _ = self._sessions.popitem(last=False)
            logger.info("🗑️  Dropped least recently used session %s.", session_id[:8])

    def clear(self) -> None:
        self._sessions.clear()


def _log_transition(session_id: str) -> Listener:
    def listener(snapshot: SessionSnapshot) -> None:
        logger.debug(
            "Session %s: status=%s files=%d view=%s",
            session_id[:8], snapshot.status.value, len(snapshot.files), snapshot.view,
        )
    return listener
