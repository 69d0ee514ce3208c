from typing import Literal

from pydantic import BaseModel


class FileInfo(BaseModel):
    """Single row of the uploaded-file list."""
    index: int
    name: str
    mime_type: str
    size: int


class SessionState(BaseModel):
    """Response schema for every /api/session endpoint."""
    files: list[FileInfo]
    context_text: str
    status: Literal["idle", "loading", "succeeded", "failed"]
    view: Literal["loading", "error", "empty", "prediction"]
    prediction: str | None = None
    error: str | None = None
    submit_enabled: bool


class ContextUpdate(BaseModel):
    """Body schema for PUT /api/session/context."""
    context_text: str
