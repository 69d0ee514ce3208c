"""Router – JSON API over the caller's form session."""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from src.app.dependencies import get_prediction_client, get_session, read_uploads
from src.app.errors import SubmissionInProgressError
from src.app.schemas.session import ContextUpdate, FileInfo, SessionState
from src.app.services.prediction_service import PredictionClient
from src.app.services.session_service import PredictionSession, SessionSnapshot

router = APIRouter(prefix="/api/session", tags=["Session"])


def to_state(snapshot: SessionSnapshot) -> SessionState:
    return SessionState(
        files=[
            FileInfo(index=index, name=file.name, mime_type=file.mime_type, size=file.size)
            for index, file in enumerate(snapshot.files)
        ],
        context_text=snapshot.context_text,
        status=snapshot.status.value,
        view=snapshot.view,
        prediction=snapshot.prediction,
        error=snapshot.error,
        submit_enabled=snapshot.submit_enabled,
    )


@router.get("", response_model=SessionState)
def get_state(session: PredictionSession = Depends(get_session)) -> SessionState:
    """Return the current files, context text and result."""
    return to_state(session.snapshot())


@router.post("/files", response_model=SessionState)
async def add_files(
    files: list[UploadFile] = File(...),
    session: PredictionSession = Depends(get_session),
) -> SessionState:
    """Append the uploaded files to the selection (no validation, no dedupe)."""
    session.select_files(await read_uploads(files))
    return to_state(session.snapshot())


@router.delete("/files/{index}", response_model=SessionState)
def remove_file(index: int, session: PredictionSession = Depends(get_session)) -> SessionState:
    """Remove the file at *index*; later files shift down by one."""
    try:
        session.remove_file(index)
    except IndexError:
        raise HTTPException(status_code=404, detail=f"No file at index {index}.")
    return to_state(session.snapshot())


@router.put("/context", response_model=SessionState)
def set_context(body: ContextUpdate, session: PredictionSession = Depends(get_session)) -> SessionState:
    session.set_context_text(body.context_text)
    return to_state(session.snapshot())


@router.post("/predict", response_model=SessionState)
async def predict(
    session: PredictionSession = Depends(get_session),
    client: PredictionClient = Depends(get_prediction_client),
) -> SessionState:
    """
    Submit the current selection for a 10-year forecast.

    Prediction failures are reported in the returned state (``status`` =
    ``failed``, ``error`` set), not as HTTP errors.  Returns 409 while a
    previous submission is still running.
    """
    try:
        snapshot = await session.submit(client)
    except SubmissionInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return to_state(snapshot)
