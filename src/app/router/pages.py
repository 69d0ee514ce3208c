"""Router – server-rendered form (POST / redirect / GET)."""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from src.app.config import TEMPLATES_DIR
from src.app.dependencies import get_prediction_client, get_session, read_uploads
from src.app.errors import SubmissionInProgressError
from src.app.services.prediction_service import PredictionClient
from src.app.services.session_service import PredictionSession, Status

router = APIRouter(tags=["Pages"])
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _back_to_form() -> RedirectResponse:
    return RedirectResponse("/", status_code=303)


def _keep_context(session: PredictionSession, context_text: str | None) -> None:
    """Store the textarea value posted alongside a file change, if any."""
    if context_text is not None:
        session.set_context_text(context_text)


@router.get("/", response_class=HTMLResponse)
def index(request: Request, session: PredictionSession = Depends(get_session)) -> HTMLResponse:
    """Input panel plus exactly one output block, chosen by the session status."""
    return templates.TemplateResponse(request, "index.html", {"state": session.snapshot()})


@router.post("/files")
async def add_files(
    files: list[UploadFile] | None = File(None),
    context_text: str | None = Form(None),
    session: PredictionSession = Depends(get_session),
) -> RedirectResponse:
    _keep_context(session, context_text)
    session.select_files(await read_uploads(files))
    return _back_to_form()


@router.post("/files/{index}/delete")
def remove_file(
    index: int,
    context_text: str | None = Form(None),
    session: PredictionSession = Depends(get_session),
) -> RedirectResponse:
    _keep_context(session, context_text)
    try:
        session.remove_file(index)
    except IndexError:
        raise HTTPException(status_code=404, detail=f"No file at index {index}.")
    return _back_to_form()


@router.post("/predict")
async def submit(
    context_text: str = Form(""),
    session: PredictionSession = Depends(get_session),
    client: PredictionClient = Depends(get_prediction_client),
) -> RedirectResponse:
    """Store the context text, run the prediction, then show the result.

    A resubmission while the previous one is running is rejected with 409
    before anything in the session changes.
    """
    if session.status is Status.LOADING:
        raise HTTPException(status_code=409, detail="A prediction is already in progress")
    session.set_context_text(context_text)
    try:
        await session.submit(client)
    except SubmissionInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _back_to_form()
