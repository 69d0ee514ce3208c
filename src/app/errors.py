"""Domain errors raised by the prediction client and the session."""

from src.app.config import EMPTY_RESPONSE_MESSAGE, REQUEST_FAILED_MESSAGE


class PredictionError(Exception):
    """Base class for failures of a single prediction call.

    ``str(exc)`` is always the fixed, user-facing message; the underlying
    cause (if any) is chained via ``__cause__`` and logged by the client.
    """

    message: str = REQUEST_FAILED_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class EmptyResponseError(PredictionError):
    """The model answered but returned no usable text."""

    message = EMPTY_RESPONSE_MESSAGE


class RequestFailedError(PredictionError):
    """Network, authentication or model-side failure."""

    message = REQUEST_FAILED_MESSAGE


class SubmissionInProgressError(RuntimeError):
    """A submission was attempted while another one is still in flight."""
