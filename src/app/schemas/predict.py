from pydantic import BaseModel, ConfigDict


class EncodedFilePart(BaseModel):
    """A file's bytes as base64 text plus its MIME type."""
    model_config = ConfigDict(frozen=True)

    data: str
    mime_type: str


class PredictionRequest(BaseModel):
    """Everything sent to the model for one submission."""
    model_config = ConfigDict(frozen=True)

    context_text: str = ""
    files: tuple[EncodedFilePart, ...] = ()

    @property
    def has_context(self) -> bool:
        return bool(self.context_text)
