"""Service layer – the single outbound call to the Gemini model.

Builds the forecast instruction, attaches the uploaded files as inline
data and returns the model's text verbatim.  Every failure is reduced to
one of two :class:`~src.app.errors.PredictionError` subclasses whose
messages are safe to show to the user; the real cause only goes to the
log.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.app.config import Settings
from src.app.errors import EmptyResponseError, RequestFailedError
from src.app.schemas.predict import PredictionRequest

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# Instruction templates
# ──────────────────────────────────────────────
_INTRO_FILES_ONLY = "제공된 파일들은"
_INTRO_FILES_AND_TEXT = "제공된 파일들과 텍스트는"

_INSTRUCTION = """{intro} 특정 전공 분야 또는 기술에 대한 데이터입니다. 이 정보들을 심층적으로 분석하여, 향후 10년 후의 시나리오를 예측해주세요.

예측에 다음 두 가지 핵심 지표를 반드시 포함하여 구체적인 수치와 함께 핵심 내용을 간결하게 요약하여 한국어로 제공해주세요:
1. **예상 취업률:** 10년 후 해당 분야의 전반적인 고용 상태를 백분율로 예측합니다.
2. **AI로 인한 직업 대체율:** AI 기술 발전으로 인해 해당 분야의 직업이 자동화되거나 대체될 가능성을 백분율로 예측합니다.{context}"""

_CONTEXT_SECTION = '\n\n분석 컨텍스트: "{text}"'


def build_prompt(context_text: str) -> str:
    """Return the instruction block, appending *context_text* when given."""
    if context_text:
        return _INSTRUCTION.format(
            intro=_INTRO_FILES_AND_TEXT,
            context=_CONTEXT_SECTION.format(text=context_text),
        )
    return _INSTRUCTION.format(intro=_INTRO_FILES_ONLY, context="")


def build_payload(request: PredictionRequest) -> dict[str, Any]:
    """Translate *request* into a ``generateContent`` request body."""
    parts: list[dict[str, Any]] = [{"text": build_prompt(request.context_text)}]
    parts.extend(
        {"inline_data": {"mime_type": part.mime_type, "data": part.data}}
        for part in request.files
    )
    return {"contents": [{"role": "user", "parts": parts}]}


def extract_text(body: Any) -> str:
    """Concatenate the text parts of the first candidate ('' if none or malformed)."""
    if not isinstance(body, dict):
        return ""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str) and not part.get("thought")
    )


class PredictionClient:
    """Thin async client for the Gemini ``generateContent`` endpoint.

    Parameters
    ----------
    settings  : Settings – credential, model and endpoint configuration.
    transport : optional ``httpx.AsyncBaseTransport`` (used by tests).
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def model_name(self) -> str:
        return self._settings.gemini_model

    async def predict(self, request: PredictionRequest) -> str:
        """Send *request* to the model and return its text response."""
        payload = build_payload(request)
        headers = {"x-goog-api-key": self._settings.gemini_api_key}

        logger.info(
            "Requesting forecast from %s (%d file(s), context=%s) …",
            self.model_name, len(request.files), request.has_context,
        )
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.gemini_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._settings.generate_content_url,
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.exception(
                "Gemini API call failed with HTTP %s: %s",
                exc.response.status_code, exc.response.text,
            )
            raise RequestFailedError() from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Gemini API call failed: %s", exc)
            raise RequestFailedError() from exc

        text = extract_text(body)
        if not text:
            logger.warning("Gemini returned no usable text: %s", body)
            raise EmptyResponseError()

        logger.info("✅ Forecast received (%d chars).", len(text))
        return text
