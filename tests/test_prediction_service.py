"""Tests for the Gemini prediction client."""

import asyncio
import json
import logging

import httpx
import pytest

from src.app.config import (
    EMPTY_RESPONSE_MESSAGE,
    REQUEST_FAILED_MESSAGE,
    Settings,
)
from src.app.errors import EmptyResponseError, RequestFailedError
from src.app.schemas.predict import EncodedFilePart, PredictionRequest
from src.app.services.prediction_service import (
    PredictionClient,
    build_payload,
    build_prompt,
    extract_text,
)

PDF_PART = EncodedFilePart(data="JVBERi0=", mime_type="application/pdf")
PNG_PART = EncodedFilePart(data="iVBORw0=", mime_type="image/png")


def _gemini_body(*texts: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": t} for t in texts]}}]}


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


def _client(settings: Settings, handler) -> PredictionClient:
    return PredictionClient(settings, transport=httpx.MockTransport(handler))


# ──────────────────────────────────────────────
# Prompt / payload
# ──────────────────────────────────────────────
def test_prompt_files_only() -> None:
    prompt = build_prompt("")
    assert prompt.startswith("제공된 파일들은")
    assert "분석 컨텍스트" not in prompt
    assert "예상 취업률" in prompt
    assert "AI로 인한 직업 대체율" in prompt


def test_prompt_with_context() -> None:
    prompt = build_prompt("Computer Science")
    assert prompt.startswith("제공된 파일들과 텍스트는")
    assert prompt.endswith('\n\n분석 컨텍스트: "Computer Science"')
    assert "예상 취업률" in prompt


def test_payload_keeps_file_order() -> None:
    request = PredictionRequest(context_text="", files=(PNG_PART, PDF_PART, PNG_PART))
    parts = build_payload(request)["contents"][0]["parts"]

    assert parts[0] == {"text": build_prompt("")}
    assert [p["inline_data"]["mime_type"] for p in parts[1:]] == [
        "image/png", "application/pdf", "image/png",
    ]
    assert parts[2]["inline_data"]["data"] == "JVBERi0="


def test_extract_text_joins_parts_and_skips_thoughts() -> None:
    body = _gemini_body("첫째 ", "둘째")
    body["candidates"][0]["content"]["parts"].insert(0, {"text": "thinking…", "thought": True})
    assert extract_text(body) == "첫째 둘째"
    assert extract_text({"candidates": []}) == ""
    assert extract_text({"promptFeedback": {"blockReason": "SAFETY"}}) == ""


# ──────────────────────────────────────────────
# predict()
# ──────────────────────────────────────────────
def test_predict_success(settings: Settings) -> None:
    seen: list[httpx.Request] = []
    answer = "  예상 취업률: 65%\n\nAI로 인한 직업 대체율: 40%  "

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_gemini_body(answer))

    request = PredictionRequest(context_text="Computer Science", files=(PDF_PART,))
    result = asyncio.run(_client(settings, handler).predict(request))

    assert result == answer
    (sent,) = seen
    assert sent.method == "POST"
    assert sent.url.path.endswith("/models/gemini-2.5-flash:generateContent")
    assert sent.headers["x-goog-api-key"] == "test-api-key"
    assert "key=" not in str(sent.url)
    body = json.loads(sent.content)
    assert body["contents"][0]["parts"][0]["text"].endswith('분석 컨텍스트: "Computer Science"')
    assert body["contents"][0]["parts"][1] == {
        "inline_data": {"mime_type": "application/pdf", "data": "JVBERi0="},
    }


def test_predict_empty_response(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": [{"finishReason": "SAFETY"}]})

    with pytest.raises(EmptyResponseError) as exc_info:
        asyncio.run(_client(settings, handler).predict(PredictionRequest(files=(PDF_PART,))))
    assert str(exc_info.value) == EMPTY_RESPONSE_MESSAGE


def test_predict_http_error_logs_cause(settings: Settings, caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"message": "API key not valid"}})

    with caplog.at_level(logging.ERROR, logger="src.app.services.prediction_service"):
        with pytest.raises(RequestFailedError) as exc_info:
            asyncio.run(_client(settings, handler).predict(PredictionRequest(files=(PDF_PART,))))

    assert str(exc_info.value) == REQUEST_FAILED_MESSAGE
    assert "API key not valid" not in str(exc_info.value)
    assert "API key not valid" in caplog.text
    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": [None]},
        {"candidates": ["text"]},
        {"candidates": [{"content": None}]},
        {"candidates": [{"content": {"parts": [None, 42, {"text": None}]}}]},
        {"candidates": {"content": "x"}},
        ["not", "an", "object"],
    ],
)
def test_predict_malformed_body_is_empty_response(settings: Settings, body) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    with pytest.raises(EmptyResponseError) as exc_info:
        asyncio.run(_client(settings, handler).predict(PredictionRequest(files=(PDF_PART,))))
    assert str(exc_info.value) == EMPTY_RESPONSE_MESSAGE


def test_extract_text_skips_malformed_parts() -> None:
    body = {"candidates": [{"content": {"parts": [None, {"text": "예상 "}, "x", {"text": "취업률"}]}}]}
    assert extract_text(body) == "예상 취업률"


def test_predict_transport_error(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RequestFailedError):
        asyncio.run(_client(settings, handler).predict(PredictionRequest(files=(PDF_PART,))))


def test_predict_invalid_json(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>bad gateway</html>")

    with pytest.raises(RequestFailedError):
        asyncio.run(_client(settings, handler).predict(PredictionRequest(files=(PDF_PART,))))


def test_custom_model_and_base(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-pro")
    monkeypatch.setenv("GEMINI_API_BASE", "https://proxy.example.com/v1beta/")
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json=_gemini_body("ok"))

    client = _client(Settings(_env_file=None), handler)
    assert asyncio.run(client.predict(PredictionRequest(files=(PDF_PART,)))) == "ok"
    assert str(seen[0]) == "https://proxy.example.com/v1beta/models/gemini-2.5-pro:generateContent"
