"""Shared fixtures – the API key must exist before ``src.app`` is imported."""

import os

os.environ["GEMINI_API_KEY"] = "test-api-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.app.dependencies import get_prediction_client, session_store  # noqa: E402
from src.app.main import app  # noqa: E402
from src.app.schemas.predict import PredictionRequest  # noqa: E402


class FakePredictionClient:
    """Stands in for the Gemini client; records every request it gets."""

    def __init__(self, result: str = "예상 취업률: 72%\nAI로 인한 직업 대체율: 35%") -> None:
        self.result = result
        self.error: Exception | None = None
        self.requests: list[PredictionRequest] = []

    async def predict(self, request: PredictionRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_client() -> FakePredictionClient:
    return FakePredictionClient()


@pytest.fixture
def client(fake_client: FakePredictionClient):
    session_store.clear()
    app.dependency_overrides[get_prediction_client] = lambda: fake_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
