from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from caminotravel.agent import TravelAgentService, get_agent_service
from caminotravel.main import app
from caminotravel.models import PromptResult


@pytest.fixture
def service() -> MagicMock:
    """Agent service stub injected through FastAPI dependency overrides."""
    svc = MagicMock(spec=TravelAgentService)
    svc.session_count.return_value = 3
    svc.process_prompt = AsyncMock(
        return_value=PromptResult(session_id="s-1", response="Where would you like to go?")
    )
    return svc


@pytest.fixture
def client(service: MagicMock):
    app.dependency_overrides[get_agent_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_reports_session_count(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "sessions": 3}


def test_prompt_returns_session_and_response(client: TestClient, service: MagicMock) -> None:
    response = client.post("/prompts", json={"prompt": "I need a hotel"})
    assert response.status_code == 200
    assert response.json() == {"sessionId": "s-1", "response": "Where would you like to go?"}
    service.process_prompt.assert_awaited_once_with("I need a hotel", None)


def test_prompt_passes_session_id(client: TestClient, service: MagicMock) -> None:
    service.process_prompt.return_value = PromptResult(
        session_id="abc", response={"success": True, "searchId": "x"}
    )
    response = client.post("/prompts", json={"prompt": "hotels in Madrid", "sessionId": "abc"})
    assert response.json() == {"sessionId": "abc", "response": {"success": True, "searchId": "x"}}
    service.process_prompt.assert_awaited_once_with("hotels in Madrid", "abc")


@pytest.mark.parametrize(
    "body",
    [{}, {"prompt": ""}, {"prompt": 42}, {"sessionId": "abc"}, ["prompt"]],
)
def test_prompt_required(client: TestClient, service: MagicMock, body) -> None:
    response = client.post("/prompts", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "prompt is required (string)"}
    service.process_prompt.assert_not_awaited()


def test_invalid_json_body(client: TestClient) -> None:
    response = client.post(
        "/prompts", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400


def test_processing_error_returns_500(client: TestClient, service: MagicMock) -> None:
    service.process_prompt.side_effect = RuntimeError("model unavailable")
    response = client.post("/prompts", json={"prompt": "hi"})
    assert response.status_code == 500
    assert response.json() == {"error": "model unavailable"}
