"""
Integration tests for the HTTP endpoints.

The dispatcher dependency is overridden with offline fakes so tests do not
require the HF, Gemini or OpenAI APIs.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from app.agent.graph import QueryDispatcher
from app.agent.llm import GeminiProvider
from app.api.handlers import GENERIC_ERROR
from app.api.routes import get_dispatcher
from app.core import session_store
from app.core.cancellation import CancellationToken
from app.core.types import AnswerSource
from app.main import app
from app.services.knowledge_base import FALLBACK_ANSWER, GREETING, KNOWLEDGE_BASE
from app.services.retrieval_service import ContextRetriever
from tests.fakes import FakeIndex, FakeProvider


def _use(dispatcher: QueryDispatcher) -> None:
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher


@pytest.fixture
def client() -> TestClient:
    _use(
        QueryDispatcher(
            providers={
                AnswerSource.GEMINI: FakeProvider(AnswerSource.GEMINI, reply="from gemini"),
                AnswerSource.CHATGPT: FakeProvider(AnswerSource.CHATGPT, reply="from chatgpt", configured=False),
            }
        )
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- system ---

def test_root_returns_greeting(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["greeting"] == GREETING


def test_health_without_retrieval(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "retrieval": {"ready": False}}


def test_health_reports_index_stats(client: TestClient) -> None:
    _use(QueryDispatcher(retriever=ContextRetriever(FakeIndex(hits=["a", "b"]))))
    response = client.get("/health")
    assert response.json()["retrieval"] == {"ready": True, "entries": 2, "dim": 0}


def test_providers_lists_local_first_with_configured_flags(client: TestClient) -> None:
    response = client.get("/providers")
    assert response.status_code == 200
    assert response.json() == [
        {"id": "local", "label": "Local", "icon": "💻", "configured": True},
        {"id": "gemini", "label": "Gemini", "icon": "✨", "configured": True},
        {"id": "chatgpt", "label": "ChatGPT", "icon": "🧠", "configured": False},
    ]


def test_dispatcher_build_failure_returns_503() -> None:
    """Without an override a failing build surfaces as 503 via ServiceUnavailableError."""
    get_dispatcher.cache_clear()
    try:
        with patch("app.api.routes.build_dispatcher", side_effect=RuntimeError("bad config")):
            response = TestClient(app).post("/query", json={"question": "hi", "session_id": "s"})
    finally:
        get_dispatcher.cache_clear()
    assert response.status_code == 503
    assert "bad config" in response.json()["detail"]


# --- query ---

def test_query_local_defaults_and_answers(client: TestClient) -> None:
    response = client.post("/query", json={"question": "What is Java?", "session_id": "s1"})
    assert response.status_code == 200
    assert response.json() == {
        "status": "answered",
        "answer": KNOWLEDGE_BASE[0].answer,
        "provider": "local",
        "error": None,
    }


def test_query_local_fallback(client: TestClient) -> None:
    response = client.post("/query", json={"question": "xyzzy", "session_id": "s1", "provider": "local"})
    assert response.json()["answer"] == FALLBACK_ANSWER


def test_query_remote_provider(client: TestClient) -> None:
    response = client.post("/query", json={"question": "hi", "session_id": "s1", "provider": "gemini"})
    data = response.json()
    assert data["status"] == "answered"
    assert data["answer"] == "from gemini"
    assert data["provider"] == "gemini"


def test_query_missing_key_is_visible_answer(client: TestClient) -> None:
    _use(QueryDispatcher(providers={AnswerSource.GEMINI: GeminiProvider(api_key="")}))
    response = client.post("/query", json={"question": "hi", "session_id": "s1", "provider": "gemini"})
    data = response.json()
    assert data["status"] == "answered"
    assert data["answer"].startswith("Gemini error: GEMINI_API_KEY is not configured")


def test_query_failure_uses_generic_message(client: TestClient) -> None:
    broken = FakeProvider(AnswerSource.CHATGPT, error=RuntimeError("kaboom"))
    _use(QueryDispatcher(providers={AnswerSource.CHATGPT: broken}))
    response = client.post("/query", json={"question": "hi", "session_id": "s1", "provider": "chatgpt"})
    assert response.status_code == 200
    assert response.json() == {"status": "failed", "answer": GENERIC_ERROR, "provider": None, "error": "kaboom"}
    assert session_store.get_history("s1") == []


@pytest.mark.parametrize(
    "body",
    [
        {"question": "   ", "session_id": "s1"},
        {"question": "", "session_id": "s1"},
        {"question": "hi", "session_id": "s1", "provider": "claude"},
        {"session_id": "s1"},
    ],
)
def test_query_invalid_body_returns_422(client: TestClient, body: dict) -> None:
    assert client.post("/query", json=body).status_code == 422


def test_query_token_is_released_after_answer(client: TestClient) -> None:
    client.post("/query", json={"question": "hi", "session_id": "s1"})
    assert client.post("/query/cancel", json={"session_id": "s1"}).json() == {"cancelled": 0}


# --- cancel ---

def test_cancel_signals_in_flight_token(client: TestClient) -> None:
    token = CancellationToken()
    session_store.register_token("s2", token)
    response = client.post("/query/cancel", json={"session_id": "s2"})
    assert response.status_code == 200
    assert response.json() == {"cancelled": 1}
    assert token.cancelled
    assert token.reason == "stopped by user"


def test_cancel_unknown_session_is_zero(client: TestClient) -> None:
    assert client.post("/query/cancel", json={"session_id": "nobody"}).json() == {"cancelled": 0}


# --- history ---

def test_history_records_exchange_with_provider(client: TestClient) -> None:
    client.post("/query", json={"question": "what is spring", "session_id": "s3"})
    client.post("/query", json={"question": "hi", "session_id": "s3", "provider": "gemini"})
    response = client.get("/history/s3")
    assert response.status_code == 200
    data = response.json()
    assert data["session_id"] == "s3"
    assert [(m["role"], m["provider"]) for m in data["messages"]] == [
        ("user", None),
        ("assistant", "local"),
        ("user", None),
        ("assistant", "gemini"),
    ]
    assert data["messages"][1]["content"] == KNOWLEDGE_BASE[1].answer


def test_history_empty_session(client: TestClient) -> None:
    assert client.get("/history/new").json() == {"session_id": "new", "messages": []}
