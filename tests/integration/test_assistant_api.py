"""Test /api/v1/assistant endpoints."""
import pytest

from salon_booking.assistant import FAILURE_MESSAGE, GREETING_MESSAGE

pytestmark = pytest.mark.integration


def test_greeting(client):
    response = client.get("/api/v1/assistant/greeting")

    assert response.status_code == 200
    assert response.json()["response"] == GREETING_MESSAGE
    assert response.json()["role"] == "model"


def test_chat_returns_model_reply(client, mock_llm):
    response = client.post(
        "/api/v1/assistant/chat",
        json={"message": "Qual tratamento vocês indicam para pele oleosa?"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["response"] == "Recomendo a nossa Limpeza de Pele Profunda."
    assert isinstance(data["timestamp"], int)
    mock_llm.invoke.assert_called_once()


def test_chat_sanitizes_message(client, mock_llm):
    client.post(
        "/api/v1/assistant/chat",
        json={"message": "<script>alert(1)</script>Oi <b>tudo</b> bem?"}
    )

    messages = mock_llm.invoke.call_args[0][0]
    assert messages[1].content == "Oi tudo bem?"


def test_chat_failure_degrades_to_apology(client, mock_llm):
    mock_llm.invoke.side_effect = RuntimeError("upstream down")

    response = client.post("/api/v1/assistant/chat", json={"message": "Olá"})

    assert response.status_code == 200
    assert response.json()["response"] == FAILURE_MESSAGE


def test_chat_rejects_empty_message(client):
    response = client.post("/api/v1/assistant/chat", json={"message": ""})

    assert response.status_code == 422
