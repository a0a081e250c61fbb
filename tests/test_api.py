from fastapi.testclient import TestClient

from app.main import create_app
from assistant import Assistant
from assistant.chat import ChatSessionService
from assistant.core.memory import ConversationMemoryStore
from assistant.guardrail import SafeInputGuardrail
from conftest import SYSTEM_PROMPT, FakeStreamingChatModel


def _client(llm: FakeStreamingChatModel) -> TestClient:
    assistant = Assistant(
        guardrail=SafeInputGuardrail(enabled=True, words=["badword"]),
        chat_service=ChatSessionService(llm, SYSTEM_PROMPT, ConversationMemoryStore()),
    )
    return TestClient(create_app(assistant))


def test_health() -> None:
    with _client(FakeStreamingChatModel()) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_stream_endpoint_returns_full_reply() -> None:
    llm = FakeStreamingChatModel(replies=["Recursion calls itself."])
    with _client(llm) as client:
        response = client.post("/agent/chat/stream", json={"conversation_id": 1, "message": "What is recursion?"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "Recursion calls itself."

        history = client.get("/agent/conversations/1/history").json()
        assert history["messages"] == [
            {"role": "user", "content": "What is recursion?"},
            {"role": "assistant", "content": "Recursion calls itself."},
        ]


def test_rejected_message_returns_rejection_payload() -> None:
    llm = FakeStreamingChatModel()
    with _client(llm) as client:
        response = client.post("/agent/chat/stream", json={"conversation_id": 1, "message": "This has BadWord in it"})

        assert response.status_code == 400
        assert response.json() == {"rejected": True, "reason": "sensitive content detected"}
        assert llm.received == []


def test_chat_endpoint_and_reset() -> None:
    llm = FakeStreamingChatModel(replies=["Use a dict."])
    with _client(llm) as client:
        response = client.post("/agent/chat", json={"conversation_id": 2, "message": "Fast lookup?"})
        assert response.json() == {"ai_response": "Use a dict."}

        assert client.delete("/agent/conversations/2").json() == {"cleared": True}
        assert client.get("/agent/conversations/2/history").json()["messages"] == []


def test_chat_endpoint_maps_backend_failure_to_502() -> None:
    llm = FakeStreamingChatModel(fail_with="backend down")
    with _client(llm) as client:
        response = client.post("/agent/chat", json={"conversation_id": 3, "message": "hello"})
        assert response.status_code == 502


def test_empty_message_is_invalid() -> None:
    with _client(FakeStreamingChatModel()) as client:
        response = client.post("/agent/chat", json={"conversation_id": 1, "message": ""})
        assert response.status_code == 422
