"""
Integration tests for the chat endpoints.

WHAT: Turns through HTTP, preview mode, SSE streaming, clear and model switch
WHY: Ensure API contract compliance and that every turn leaves the session idle
HOW: FastAPI TestClient with a scripted provider and the in-memory database
"""

import json

import pytest
from fastapi.testclient import TestClient

from supplyscout.core.session_manager import session_manager
from supplyscout.main import app

from fixtures.mock_llm import MockLLMProvider, tool_call_text


@pytest.fixture
def client():
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def fresh_sse_exit_event(monkeypatch):
    """sse-starlette caches an exit event per loop; each TestClient call gets a new loop."""
    from sse_starlette.sse import AppStatus
    if hasattr(AppStatus, "should_exit_event"):
        monkeypatch.setattr(AppStatus, "should_exit_event", None)


def parse_sse(body: str) -> list[tuple[str, dict]]:
    """[(event, data)] from a server-sent event stream."""
    events = []
    event, data = None, []
    for line in body.splitlines():
        if line.startswith("event:"):
            event = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data.append(line[len("data:"):].strip())
        elif not line.strip() and event:
            events.append((event, json.loads("\n".join(data))))
            event, data = None, []
    if event:
        events.append((event, json.loads("\n".join(data))))
    return events


def stream_turn(client, session_id, message, **extra):
    with client.stream(
        "POST", f"/api/v1/chat/{session_id}/messages", json={"message": message, "stream": True, **extra}
    ) as response:
        assert response.status_code == 200
        assert "text/event-stream" in response.headers.get("content-type", "")
        return parse_sse("".join(response.iter_text()))


@pytest.mark.integration
class TestSendMessage:

    def test_preview_mode_without_credentials(self, client):
        response = client.post("/api/v1/chat/s1/messages", json={"message": "Need hex bolts"})

        assert response.status_code == 200
        state = response.json()
        assert [m["role"] for m in state["messages"]] == ["user", "assistant"]
        assert state["messages"][1]["content"].startswith("AI not configured:")
        assert state["is_processing"] is False
        assert state["streaming_message"] == ""

    def test_plain_turn(self, client, use_provider):
        use_provider(MockLLMProvider(["Hello! Which part do you need?"]))

        state = client.post("/api/v1/chat/s1/messages", json={"message": "hi"}).json()

        assert state["session_id"] == "s1"
        assert state["messages"][-1]["content"] == "Hello! Which part do you need?"
        assert session_manager.session_exists("s1")

    def test_tool_turn_appends_tool_traffic(self, client, use_provider, seed_catalog):
        use_provider(MockLLMProvider([
            tool_call_text("find_suppliers", {"part_description": "bolt"}),
            "Acme Fasteners and Bolt Co both supply M8 bolts.",
        ]))

        state = client.post("/api/v1/chat/s1/messages", json={"message": "who sells bolts?"}).json()

        assert [m["role"] for m in state["messages"]] == ["user", "assistant", "tool", "assistant"]
        assert state["messages"][1]["tool_calls"][0]["name"] == "find_suppliers"
        assert state["messages"][2]["tool_call_id"] == state["messages"][1]["tool_calls"][0]["id"]
        assert state["messages"][3]["content"] == "Acme Fasteners and Bolt Co both supply M8 bolts."

    def test_history_is_replayed_on_next_turn(self, client, use_provider):
        provider = use_provider(MockLLMProvider(["first answer", "second answer"]))

        client.post("/api/v1/chat/s1/messages", json={"message": "first"})
        client.post("/api/v1/chat/s1/messages", json={"message": "second"})

        contents = [m["content"] for m in provider.calls[1]["messages"]]
        assert contents[1:] == ["first", "first answer", "second"]

    def test_model_override_sticks(self, client, use_provider):
        provider = use_provider(MockLLMProvider(["ok"]))

        client.post("/api/v1/chat/s1/messages", json={"message": "hi", "model": "gpt-4o"})
        client.post("/api/v1/chat/s1/messages", json={"message": "again"})

        assert provider.calls[1]["model"] == "gpt-4o"
        assert client.get("/api/v1/chat/s1/messages").json()["model"] == "gpt-4o"

    @pytest.mark.parametrize("body", [{"message": ""}, {"message": "   "}, {}])
    def test_invalid_message_rejected(self, client, body):
        response = client.post("/api/v1/chat/s1/messages", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert session_manager.session_exists("s1") is False


@pytest.mark.integration
class TestStreaming:

    def test_chunks_then_done(self, client, use_provider):
        use_provider(MockLLMProvider(["Streaming works fine."], chunk_size=5))

        events = stream_turn(client, "s1", "hi")

        kinds = [kind for kind, _ in events]
        assert kinds[-1] == "done"
        assert set(kinds[:-1]) == {"chunk"}
        assert "".join(data["content"] for kind, data in events if kind == "chunk") == "Streaming works fine."

        state = events[-1][1]
        assert state["messages"][-1]["content"] == "Streaming works fine."
        assert state["is_processing"] is False

    def test_preview_mode_streams_notice(self, client):
        events = stream_turn(client, "s1", "hi")
        assert events[0][0] == "chunk"
        assert events[0][1]["content"].startswith("AI not configured:")
        assert events[-1][0] == "done"

    def test_crash_yields_error_event_and_resets_session(self, client, use_provider):
        use_provider(MockLLMProvider([RuntimeError("kaboom")]))

        events = stream_turn(client, "s1", "hi")

        assert events[-1][0] == "error"
        assert events[-1][1]["error"] == "TURN_FAILED"
        state = client.get("/api/v1/chat/s1/messages").json()
        assert state["is_processing"] is False
        assert [m["role"] for m in state["messages"]] == ["user"]


@pytest.mark.integration
class TestSessionState:

    def test_unknown_session_is_empty(self, client):
        state = client.get("/api/v1/chat/never-seen/messages").json()
        assert state["messages"] == []
        assert state["is_processing"] is False

    def test_clear_messages(self, client, use_provider):
        use_provider(MockLLMProvider(["ok"]))
        client.post("/api/v1/chat/s1/messages", json={"message": "hi"})

        response = client.delete("/api/v1/chat/s1/messages")

        assert response.status_code == 200
        assert response.json()["messages"] == []
        assert client.get("/api/v1/chat/s1/messages").json()["messages"] == []

    def test_switch_model(self, client):
        response = client.put("/api/v1/chat/s1/model", json={"model": "qwen/qwen3-8b"})
        assert response.status_code == 200
        assert response.json()["model"] == "qwen/qwen3-8b"

    def test_switch_model_blank_rejected(self, client):
        response = client.put("/api/v1/chat/s1/model", json={"model": "  "})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"
