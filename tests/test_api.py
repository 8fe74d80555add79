import pytest
from fastapi.testclient import TestClient

from drillchat.app.deps import get_gateway, get_store
from drillchat.app.main import app
from drillchat.context import PdfContextLoader
from drillchat.errors import UpstreamAuthError
from drillchat.graph.graph import ConversationGateway
from drillchat.graph.memory import SessionKVStore

from conftest import FakeChatClient

TABLE_REPLY = 'Here you go.\n<!--TABLE_DATA:{"headers": ["MW", "P"], "rows": [["10"], [12, 6240]]}-->'
USER = {"role": "user", "content": "Table of pressures please"}


@pytest.fixture
def store(tmp_path):
    return SessionKVStore(str(tmp_path))


@pytest.fixture
def make_client(loader, store):
    def _make(chat_client=None, context_loader=None):
        gw = ConversationGateway(context_loader or loader, chat_client or FakeChatClient(reply=TABLE_REPLY))
        app.dependency_overrides[get_gateway] = lambda: gw
        app.dependency_overrides[get_store] = lambda: store
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_health(make_client):
    assert make_client().get("/health").json() == {"status": "ok"}


def test_chat_returns_envelope_with_sanitized_content(make_client):
    r = make_client().post("/api/chat", json={"messages": [USER]})
    assert r.status_code == 200
    body = r.json()
    assert body["usage"]["total_tokens"] == 15
    content = body["choices"][0]["message"]["content"]
    assert content.startswith("Here you go.\n<!--TABLE_DATA:")
    assert body["processed"]["text"] == "Here you go."
    assert body["processed"]["tableData"]["rows"] == [["10", None], [12, 6240]]
    assert body["processed"]["graphData"] is None


def test_missing_messages_is_400_envelope(make_client):
    r = make_client().post("/api/chat", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid request body"
    assert "messages" in r.json()["details"]


def test_empty_messages_is_400(make_client):
    r = make_client().post("/api/chat", json={"messages": []})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid request body", "details": "Missing or invalid messages array"}


def test_last_message_must_be_user(make_client):
    r = make_client().post("/api/chat", json={"messages": [USER, {"role": "assistant", "content": "ok"}]})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid message sequence", "details": "Last message must be from user"}


def test_unknown_role_is_400(make_client):
    r = make_client().post("/api/chat", json={"messages": [{"role": "system", "content": "x"}]})
    assert r.status_code == 400


def test_upstream_error_status_and_code(make_client):
    client = make_client(FakeChatClient(error=UpstreamAuthError("No auth credentials found", code=401)))
    r = client.post("/api/chat", json={"messages": [USER]})
    assert r.status_code == 401
    assert r.json() == {"error": "API Request Failed", "details": "No auth credentials found", "code": 401}


def test_context_unavailable_is_500(make_client):
    client = make_client(context_loader=PdfContextLoader(lambda: ""))
    r = client.post("/api/chat", json={"messages": [USER]})
    assert r.status_code == 500
    assert r.json()["details"].startswith("Failed to load required PDF context")


def test_unexpected_failure_is_500(make_client):
    r = make_client(FakeChatClient(error=RuntimeError("boom"))).post("/api/chat", json={"messages": [USER]})
    assert r.status_code == 500
    assert r.json() == {"error": "Internal Server Error", "details": "boom"}


def test_chat_appends_to_session(make_client):
    client = make_client()
    r = client.post("/api/chat", json={"messages": [USER], "session_id": "s1"})
    assert r.status_code == 200

    session = client.get("/api/sessions/s1").json()
    assert session["theme"] == "light"
    assert session["messages"][0] == USER
    assert session["messages"][1]["content"] == "Here you go."
    assert session["messages"][1]["tableData"]["headers"] == ["MW", "P"]


def test_chat_rejects_bad_session_id(make_client):
    r = make_client().post("/api/chat", json={"messages": [USER], "session_id": "../../etc"})
    assert r.status_code == 400


def test_session_endpoints(make_client):
    client = make_client()
    assert client.put("/api/sessions/s2/theme", json={"theme": "dark"}).json() == {"messages": [], "theme": "dark"}

    r = client.put("/api/sessions/s2/messages", json={"messages": [USER]})
    assert r.json()["messages"] == [USER]

    r = client.delete("/api/sessions/s2/messages")
    assert r.json() == {"messages": [], "theme": "dark"}

    assert client.put("/api/sessions/s2/theme", json={"theme": "blue"}).status_code == 400


def test_render_endpoint(make_client):
    message = {
        "role": "assistant",
        "content": "Pressure is $P = 0.052 \\times MW \\times TVD$.",
        "graphData": {"type": "bar", "data": [{"name": "A", "psi": 100}, {"name": "B", "psi": 200}]},
    }
    r = make_client().post("/api/render", json=message)
    assert r.status_code == 200
    body = r.json()
    assert "math-inline" in body["html"]
    assert body["figure"]["data"][0]["type"] == "bar"
    assert body["chart_error"] is None


def test_non_finite_marker_reply_passes_through(make_client):
    reply = 'Split:\n<!--GRAPH_DATA: {"type": "pie", "data": [{"name": "A", "value": NaN}]} -->'
    r = make_client(FakeChatClient(reply=reply)).post("/api/chat", json={"messages": [USER]})
    assert r.status_code == 200
    assert r.json()["choices"][0]["message"]["content"] == reply
    assert r.json()["processed"]["graphData"] is None


def test_undecodable_session_file_starts_empty(make_client, tmp_path):
    (tmp_path / "s1.json").write_bytes(b'{"messages": [], "theme": "\xff\xfe"}')
    r = make_client().get("/api/sessions/s1")
    assert r.status_code == 200
    assert r.json() == {"messages": [], "theme": "light"}


class BrokenStore:
    def read(self, session_id):
        raise RuntimeError("disk unavailable")

    def append(self, session_id, messages):
        raise RuntimeError("disk unavailable")


def test_unexpected_errors_use_the_error_envelope(make_client):
    make_client()
    app.dependency_overrides[get_store] = lambda: BrokenStore()
    client = TestClient(app, raise_server_exceptions=False)

    r = client.get("/api/sessions/s1")
    assert r.status_code == 500
    assert r.json() == {"error": "Internal Server Error", "details": "disk unavailable"}

    r = client.post("/api/chat", json={"messages": [USER], "session_id": "s1"})
    assert r.status_code == 500
    assert r.json() == {"error": "Internal Server Error", "details": "disk unavailable"}
