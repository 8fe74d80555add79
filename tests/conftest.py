import os
import tempfile

# keep session files and logs out of the working tree
os.environ.setdefault("PERSIST_DIR", tempfile.mkdtemp(prefix="drillchat-sessions-"))
os.environ.setdefault("LOG_TO_FILE", "")

import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from drillchat.config import Settings
from drillchat.context import PdfContextLoader
from drillchat.graph.graph import ConversationGateway

PDF_TEXT = "Hydrostatic pressure: P = 0.052 x MW x TVD. " * 50


def envelope(content: Optional[str]) -> Dict[str, Any]:
    return {
        "id": "gen-1",
        "model": "test/model",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def make_response(status: int = 200, body: Any = None, content_type: Optional[str] = "application/json",
                  raw: Optional[bytes] = None, reason: str = "OK") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    resp._content = raw if raw is not None else json.dumps(body).encode("utf-8")
    if content_type is not None:
        resp.headers["content-type"] = content_type
    return resp


class FakeChatClient:
    """Records the messages it was sent and replies with a canned envelope or error."""

    def __init__(self, reply: Optional[str] = "Plain answer.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[List[Dict[str, str]]] = []

    def complete(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return envelope(self.reply)


class FakeSession:
    def __init__(self, response=None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    def post(self, url, **kwargs):
        self.requests.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def test_settings():
    return Settings(
        openrouter_api_key="test-key",
        openrouter_url="https://openrouter.test/api/v1/chat/completions",
        openrouter_model="test/model",
        site_url="http://localhost:3000",
        site_name="Drilling Assistant",
    )


@pytest.fixture
def loader():
    return PdfContextLoader(lambda: PDF_TEXT, ttl=600)


@pytest.fixture
def fake_client():
    return FakeChatClient()


@pytest.fixture
def gateway(loader, fake_client):
    return ConversationGateway(loader, fake_client, max_context_chars=100)
