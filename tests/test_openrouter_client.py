import pytest
import requests

from drillchat.errors import (
    ConfigurationError,
    UpstreamAuthError,
    UpstreamBadRequest,
    UpstreamBillingError,
    UpstreamProtocolError,
    UpstreamRateLimited,
    UpstreamRequestError,
    UpstreamResponseError,
    UpstreamServerError,
    classify_upstream_error,
)
from drillchat.llm.openrouter_client import OfflineChatClient, OpenRouterClient, reply_text

from conftest import FakeSession, envelope, make_response

MESSAGES = [{"role": "system", "content": "rules"}, {"role": "user", "content": "What is ECD?"}]


def _client(test_settings, response=None, error=None):
    session = FakeSession(response=response, error=error)
    return OpenRouterClient(test_settings, session=session), session


def test_request_shape(test_settings):
    client, session = _client(test_settings, make_response(body=envelope("ECD is ...")))
    data = client.complete(MESSAGES)

    assert data["choices"][0]["message"]["content"] == "ECD is ..."
    sent = session.requests[0]
    assert sent["url"] == "https://openrouter.test/api/v1/chat/completions"
    assert sent["headers"]["Authorization"] == "Bearer test-key"
    assert sent["headers"]["HTTP-Referer"] == "http://localhost:3000"
    assert sent["headers"]["X-Title"] == "Drilling Assistant"
    assert sent["json"] == {"model": "test/model", "messages": MESSAGES, "max_tokens": 4096}
    assert sent["timeout"] is None


def test_missing_api_key_fails_before_any_io(test_settings):
    cfg = test_settings.model_copy(update={"openrouter_api_key": ""})
    client, session = _client(cfg, make_response(body=envelope("x")))
    with pytest.raises(ConfigurationError) as exc:
        client.complete(MESSAGES)
    assert exc.value.details == "Server configuration error: API Key is missing."
    assert exc.value.http_status == 500
    assert session.requests == []


def test_transport_failure(test_settings):
    client, _ = _client(test_settings, error=requests.ConnectionError("connection refused"))
    with pytest.raises(UpstreamProtocolError) as exc:
        client.complete(MESSAGES)
    assert exc.value.http_status == 502
    assert exc.value.to_envelope()["error"] == "API Error"


def test_non_json_content_type(test_settings):
    resp = make_response(status=503, raw=b"<html>Bad gateway</html>", content_type="text/html")
    client, _ = _client(test_settings, resp)
    with pytest.raises(UpstreamProtocolError) as exc:
        client.complete(MESSAGES)
    assert "unexpected content type 'text/html'" in exc.value.details
    assert "Status: 503" in exc.value.details


def test_invalid_json_body(test_settings):
    client, _ = _client(test_settings, make_response(raw=b"{not json"))
    with pytest.raises(UpstreamProtocolError) as exc:
        client.complete(MESSAGES)
    assert exc.value.http_status == 502


@pytest.mark.parametrize(
    "error, cls, status",
    [
        ({"code": 400, "message": "bad"}, UpstreamBadRequest, 400),
        ({"code": 401, "message": "no key"}, UpstreamAuthError, 401),
        ({"code": 402, "message": "no credits"}, UpstreamBillingError, 402),
        ({"code": 429, "message": "slow down"}, UpstreamRateLimited, 429),
        ({"code": 503, "message": "down"}, UpstreamServerError, 502),
        ({"type": "rate_limit_error", "message": "slow down"}, UpstreamRateLimited, 429),
        ({"type": "api_error", "message": "oops"}, UpstreamServerError, 502),
        ({"code": 418, "message": "teapot"}, UpstreamRequestError, 502),
    ],
)
def test_error_envelope_mapping(test_settings, error, cls, status):
    client, _ = _client(test_settings, make_response(status=200, body={"error": error}))
    with pytest.raises(cls) as exc:
        client.complete(MESSAGES)
    assert type(exc.value) is cls
    assert exc.value.http_status == status
    body = exc.value.to_envelope()
    assert body["error"] == "API Request Failed"
    assert body["details"] == error["message"]
    if "code" in error:
        assert body["code"] == error["code"]
    else:
        assert "code" not in body


def test_error_envelope_without_message(test_settings):
    client, _ = _client(test_settings, make_response(status=400, body={"error": {"code": 400}}))
    with pytest.raises(UpstreamBadRequest) as exc:
        client.complete(MESSAGES)
    assert exc.value.details == "Unknown error from API provider."


@pytest.mark.parametrize("status, cls, expected", [(401, UpstreamAuthError, 401), (500, UpstreamServerError, 502)])
def test_http_error_without_envelope(test_settings, status, cls, expected):
    resp = make_response(status=status, body={"detail": "nope"}, reason="Failure")
    client, _ = _client(test_settings, resp)
    with pytest.raises(cls) as exc:
        client.complete(MESSAGES)
    assert exc.value.http_status == expected
    assert exc.value.error == "API Communication Error"
    assert f"status {status}" in exc.value.details


@pytest.mark.parametrize("body", [{"choices": []}, envelope(None), envelope(""), {"choices": [{"message": "x"}]}, ["x"]])
def test_missing_reply_content(test_settings, body):
    client, _ = _client(test_settings, make_response(body=body))
    with pytest.raises(UpstreamResponseError) as exc:
        client.complete(MESSAGES)
    assert exc.value.http_status == 500
    assert exc.value.error == "API Response Error"


def test_classify_upstream_error_codes_before_types():
    assert classify_upstream_error(401, "rate_limit_error") is UpstreamAuthError
    assert classify_upstream_error("429", None) is UpstreamRateLimited
    assert classify_upstream_error(None, "billing_error") is UpstreamBillingError
    assert classify_upstream_error(None, None) is UpstreamRequestError


def test_reply_text():
    assert reply_text(envelope("hi")) == "hi"
    assert reply_text({}) is None
    assert reply_text({"choices": [{"message": {"content": 3}}]}) is None


def test_offline_client_returns_table_marker():
    data = OfflineChatClient().complete([{"role": "user", "content": "mud weight?"}])
    content = reply_text(data)
    assert "mud weight?" in content
    assert "<!--TABLE_DATA:" in content
