import json
import logging

from drillchat.utils.app_logging import JsonFormatter


def _record(msg, args=(), **extra):
    record = logging.LogRecord("drillchat.graph", logging.INFO, __file__, 1, msg, args, None)
    record.__dict__.update(extra)
    return record


def test_dict_message_merged_with_extras():
    line = JsonFormatter("sess-1").format(_record({"event": "llm_usage", "total_tokens": 15}, request_id="r1"))
    entry = json.loads(line)
    assert entry["event"] == "llm_usage" and entry["total_tokens"] == 15
    assert entry["request_id"] == "r1"
    assert entry["session_id"] == "sess-1"
    assert entry["logger"] == "drillchat.graph"
    assert "message" not in entry and "args" not in entry


def test_text_message_is_formatted():
    entry = json.loads(JsonFormatter("s").format(_record("truncated to %d characters", (8000,))))
    assert entry["message"] == "truncated to 8000 characters"
    assert entry["level"] == "INFO"
