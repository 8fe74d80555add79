"""
graph.py
--------
LangGraph wiring for one chat round-trip.

Flow:
START -> validate -> context -> llm -> format -> END

Every node either returns a partial state update or raises a DrillChatError;
LangGraph re-raises node exceptions to the caller unchanged, so the API layer
sees the original failure class. Nothing is retried.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Union

from langgraph.graph import StateGraph, START, END

from ..context import PdfContextLoader
from ..models import ChatResult, GraphState, Message, ProcessedReply
from ..utils.app_logging import get_logger
from .nodes import ChatClient, make_context_node, make_llm_node, node_format, node_validate

log = get_logger("graph")


def _to_msg_dicts(history: Iterable[Union[Message, Dict[str, Any]]]) -> List[Dict[str, str]]:
    """
    Convert Message objects (or already-plain dicts) to the role/content dicts
    sent upstream. Attached chart/table payloads are dropped.
    """
    out: List[Dict[str, str]] = []
    for m in history:
        if isinstance(m, Message):
            out.append(m.upstream())
        elif isinstance(m, dict):
            out.append({"role": m.get("role", ""), "content": m.get("content", "")})
        else:
            out.append({"role": getattr(m, "role", ""), "content": getattr(m, "content", "")})
    return out


def _result_to_dict(result: Any) -> Dict[str, Any]:
    """
    Normalize a LangGraph invoke result (which may be a Pydantic model or a dict)
    into a plain dict for consistent field access.
    """
    if result is None:
        return {}
    if isinstance(result, dict):
        return result
    # pydantic models iterate as (field, value) pairs; keep nested models intact
    return dict(result)


def build_graph(loader: PdfContextLoader, client: ChatClient, max_context_chars: int):
    """
    Build and compile the chat pipeline.
    """
    g = StateGraph(GraphState)

    g.add_node("validate", node_validate)
    g.add_node("context", make_context_node(loader, max_context_chars))
    g.add_node("llm", make_llm_node(client))
    g.add_node("format", node_format)

    g.add_edge(START, "validate")
    g.add_edge("validate", "context")
    g.add_edge("context", "llm")
    g.add_edge("llm", "format")
    g.add_edge("format", END)

    return g.compile()


class ConversationGateway:
    """
    Entry point used by the HTTP layer: validates the history, grounds it with
    the PDF excerpt, relays it upstream and post-processes the reply.
    """

    def __init__(self, loader: PdfContextLoader, client: ChatClient, max_context_chars: int = 8000):
        self.loader = loader
        self.client = client
        self.app_graph = build_graph(loader, client, max_context_chars)

    def _run(self, history: Iterable[Union[Message, Dict[str, Any]]]) -> Dict[str, Any]:
        raw = self.app_graph.invoke(GraphState(messages=_to_msg_dicts(history)))
        return _result_to_dict(raw)

    def chat(self, history: Iterable[Union[Message, Dict[str, Any]]]) -> ChatResult:
        state = self._run(history)
        processed = ProcessedReply.model_validate(state["processed"])
        return ChatResult(envelope=state["envelope"], raw_reply=state["raw_reply"], processed=processed)

    def send(self, history: Iterable[Union[Message, Dict[str, Any]]]) -> str:
        """Raw assistant reply text, before data-block post-processing."""
        return self.chat(history).raw_reply


def envelope_with_processed(result: ChatResult) -> Dict[str, Any]:
    """
    The provider envelope as returned to the browser: reply content replaced by
    the sanitized version, plus the extracted payload under `processed`.
    """
    envelope = dict(result.envelope)
    choices = [dict(c) for c in envelope["choices"]]
    message = dict(choices[0]["message"])
    message["content"] = result.processed.content
    choices[0]["message"] = message
    envelope["choices"] = choices
    envelope["processed"] = {
        "text": result.processed.text,
        "graphData": result.processed.graph_data,
        "tableData": result.processed.table_data,
    }
    if result.processed.content != result.raw_reply:
        log.debug({"event": "content_modified", "processed": result.processed.content})
    return envelope
