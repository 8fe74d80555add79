"""
nodes.py
--------
Node implementations for the chat pipeline.

This module defines:
- History validation (the last turn must come from the user)
- The context step (loads the reference-document excerpt)
- The LLM step (system prompt + history -> provider envelope)
- The format step (data-block extraction and sanitization)

Nodes are built by factories so the context loader and chat client can be
swapped in tests; each returns a partial state update.
"""
from __future__ import annotations

from typing import Any, Dict, List, Protocol

from ..context import PdfContextLoader
from ..errors import InvalidRequest, UpstreamResponseError
from ..llm.openrouter_client import reply_text
from ..models import GraphState
from ..utils.app_logging import get_logger
from .datablocks import process
from .prompts import build_system_prompt

log = get_logger("graph.nodes")


class ChatClient(Protocol):
    def complete(self, messages: List[Dict[str, str]]) -> Dict[str, Any]: ...


def validate_history(messages: List[Dict[str, str]]) -> None:
    """
    Raise InvalidRequest unless `messages` is a non-empty list whose last
    entry has role "user".
    """
    if not isinstance(messages, list) or not messages:
        log.error("Invalid request body: 'messages' array missing, empty or invalid.")
        raise InvalidRequest("Missing or invalid messages array")
    last = messages[-1]
    if not isinstance(last, dict) or last.get("role") != "user":
        log.error("Invalid message sequence: Last message not from user.")
        raise InvalidRequest("Last message must be from user", error="Invalid message sequence")


def node_validate(state: GraphState) -> Dict[str, Any]:
    validate_history(state.messages)
    return {}


def make_context_node(loader: PdfContextLoader, max_chars: int):
    def node(state: GraphState) -> Dict[str, Any]:
        log.info("Ensuring PDF context is available...")
        return {"context": loader.snippet(max_chars)}
    return node


def make_llm_node(client: ChatClient):
    def node(state: GraphState) -> Dict[str, Any]:
        system = {"role": "system", "content": build_system_prompt(state.context)}
        envelope = client.complete([system, *state.messages])
        text = reply_text(envelope)
        if text is None:
            raise UpstreamResponseError("Received an unexpected response format from the AI provider.")
        return {"envelope": envelope, "raw_reply": text}
    return node


def node_format(state: GraphState) -> Dict[str, Any]:
    """Data-block extraction and sanitization; never fails the round-trip."""
    log.info("--- Applying formatting/sanitization ---")
    processed = process(state.raw_reply or "")
    if processed.content == state.raw_reply:
        log.info("Content unchanged by formatting.")
    return {"processed": processed}
