"""
memory.py
---------
Per-session chat persistence.

Server-side mirror of what the browser keeps in local storage: the message
history (including attached chart/table payloads) and the theme preference,
one JSON file per session id. A stored history that fails to parse or
validate is discarded and the session starts empty.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Iterable, List

from pydantic import ValidationError

from ..errors import InvalidRequest
from ..models import Message, SessionState
from ..utils.app_logging import get_logger

log = get_logger("graph.memory")

_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def check_session_id(session_id: str) -> str:
    if not _SESSION_ID.match(session_id or ""):
        raise InvalidRequest(f"Invalid session id: {session_id!r}")
    return session_id


class SessionKVStore:
    """
    Minimal session-scoped store (JSON-backed). Writes replace the whole file;
    there is no locking, the last writer wins.
    """
    def __init__(self, persist_dir: str) -> None:
        self.root = Path(persist_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self.root / f"{check_session_id(session_id)}.json"

    def read(self, session_id: str) -> SessionState:
        p = self._path(session_id)
        if not p.exists():
            return SessionState()
        try:
            raw = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:  # unreadable, not UTF-8, or not JSON
            log.error("Failed to load/parse chat history for %s: %s", session_id, e)
            p.unlink(missing_ok=True)
            return SessionState()

        theme = raw.get("theme") if isinstance(raw, dict) and raw.get("theme") in ("light", "dark") else "light"
        try:
            return SessionState.model_validate(raw)
        except ValidationError:
            log.warning("Stored history for %s was malformed. Starting fresh.", session_id)
            state = SessionState(theme=theme)
            self.write(session_id, state)
            return state

    def write(self, session_id: str, state: SessionState) -> None:
        p = self._path(session_id)
        p.write_text(
            json.dumps(state.model_dump(by_alias=True, exclude_none=True), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    def replace_messages(self, session_id: str, messages: List[Message]) -> SessionState:
        state = self.read(session_id)
        state.messages = list(messages)
        self.write(session_id, state)
        return state

    def append(self, session_id: str, messages: Iterable[Message]) -> SessionState:
        state = self.read(session_id)
        state.messages.extend(messages)
        self.write(session_id, state)
        return state

    def clear_messages(self, session_id: str) -> SessionState:
        state = self.read(session_id)
        state.messages = []
        self.write(session_id, state)
        return state

    def set_theme(self, session_id: str, theme: str) -> SessionState:
        state = self.read(session_id)
        state.theme = theme  # type: ignore[assignment]
        self.write(session_id, state)
        return state
