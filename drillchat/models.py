"""
models.py
---------
Pydantic models used by the API layer and LangGraph state.
"""
from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

GRAPH_TYPES = ("line", "bar", "pie", "scatter", "area", "composed")


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    role: Literal["user", "assistant"]
    content: str
    graph_data: Optional[Dict[str, Any]] = Field(default=None, alias="graphData")
    table_data: Optional[Dict[str, Any]] = Field(default=None, alias="tableData")

    def upstream(self) -> Dict[str, str]:
        """Only role and content travel to the LLM API."""
        return {"role": self.role, "content": self.content}


class ChatRequest(BaseModel):
    messages: List[Message]
    session_id: Optional[str] = Field(default=None, description="Persist the round-trip under this session")


class DataBlock(BaseModel):
    """A graph or table JSON block found in an assistant reply."""
    kind: Literal["graph", "table"]
    payload: Dict[str, Any]
    span: Tuple[int, int]
    explicit: bool = True


class ProcessedReply(BaseModel):
    content: str = Field(..., description="Reply with the sanitized block re-serialized in its marker")
    text: str = Field(..., description="Reply with the data block removed")
    graph_data: Optional[Dict[str, Any]] = None
    table_data: Optional[Dict[str, Any]] = None
    kind: Optional[Literal["graph", "table"]] = None
    explicit: Optional[bool] = None


class GraphState(BaseModel):
    messages: List[Dict[str, str]] = Field(default_factory=list)
    context: str = ""
    envelope: Optional[Dict[str, Any]] = None
    raw_reply: Optional[str] = None
    processed: Optional[ProcessedReply] = None


class ChatResult(BaseModel):
    envelope: Dict[str, Any]
    raw_reply: str
    processed: ProcessedReply


class SessionState(BaseModel):
    messages: List[Message] = Field(default_factory=list)
    theme: Literal["light", "dark"] = "light"


class ThemeUpdate(BaseModel):
    theme: Literal["light", "dark"]


class HistoryUpdate(BaseModel):
    messages: List[Message]


class RenderedMessage(BaseModel):
    html: str
    figure: Optional[Dict[str, Any]] = None
    chart_error: Optional[str] = None
