"""
datablocks.py
-------------
Find, repair and re-serialize the chart/table JSON block embedded in a reply.

Marker wire format (at most one honored per reply, graph before table):

    <!--GRAPH_DATA: {"type": "line", "data": [...], "options": {...}} -->
    <!--TABLE_DATA: {"headers": [...], "rows": [[...], ...]} -->

When the model forgets the markers, a standalone JSON object on its own lines
with a graph or table shape is adopted instead, removed from the prose and
re-appended at the end inside the canonical marker.

`extract_data_block` is the only place that knows how blocks are recognized;
`process` is what the gateway calls and never raises.
"""
from __future__ import annotations

import json
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import DataBlockParseError
from ..models import DataBlock, ProcessedReply
from ..utils.app_logging import get_logger
from .sanitize import is_graph_shape, is_table_shape, sanitize_graph, sanitize_table

log = get_logger("graph.datablocks")

GRAPH_TAG = "GRAPH_DATA"
TABLE_TAG = "TABLE_DATA"
GRAPH_MARKER = re.compile(r"<!--GRAPH_DATA:([\s\S]*?)-->")
TABLE_MARKER = re.compile(r"<!--TABLE_DATA:([\s\S]*?)-->")

# candidate start of an unmarked JSON object: a line whose first non-blank char is "{"
_OBJECT_START = re.compile(r"^[ \t]*\{", re.MULTILINE)


def _reject_constant(token: str) -> Any:
    raise ValueError(f"{token} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text} is out of range")
    return value


# strict JSON: no NaN/Infinity tokens, no float literals that overflow
_decoder = json.JSONDecoder(parse_constant=_reject_constant, parse_float=_finite_float)

_MARKERS: List[Tuple[str, "re.Pattern[str]", Callable[[Any], bool]]] = [
    ("graph", GRAPH_MARKER, is_graph_shape),
    ("table", TABLE_MARKER, is_table_shape),
]
_SANITIZERS: Dict[str, Callable[[Any], Any]] = {"graph": sanitize_graph, "table": sanitize_table}
_TAGS = {"graph": GRAPH_TAG, "table": TABLE_TAG}


def _shape_of(obj: Any) -> Optional[str]:
    if is_graph_shape(obj):
        return "graph"
    if is_table_shape(obj):
        return "table"
    return None


def _marker_spans(text: str) -> List[Tuple[int, int]]:
    return [m.span() for _, pattern, _ in _MARKERS for m in pattern.finditer(text)]


def _sniff_unmarked(text: str) -> Optional[DataBlock]:
    """
    First standalone JSON object (textual order) that decodes cleanly, ends its
    line, and has a graph or table shape.
    """
    inside = _marker_spans(text)
    for m in _OBJECT_START.finditer(text):
        start = m.end() - 1
        if any(a <= start < b for a, b in inside):
            continue
        try:
            obj, end = _decoder.raw_decode(text, start)
        except (ValueError, RecursionError):
            continue
        if text[end:].split("\n", 1)[0].strip():
            continue
        kind = _shape_of(obj)
        if kind is not None:
            log.info("Found potential unmarked %s JSON.", kind)
            return DataBlock(kind=kind, payload=obj, span=(start, end), explicit=False)
    return None


def extract_data_block(text: str) -> Optional[DataBlock]:
    """
    Locate the single data block of a reply.

    Raises DataBlockParseError when a marker is present but its body is not
    valid JSON. A marker whose JSON has the wrong shape is skipped.
    """
    for kind, pattern, shape_ok in _MARKERS:
        m = pattern.search(text)
        if not m:
            continue
        raw = m.group(1).strip()
        try:
            payload = _decoder.decode(raw)
        except (ValueError, RecursionError) as e:
            raise DataBlockParseError(kind, raw, e) from e
        if shape_ok(payload):
            log.info("Found existing %s marker.", _TAGS[kind])
            return DataBlock(kind=kind, payload=payload, span=m.span(), explicit=True)
        log.warning("Found %s marker but its content has the wrong shape.", _TAGS[kind])

    return _sniff_unmarked(text)


def format_marker(kind: str, payload: Dict[str, Any]) -> str:
    return f"<!--{_TAGS[kind]}:{json.dumps(payload, indent=2, ensure_ascii=False, allow_nan=False)}-->"


def process(text: str) -> ProcessedReply:
    """
    Post-process a raw model reply.

    Returns the reply with the sanitized block re-serialized in its marker
    (`content`), the prose without the block (`text`), and the payload. Without
    a usable block, or when the marker JSON is malformed, the reply comes back
    unchanged with no payload.
    """
    try:
        block = extract_data_block(text)
    except DataBlockParseError as e:
        log.warning({"event": "data_block_parse_failed", "kind": e.kind, "error": str(e.cause)})
        return ProcessedReply(content=text, text=text)

    if block is None:
        log.info("No data block found in reply.")
        return ProcessedReply(content=text, text=text)

    sanitized = _SANITIZERS[block.kind](block.payload)
    marker = format_marker(block.kind, sanitized)
    start, end = block.span
    before, after = text[:start], text[end:]

    if block.explicit:
        content = before + marker + after
        cleaned = (before + after).strip()
    else:
        cleaned = (before + after).strip()
        content = f"{cleaned}\n\n{marker}" if cleaned else marker

    log.info({"event": "data_block_processed", "kind": block.kind, "explicit": block.explicit})
    return ProcessedReply(
        content=content,
        text=cleaned,
        graph_data=sanitized if block.kind == "graph" else None,
        table_data=sanitized if block.kind == "table" else None,
        kind=block.kind,
        explicit=block.explicit,
    )
