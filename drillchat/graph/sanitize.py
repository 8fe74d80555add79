"""
sanitize.py
-----------
Shape repair for chart and table payloads produced by the model.

Models routinely emit numbers as strings, series keys with spaces or dots, and
scatter points keyed by the measured quantity instead of `x`/`y`. These helpers
return a corrected deep copy and record what changed in `options.note` so the
UI can disclose it.
"""
from __future__ import annotations

import copy
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from ..utils.app_logging import get_logger

log = get_logger("graph.sanitize")

SLUG_CHARS = re.compile(r"[\s.\-]+")
_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

KEYS_SANITIZED_NOTE = "Keys sanitized (e.g., spaces replaced with underscores)."
OTHER_KEYS_SANITIZED_NOTE = "Other keys sanitized (e.g., spaces replaced with underscores)."
TABLE_NOTE = "Table rows were corrected for consistency."

# never slugged, whatever the chart type
_RESERVED = ("label", "value")


def slugify_key(key: str) -> str:
    return SLUG_CHARS.sub("_", key)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def coerce_number(value: Any) -> Any:
    """'12' -> 12, ' 3.5 ' -> 3.5, '1e3' -> 1000.0; anything else unchanged."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not _NUMBER.fullmatch(text):
        return value
    try:
        if not any(c in text for c in ".eE"):
            return int(text)
        number = float(text)
    except ValueError:  # more digits than int() will convert
        return value
    return number if math.isfinite(number) else value


def is_graph_shape(obj: Any) -> bool:
    return (
        isinstance(obj, dict)
        and isinstance(obj.get("type"), str)
        and bool(obj.get("type"))
        and isinstance(obj.get("data"), list)
    )


def is_table_shape(obj: Any) -> bool:
    return isinstance(obj, dict) and isinstance(obj.get("headers"), list) and isinstance(obj.get("rows"), list)


def _axis_hint(options: Optional[Dict[str, Any]], axis: str) -> Optional[str]:
    if not isinstance(options, dict):
        return None
    spec = options.get(axis)
    if isinstance(spec, dict) and isinstance(spec.get("name"), str):
        return spec["name"]
    return None


def _scatter_sources(first: Dict[str, Any], options: Optional[Dict[str, Any]]) -> Tuple[Optional[str], Optional[str]]:
    """Pick the record keys feeding x and y: axis-name hints first, then the first two numeric keys."""
    x_hint = _axis_hint(options, "xAxis")
    y_hint = _axis_hint(options, "yAxis")
    x_src = x_hint if x_hint is not None and x_hint in first else None
    y_src = y_hint if y_hint is not None and y_hint in first else None

    if x_src is None or y_src is None:
        numeric = [k for k, v in first.items() if is_number(v)]
        if x_src is None and numeric:
            x_src = numeric[0]
        if y_src is None and len(numeric) > 1 and numeric[1] != x_src:
            y_src = numeric[1]
    return x_src, y_src


def _remap_scatter(data: List[Any], x_src: str, y_src: str) -> Tuple[List[Any], bool]:
    renamed_other = False
    out: List[Any] = []
    for point in data:
        if not isinstance(point, dict):
            out.append(point)
            continue
        mapped: Dict[str, Any] = {}
        if x_src in point:
            mapped["x"] = coerce_number(point[x_src])
        if y_src in point:
            mapped["y"] = coerce_number(point[y_src])
        for key, value in point.items():
            if key in (x_src, y_src):
                continue
            new_key = slugify_key(key)
            renamed_other = renamed_other or new_key != key
            mapped[new_key] = value
        out.append(mapped)
    return out, renamed_other


def _category_key(graph_type: str, first: Dict[str, Any]) -> str:
    if graph_type == "pie" or "name" in first:
        return "name"
    return next((k for k, v in first.items() if isinstance(v, str)), "")


def _numeric_slot(graph_type: str, key: str, category: str) -> bool:
    if graph_type == "pie":
        return key == "value"
    if graph_type == "scatter":
        return key in ("x", "y")
    return key != category and key != "label"


def _append_note(note: str, extra: str) -> str:
    return f"{note} {extra}".strip() if note else extra


def sanitize_graph(graph: Any) -> Any:
    """
    Return a repaired copy of a graph payload.

    Scatter records are remapped onto canonical `x`/`y` keys; other chart types
    keep their category key and get every series value coerced to a number.
    Keys containing whitespace, periods or hyphens become underscore slugs, and
    `options.chartConfig[].dataKey` follows the renames. Payloads without a
    usable `type`/`data` are returned unchanged.
    """
    if not is_graph_shape(graph):
        log.warning("Invalid graph data structure passed to sanitizer.")
        return graph

    graph = copy.deepcopy(graph)
    graph_type = graph["type"].lower()
    data: List[Any] = graph["data"]
    if not data or not isinstance(data[0], dict):
        log.warning("Graph data array is empty or contains non-object items.")
        return graph

    options = graph.get("options") if isinstance(graph.get("options"), dict) else None
    note = ""
    category = ""

    if graph_type == "scatter":
        x_src, y_src = _scatter_sources(data[0], options)
        if x_src is None or y_src is None:
            log.error("Scatter plot: failed to identify source keys for 'x' and 'y'.")
        else:
            data, renamed_other = _remap_scatter(data, x_src, y_src)
            moved = [f"'{src}' -> '{dst}'" for src, dst in ((x_src, "x"), (y_src, "y")) if src != dst]
            if moved:
                note = f"Keys mapped: {', '.join(moved)}."
            if renamed_other:
                note = _append_note(note, OTHER_KEYS_SANITIZED_NOTE)
            if note:
                log.info("Scatter plot data keys mapped: %s", note)
    else:
        category = _category_key(graph_type, data[0])
        if not category:
            log.warning("Could not determine category key for %s", graph_type)

    renames: Dict[str, str] = {}
    cleaned: List[Any] = []
    for point in data:
        if not isinstance(point, dict):
            cleaned.append(point)
            continue
        fixed: Dict[str, Any] = {}
        for key, value in point.items():
            new_key = key
            protected = key == category or key in _RESERVED or (graph_type == "scatter" and key in ("x", "y"))
            if not protected:
                new_key = slugify_key(key)
                if new_key != key:
                    renames[key] = new_key
            if _numeric_slot(graph_type, new_key, category):
                value = coerce_number(value)
            fixed[new_key] = value
        cleaned.append(fixed)

    if renames and "sanitized" not in note:
        note = _append_note(note, KEYS_SANITIZED_NOTE)

    if note:
        if options is None:
            options = {}
        options["note"] = note
        graph["options"] = options

    if renames and options and isinstance(options.get("chartConfig"), list):
        options["chartConfig"] = [
            {**cfg, "dataKey": renames[cfg["dataKey"]]}
            if isinstance(cfg, dict) and cfg.get("dataKey") in renames
            else cfg
            for cfg in options["chartConfig"]
        ]

    graph["data"] = cleaned
    return graph


def sanitize_table(table: Any) -> Any:
    """
    Return a copy of a table payload whose rows all have `len(headers)` cells.
    Short rows are padded with None, long rows truncated, and non-list rows
    replaced by a row of None.
    """
    if not is_table_shape(table):
        log.warning("Invalid table data structure passed to sanitizer.")
        return table

    table = copy.deepcopy(table)
    width = len(table["headers"])
    corrected = False
    rows: List[List[Any]] = []
    for index, row in enumerate(table["rows"]):
        if not isinstance(row, list):
            log.warning("Table row %d is not an array, replacing with nulls.", index)
            corrected = True
            rows.append([None] * width)
        elif len(row) != width:
            log.warning("Table row %d length mismatch (%d vs %d), padding/truncating.", index, len(row), width)
            corrected = True
            rows.append((row + [None] * width)[:width])
        else:
            rows.append(row)

    if corrected:
        options = table.get("options") if isinstance(table.get("options"), dict) else {}
        if not options.get("note"):
            options["note"] = TABLE_NOTE
        table["options"] = options

    table["rows"] = rows
    return table
