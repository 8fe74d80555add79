"""
Chart payload -> plotly figure.

`identify_keys` re-validates a sanitized GraphPayload before anything is drawn
(the sanitizer repairs what it can, it does not guarantee a drawable chart).
`render_chart` never raises: validation or plotly failures come back as an
inline notice in place of the chart.
"""
from __future__ import annotations

import html
import json
from typing import Any, Dict, List, NamedTuple, Optional

import plotly.graph_objects as go

from ..graph.sanitize import is_number
from ..models import GRAPH_TYPES
from ..utils.app_logging import get_logger

log = get_logger("render.charts")

COLORS = [
    "#8884d8", "#82ca9d", "#ffc658", "#ff7300", "#0088fe", "#00c49f", "#ffbb28", "#ff8042",
    "#a4de6c", "#d0ed57", "#ff4d4d", "#4dffff", "#ffa64d", "#cc4dff", "#4d79ff", "#4dff4d",
]
DEFAULT_HEIGHT = 300


class ChartConfigError(ValueError):
    """The payload cannot be drawn as the requested chart type."""


class ChartKeys(NamedTuple):
    category: str
    series: List[str]


class RenderedChart(NamedTuple):
    figure: Optional[Dict[str, Any]]
    html: str
    error: Optional[str] = None


def identify_keys(chart_type: str, data: Any, options: Optional[Dict[str, Any]] = None) -> ChartKeys:
    """
    Work out which record keys feed the category axis and the plotted series.
    Raises ChartConfigError with a message fit to show the user.
    """
    if not isinstance(data, list) or not data:
        raise ChartConfigError("Invalid or empty graph data provided. Cannot render chart.")
    first = data[0]
    if not isinstance(first, dict):
        raise ChartConfigError("Graph data items must be objects. Cannot render chart.")
    if not first:
        raise ChartConfigError("Data objects have no keys.")

    kind = (chart_type or "").lower()
    keys = list(first)
    options = options or {}

    if kind == "pie":
        if "name" not in first or "value" not in first:
            raise ChartConfigError("Pie chart data requires 'name' and 'value' properties.")
        if not is_number(first["value"]):
            raise ChartConfigError("Pie chart 'value' property must be a number.")
        return ChartKeys("name", ["value"])

    if kind == "scatter":
        if "x" not in first or "y" not in first:
            raise ChartConfigError("Scatter chart data requires 'x' and 'y' properties.")
        if not is_number(first["x"]) or not is_number(first["y"]):
            raise ChartConfigError("Scatter chart 'x' and 'y' values must be numbers.")
        return ChartKeys("x", ["y"])

    if kind in ("line", "bar", "area", "composed"):
        if "name" in first:
            category = "name"
        else:
            category = next((k for k in keys if isinstance(first[k], str)), "")
            if not category:
                raise ChartConfigError(
                    f"Could not identify a string category key (expected 'name' or similar) for "
                    f"'{chart_type}'. Found keys: {', '.join(keys)}."
                )
            log.warning("Using fallback category key '%s' for %s chart.", category, chart_type)
        series = [k for k in keys if k != category and is_number(first[k])]
        if not series:
            raise ChartConfigError(
                f"No numeric data keys found for '{chart_type}' chart besides category "
                f"'{category}'. Found keys: {', '.join(keys)}."
            )
        if kind == "composed":
            config = options.get("chartConfig")
            if not isinstance(config, list) or not config:
                raise ChartConfigError(
                    "Composed chart requires 'options.chartConfig' array defining types and dataKeys."
                )
            configured = [c.get("dataKey") for c in config if isinstance(c, dict) and c.get("dataKey")]
            if not configured:
                raise ChartConfigError("Composed 'chartConfig' lacks valid 'dataKey' definitions.")
            missing = [k for k in configured if k not in first]
            if missing:
                raise ChartConfigError(
                    f"Composed configured dataKey(s) not found in data: {', '.join(missing)}. "
                    f"Available keys: {', '.join(keys)}"
                )
        return ChartKeys(category, series)

    raise ChartConfigError(f"Unsupported chart type: '{chart_type}'. Supported: {', '.join(GRAPH_TYPES)}.")


def _column(data: List[Any], key: str) -> List[Any]:
    return [row.get(key) if isinstance(row, dict) else None for row in data]


def _label(options: Dict[str, Any], key: str) -> str:
    labels = options.get("labels")
    return labels.get(key, key) if isinstance(labels, dict) else key


def _axis_title(options: Dict[str, Any], axis: str) -> Optional[str]:
    spec = options.get(axis)
    return spec.get("name") if isinstance(spec, dict) else None


def _series_trace(kind: str, data: List[Any], category: str, key: str, name: str, color: str,
                  options: Dict[str, Any]):
    x = _column(data, category)
    y = _column(data, key)
    if kind == "bar":
        if options.get("layout") == "vertical":
            return go.Bar(x=y, y=x, orientation="h", name=name, marker_color=color)
        return go.Bar(x=x, y=y, name=name, marker_color=color)
    if kind == "area":
        extra = {"stackgroup": "one"} if options.get("stacked") else {"fill": "tozeroy"}
        return go.Scatter(x=x, y=y, mode="lines", name=name, line={"color": color},
                          connectgaps=bool(options.get("connectNulls", False)), **extra)
    mode = "lines+markers" if len(data) < 50 else "lines"
    return go.Scatter(x=x, y=y, mode=mode, name=name, line={"color": color, "width": 2},
                      connectgaps=bool(options.get("connectNulls", False)))


def build_figure(graph: Dict[str, Any]) -> go.Figure:
    """Dispatch on `type` to the matching plotly traces."""
    chart_type = graph.get("type") or ""
    data = graph.get("data")
    options = graph.get("options") if isinstance(graph.get("options"), dict) else {}
    keys = identify_keys(chart_type, data, options)
    kind = chart_type.lower()

    fig = go.Figure()
    if kind == "pie":
        inner = options.get("innerRadius") or 0
        fig.add_trace(go.Pie(
            labels=_column(data, "name"),
            values=_column(data, "value"),
            hole=0.4 if is_number(inner) and inner > 0 else 0,
            marker={"colors": [COLORS[i % len(COLORS)] for i in range(len(data))]},
        ))
    elif kind == "scatter":
        fig.add_trace(go.Scatter(
            x=_column(data, "x"),
            y=_column(data, "y"),
            mode="markers",
            name=options.get("seriesName") or "Points",
            text=_column(data, "label"),
            marker={"color": options.get("scatterColor") or COLORS[0]},
        ))
    elif kind == "composed":
        for i, cfg in enumerate(options["chartConfig"]):
            if not isinstance(cfg, dict) or not cfg.get("type") or cfg.get("dataKey") not in data[0]:
                log.warning("Invalid/missing item in composed chartConfig: %s", cfg)
                continue
            sub = str(cfg["type"]).lower()
            if sub not in ("line", "bar", "area"):
                log.warning("Unsupported type '%s' in composed config.", cfg["type"])
                continue
            key = cfg["dataKey"]
            name = cfg.get("name") or _label(options, key)
            color = cfg.get("color") or COLORS[i % len(COLORS)]
            fig.add_trace(_series_trace(sub, data, keys.category, key, name, color, options))
    else:
        for i, key in enumerate(keys.series):
            fig.add_trace(_series_trace(kind, data, keys.category, key, _label(options, key),
                                        COLORS[i % len(COLORS)], options))
        if kind == "bar" and options.get("stacked"):
            fig.update_layout(barmode="stack")

    height = options.get("height")
    fig.update_layout(
        title=graph.get("title"),
        height=height if is_number(height) and height > 50 else DEFAULT_HEIGHT,
        showlegend=True,
    )
    if kind != "pie":
        fig.update_xaxes(title_text=_axis_title(options, "xAxis"))
        fig.update_yaxes(title_text=_axis_title(options, "yAxis"))
    return fig


def _notice(title: str, message: str) -> str:
    return f'<div class="chart-error"><strong>{html.escape(title)}</strong> {html.escape(message)}</div>'


def render_chart(graph: Dict[str, Any]) -> RenderedChart:
    """
    Figure JSON plus an embeddable HTML fragment, or an inline error notice.
    """
    try:
        fig = build_figure(graph)
    except ChartConfigError as e:
        log.warning("Chart configuration error: %s", e)
        return RenderedChart(None, _notice("Chart Configuration Error:", str(e)), str(e))
    except (ValueError, TypeError) as e:
        log.exception("Chart rendering error for type %r", graph.get("type"))
        msg = f"Failed to render the '{graph.get('type')}' chart. Details: {e}"
        return RenderedChart(None, _notice("Chart Rendering Error!", msg), msg)

    note = (graph.get("options") or {}).get("note") if isinstance(graph.get("options"), dict) else None
    body = fig.to_html(full_html=False, include_plotlyjs="cdn")
    if note:
        body += f'<p class="chart-note">{html.escape(str(note))}</p>'
    return RenderedChart(json.loads(fig.to_json()), f'<div class="chart">{body}</div>')
