from __future__ import annotations

from ..models import Message, RenderedMessage
from .charts import render_chart
from .content import render_text_html
from .tables import render_table_html


def render_message(message: Message) -> RenderedMessage:
    """Assistant bubble: text with math, then the chart or the table if one is attached."""
    parts = [render_text_html(message.content)]
    figure = None
    chart_error = None
    if message.graph_data:
        chart = render_chart(message.graph_data)
        parts.append(chart.html)
        figure, chart_error = chart.figure, chart.error
    elif message.table_data and message.table_data.get("headers") and isinstance(message.table_data.get("rows"), list):
        parts.append(render_table_html(message.table_data))
    return RenderedMessage(html="".join(parts), figure=figure, chart_error=chart_error)
