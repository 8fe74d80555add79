from __future__ import annotations

import html
import json
from typing import Any, Dict


def render_cell(cell: Any) -> str:
    if cell is None:
        return ""
    if isinstance(cell, (dict, list)):
        return html.escape(json.dumps(cell, ensure_ascii=False))
    return html.escape(str(cell))


def render_table_html(table: Dict[str, Any]) -> str:
    """HTML table for a sanitized TablePayload; rows are read up to the header width."""
    headers = table.get("headers") or []
    rows = table.get("rows") or []
    parts = ['<div class="data-table">']
    if table.get("title"):
        parts.append(f'<h4>{html.escape(str(table["title"]))}</h4>')
    parts.append("<table><thead><tr>")
    parts.extend(f'<th scope="col">{render_cell(h)}</th>' for h in headers)
    parts.append("</tr></thead><tbody>")
    if rows:
        for row in rows:
            cells = row if isinstance(row, list) else []
            parts.append("<tr>")
            parts.extend(
                f"<td>{render_cell(cells[i] if i < len(cells) else None)}</td>" for i in range(len(headers))
            )
            parts.append("</tr>")
    else:
        parts.append(f'<tr><td colspan="{max(len(headers), 1)}">No data available.</td></tr>')
    parts.append("</tbody></table>")
    note = table.get("options", {}).get("note") if isinstance(table.get("options"), dict) else None
    if note:
        parts.append(f'<p class="table-note">{html.escape(str(note))}</p>')
    parts.append("</div>")
    return "".join(parts)
