"""
Message text -> HTML with LaTeX math left for KaTeX.

Only math is handled here: `$$...$$` becomes a display block and `$...$` an
inline span, each using KaTeX auto-render delimiters. Everything else is
HTML-escaped and kept verbatim for the client's Markdown renderer.
"""
from __future__ import annotations

import html
import re
from typing import List, NamedTuple

_MATH = re.compile(r"\$\$([\s\S]+?)\$\$|(?<![\\$])\$(?!\s)([^$\n]+?)(?<!\s)\$(?!\$)")


class Segment(NamedTuple):
    kind: str  # "text" | "inline" | "display"
    value: str


def split_math(text: str) -> List[Segment]:
    segments: List[Segment] = []
    pos = 0
    for m in _MATH.finditer(text):
        if m.start() > pos:
            segments.append(Segment("text", text[pos:m.start()]))
        if m.group(1) is not None:
            segments.append(Segment("display", m.group(1).strip()))
        else:
            segments.append(Segment("inline", m.group(2)))
        pos = m.end()
    if pos < len(text):
        segments.append(Segment("text", text[pos:]))
    return segments


def render_text_html(text: str) -> str:
    parts = []
    for seg in split_math(text):
        if seg.kind == "display":
            parts.append(f'<div class="math math-display">\\[{html.escape(seg.value)}\\]</div>')
        elif seg.kind == "inline":
            parts.append(f'<span class="math math-inline">\\({html.escape(seg.value)}\\)</span>')
        else:
            parts.append(html.escape(seg.value))
    return f'<div class="message-content" style="white-space: pre-wrap">{"".join(parts)}</div>'
