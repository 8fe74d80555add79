"""
context.py
----------
Reference-document context for the assistant.

The text of the drilling formulas PDF is read once (from a pre-extracted JSON
artifact, or by parsing the PDF with PyMuPDF) and cached for a fixed time
window. The gateway only ever consumes a flat prefix of it.
"""
from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Callable, Optional

from .config import settings
from .errors import ContextUnavailable
from .utils.app_logging import get_logger

log = get_logger("context")

TextSource = Callable[[], str]


def extract_pdf_text(pdf_path: str | Path) -> str:
    """
    Return the plain text of every page of a PDF, pages joined by newlines.
    Encrypted documents yield an empty string.
    """
    import fitz  # PyMuPDF

    parts = []
    with fitz.open(str(pdf_path)) as doc:
        if getattr(doc, "needs_pass", False):
            log.warning("PDF %s is encrypted; no text extracted", pdf_path)
            return ""
        for page in doc:
            parts.append(page.get_text("text") or "")
    return "\n".join(parts)


def json_artifact_source(path: str | Path) -> TextSource:
    """Source reading the `{"content": "..."}` file written by drillchat-extract-pdf."""
    artifact = Path(path)

    def load() -> str:
        if not artifact.exists():
            raise ContextUnavailable(
                f"Failed to load required PDF context from pre-generated data: {artifact} not found"
            )
        try:
            data = json.loads(artifact.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ContextUnavailable(
                f"Failed to load required PDF context from pre-generated data: {e}"
            ) from e
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise ContextUnavailable(
                "Failed to load required PDF context from pre-generated data: "
                "invalid or missing 'content' key"
            )
        return content

    return load


def pdf_file_source(path: str | Path) -> TextSource:
    """Source parsing the reference PDF at request time."""
    pdf = Path(path)

    def load() -> str:
        if not pdf.exists():
            raise ContextUnavailable(f"Failed to load required PDF context: {pdf} not found")
        try:
            return extract_pdf_text(pdf)
        except RuntimeError as e:  # fitz raises RuntimeError subclasses for corrupt files
            raise ContextUnavailable(f"Failed to load required PDF context: {e}") from e

    return load


def source_from_settings() -> TextSource:
    """Prefer the pre-extracted artifact; fall back to the PDF when only that is configured."""
    if settings.context_pdf_path and not Path(settings.context_json_path).exists():
        return pdf_file_source(settings.context_pdf_path)
    return json_artifact_source(settings.context_json_path)


class PdfContextLoader:
    """
    Process-scoped cache around a text source.

    `get_context()` reloads when the cache is empty or older than `ttl` seconds.
    Two requests racing on an expired cache may both reload; the source is
    immutable for a deployment so either result is correct.
    """

    def __init__(
        self,
        source: TextSource,
        ttl: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self.ttl = ttl
        self._clock = clock
        self._text: Optional[str] = None
        self._loaded_at: Optional[float] = None

    def _fresh(self, now: float) -> bool:
        return self._text is not None and self._loaded_at is not None and now - self._loaded_at < self.ttl

    def get_context(self) -> str:
        now = self._clock()
        if self._fresh(now):
            return self._text  # type: ignore[return-value]
        return self._load(now)

    def refresh(self) -> str:
        return self._load(self._clock())

    def clear(self) -> None:
        self._text = None
        self._loaded_at = None

    def snippet(self, max_chars: int) -> str:
        text = self.get_context()
        if len(text) > max_chars:
            log.info("PDF context truncated to %d characters.", max_chars)
        return text[:max_chars]

    def _load(self, now: float) -> str:
        log.info("Loading reference document text...")
        try:
            text = self._source()
        except ContextUnavailable:
            self.clear()
            log.exception("Error loading PDF context")
            raise
        if not text or not text.strip():
            self.clear()
            raise ContextUnavailable("Failed to load required PDF context: reference document text is empty")
        self._text = text
        self._loaded_at = now
        log.info({"event": "context_loaded", "chars": len(text)})
        return text
