"""
Pre-extract the reference PDF's text into the JSON artifact the API loads.

    drillchat-extract-pdf "data/Formulas and Calculations in Drilling.pdf" -o data/pdf-content.json

Writes `{"content": "<text>"}`. Exits with status 1 if the PDF is missing or
cannot be parsed; an empty extraction is written but reported as a warning.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from ..config import settings
from ..context import extract_pdf_text
from ..utils.app_logging import get_logger, setup_logging

log = get_logger("scripts.extract_pdf_text")


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Extract reference PDF text to a JSON artifact.")
    ap.add_argument("pdf", type=Path, nargs="?", default=settings.context_pdf_path or None,
                    help="Source PDF (default: CONTEXT_PDF_PATH)")
    ap.add_argument("-o", "--output", type=Path, default=Path(settings.context_json_path),
                    help="Output JSON path (default: CONTEXT_JSON_PATH)")
    return ap


def run(pdf: Optional[Path], output: Path) -> int:
    if pdf is None or not Path(pdf).exists():
        log.error("Source PDF file not found at %s", pdf)
        return 1
    log.info("Starting PDF text extraction from: %s", pdf)
    try:
        content = extract_pdf_text(pdf)
    except RuntimeError:
        log.exception("Fatal error during PDF text extraction")
        return 1

    log.info("Extracted text length: %d", len(content))
    if not content:
        log.warning("Extracted text is empty. Check the PDF content.")

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps({"content": content}, ensure_ascii=False, indent=2), encoding="utf-8")
    log.info("PDF content successfully written to: %s", output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = build_arg_parser().parse_args(argv)
    return run(args.pdf, args.output)


if __name__ == "__main__":
    sys.exit(main())
