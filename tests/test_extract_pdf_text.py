import json

import pytest

from drillchat.scripts.extract_pdf_text import main, run


def test_missing_pdf_exits_1(tmp_path):
    out = tmp_path / "pdf-content.json"
    assert run(tmp_path / "missing.pdf", out) == 1
    assert run(None, out) == 1
    assert not out.exists()


def test_writes_content_artifact(tmp_path):
    fitz = pytest.importorskip("fitz")
    pdf = tmp_path / "formulas.pdf"
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "Capacity = ID^2 / 1029.4")
    doc.save(str(pdf))
    doc.close()

    out = tmp_path / "nested" / "pdf-content.json"
    assert main([str(pdf), "-o", str(out)]) == 0
    content = json.loads(out.read_text(encoding="utf-8"))["content"]
    assert "Capacity = ID^2 / 1029.4" in content
