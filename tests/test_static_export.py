from __future__ import annotations

from pathlib import Path

import pikepdf
import pytest
from PIL import Image

from field_renderer import CheckboxGlyphs, Mode
from form_session import FormSession
from overlay_model import parse_document
from overlay_scale import FALLBACK_SIZE
from signature_pad import SignaturePad
from static_export import export_form, export_static_pdf

KEY = "overlay_autosave_kt_mmobile_join_adult"
ASCII_GLYPHS = CheckboxGlyphs(checked="[x] agree", unchecked="[ ] agree")


def _signature() -> str:
    pad = SignaturePad()
    pad.pointer_down(10, 10)
    pad.pointer_move(200, 80)
    pad.pointer_up()
    return pad.to_data_uri()


def _mediaboxes(path: Path):
    with pikepdf.open(path) as pdf:
        return [tuple(float(v) for v in p.MediaBox) for p in pdf.pages]


def test_one_pdf_page_per_design_page(tmp_path: Path, document):
    values = {"name": "Kim", "plan": "Basic", "agree": True, "sign": _signature(), "memo": "a\nb"}
    out = export_static_pdf(document, values, tmp_path / "form.pdf", glyphs=ASCII_GLYPHS)

    assert out.exists()
    boxes = _mediaboxes(out)
    assert len(boxes) == 2
    assert boxes[0] == (0.0, 0.0) + tuple(float(v) for v in FALLBACK_SIZE)


def test_page_size_follows_background(tmp_path: Path):
    Image.new("RGB", (400, 500), "white").save(tmp_path / "page1.png")
    doc = parse_document(
        {"pages": [{"bg": "page1.png", "fields": [{"id": "name", "label": "Name", "x": 10, "y": 10}]}]},
        base_dir=tmp_path,
    )
    out = export_static_pdf(doc, {"name": "Kim"}, tmp_path / "form.pdf", glyphs=ASCII_GLYPHS)
    assert _mediaboxes(out) == [(0.0, 0.0, 400.0, 500.0)]


def test_bad_signature_and_color_are_skipped(tmp_path: Path):
    doc = parse_document({"pages": [{"fields": [
        {"id": "sign", "type": "signature"},
        {"id": "name", "color": "not-a-colour", "fontSize": "14px"},
    ]}]})
    out = export_static_pdf(doc, {"sign": "data:image/png;base64,@@", "name": "Kim"}, tmp_path / "form.pdf")
    assert len(_mediaboxes(out)) == 1


def test_export_form_writes_when_complete(tmp_path: Path, document, plans, store):
    session = FormSession(document, plans, store, KEY, mode=Mode.FILL, glyphs=ASCII_GLYPHS)
    session.start()
    session.emit("name", "Kim")
    session.emit("plan", "Basic")
    session.emit("agree", True)

    report = export_form(session, tmp_path / "form.pdf")

    assert report.ok
    assert (tmp_path / "form.pdf").exists()
    assert session.mode is Mode.PDF


def test_export_form_writes_nothing_when_incomplete(tmp_path: Path, document, plans, store):
    session = FormSession(document, plans, store, KEY, mode=Mode.FILL, glyphs=ASCII_GLYPHS)
    session.start()
    session.emit("name", "Kim")

    report = export_form(session, tmp_path / "form.pdf")

    assert report.missing == ["Plan", "I agree"]
    assert not (tmp_path / "form.pdf").exists()
    assert session.mode is Mode.FILL


def test_export_static_pdf_requires_pages(tmp_path: Path, document):
    document.pages.clear()
    with pytest.raises(ValueError):
        export_static_pdf(document, {}, tmp_path / "form.pdf")


def test_text_outside_latin1_is_reported_with_builtin_font(tmp_path: Path, caplog):
    doc = parse_document({"pages": [{"fields": [
        {"id": "agree", "type": "checkbox", "label": "동의 여부"},
    ]}]})
    with caplog.at_level("WARNING", logger="static_export"):
        export_static_pdf(doc, {"agree": True}, tmp_path / "form.pdf")

    font_warnings = [r for r in caplog.records if "export_font_path" in r.getMessage()]
    assert len(font_warnings) == 1
    assert font_warnings[0].levelname == "WARNING"


def test_latin1_text_exports_without_font_warning(tmp_path: Path, caplog, document):
    with caplog.at_level("WARNING", logger="static_export"):
        export_static_pdf(document, {"name": "Kim", "agree": True}, tmp_path / "form.pdf", glyphs=ASCII_GLYPHS)

    assert not [r for r in caplog.records if "export_font_path" in r.getMessage()]
