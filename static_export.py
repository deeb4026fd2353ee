from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional

from reportlab.lib.colors import HexColor, black
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from field_renderer import DEFAULT_GLYPHS, CheckboxGlyphs, ControlKind, Mode, render_field
from form_session import FormSession
from overlay_model import DesignDocument
from overlay_scale import PageGeometry
from page_backgrounds import load_background_image, measure_background
from signature_pad import SIGNATURE_SIZE, decode_data_uri
from validation_gate import ValidationReport

logger = logging.getLogger(__name__)

DEFAULT_FONT = "Helvetica"
EXPORT_FONT_NAME = "OverlayExportFont"
LABEL_FONT_SIZE = 9
VALUE_FONT_SIZE = 11
SIGNATURE_MAX_HEIGHT = 80.0


def _register_font(font_path: Optional[Path]) -> str:
    if font_path is None:
        return DEFAULT_FONT
    if EXPORT_FONT_NAME not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(EXPORT_FONT_NAME, str(font_path)))
    return EXPORT_FONT_NAME


def _latin1(text: str) -> bool:
    try:
        text.encode("latin-1")
    except UnicodeEncodeError:
        return False
    return True


def _fill_color(raw: Optional[str]):
    if not raw:
        return black
    try:
        return HexColor(raw)
    except ValueError:
        return black


def export_static_pdf(
    document: DesignDocument,
    values: Mapping[str, Any],
    out_pdf: str | Path,
    glyphs: CheckboxGlyphs = DEFAULT_GLYPHS,
    font_path: Optional[Path] = None,
) -> Path:
    """Write the static (print) view of the form, one PDF page per design page.

    Page size is the background's natural size with 1 px drawn as 1 pt, so the
    percentage-anchored fields land where the viewer shows them.
    """
    out = Path(out_pdf)
    font = _register_font(font_path)
    c: Optional[canvas.Canvas] = None
    unsupported: List[str] = []

    def draw_text(x: float, y: float, text: str) -> None:
        # the built-in Type 1 fonts only cover Latin-1
        if font == DEFAULT_FONT and not _latin1(text):
            unsupported.append(text)
        c.drawString(x, y, text)

    for page in document.pages:
        geom = PageGeometry()
        size = measure_background(page.background, document.base_dir)
        if size is not None:
            geom.set_natural_size(*size)
        pw, ph = geom.natural_width, geom.natural_height

        if c is None:
            c = canvas.Canvas(str(out), pagesize=(pw, ph))
        else:
            c.setPageSize((pw, ph))

        bg = load_background_image(page.background, document.base_dir)
        if bg is not None:
            c.drawImage(ImageReader(bg), 0, 0, width=pw, height=ph)

        for f in page.fields:
            rendered = render_field(f, values, Mode.PDF, glyphs=glyphs)
            box = geom.field_box(f)
            top_pt = ph - box.top  # PDF y axis grows upwards

            if f.label:
                c.setFillColor(HexColor("#475467"))
                c.setFont(font, LABEL_FONT_SIZE)
                draw_text(box.left, top_pt + 4, f.label)

            if rendered.kind is ControlKind.IMAGE:
                img = decode_data_uri(rendered.image) if rendered.image else None
                if img is None:
                    continue
                width = box.width
                height = min(SIGNATURE_MAX_HEIGHT, width * SIGNATURE_SIZE[1] / SIGNATURE_SIZE[0])
                c.drawImage(ImageReader(img), box.left, top_pt - height, width=width, height=height, mask="auto")
                continue

            size_pt = rendered.style.font_size or VALUE_FONT_SIZE
            c.setFillColor(_fill_color(rendered.style.color))
            c.setFont(font, size_pt)
            for i, line in enumerate(rendered.text.splitlines() or [""]):
                draw_text(box.left, top_pt - size_pt * (i + 1), line)

        c.showPage()

    if c is None:
        raise ValueError("No pages found.")
    c.save()
    if unsupported:
        logger.warning(
            "%d text item(s) cannot be drawn with %s (e.g. %r); set export_font_path to a TTF font",
            len(unsupported), DEFAULT_FONT, unsupported[0],
        )
    logger.info("Wrote %s (%d pages)", out, len(document.pages))
    return out


def export_form(
    session: FormSession,
    out_pdf: str | Path,
    font_path: Optional[Path] = None,
) -> ValidationReport:
    report = session.request_export()
    if not report.ok:
        return report
    export_static_pdf(session.document, session.store.read_all(session.storage_key), out_pdf,
                      glyphs=session.glyphs, font_path=font_path)
    return report
