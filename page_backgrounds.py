from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

import fitz  # PyMuPDF
import pikepdf
from PIL import Image

from signature_pad import decode_data_uri

logger = logging.getLogger(__name__)

_PAGE_FRAGMENT = re.compile(r"#page=(\d+)$", re.IGNORECASE)


# --- references ---

def parse_background_ref(ref: str) -> Tuple[str, int]:
    """Split ``file.pdf#page=N`` into the path and a 0-based page index."""
    m = _PAGE_FRAGMENT.search(ref or "")
    if not m:
        return ref or "", 0
    return ref[: m.start()], max(int(m.group(1)) - 1, 0)


def is_pdf(path: str) -> bool:
    return path.lower().endswith(".pdf")


def locate_background(ref: str, base_dir: Optional[Path] = None) -> Optional[Path]:
    path_part, _ = parse_background_ref(ref)
    if not path_part or path_part.startswith("data:"):
        return None

    candidates: List[Path] = []
    p = Path(path_part)
    if p.is_absolute():
        candidates.append(p)
    if base_dir is not None:
        # web-root style refs ("/brands/kt/page1.png") are relative to the design directory
        candidates.append(Path(base_dir) / path_part.lstrip("/"))
        candidates.append(Path(base_dir) / Path(path_part.lstrip("/")).name)
    if not p.is_absolute():
        candidates.append(p)

    for c in candidates:
        if c.is_file():
            return c
    return None


# --- sizes ---

def pdf_page_sizes_points(pdf_path: str | Path) -> List[Tuple[float, float]]:
    """Return [(width_pt, height_pt), ...] from MediaBox for each page."""
    sizes: List[Tuple[float, float]] = []
    with pikepdf.open(pdf_path) as pdf:
        for p in pdf.pages:
            mb = p.MediaBox  # [llx, lly, urx, ury]
            w = float(mb[2]) - float(mb[0])
            h = float(mb[3]) - float(mb[1])
            sizes.append((w, h))
    return sizes


def measure_background(ref: str, base_dir: Optional[Path] = None) -> Optional[Tuple[float, float]]:
    if (ref or "").startswith("data:"):
        img = decode_data_uri(ref)
        return (float(img.width), float(img.height)) if img is not None else None

    path = locate_background(ref, base_dir)
    if path is None:
        logger.warning("Background %r not found, using fallback size", ref)
        return None

    _, page_index = parse_background_ref(ref)
    try:
        if is_pdf(path.name):
            return pdf_page_sizes_points(path)[page_index]
        with Image.open(path) as img:
            return float(img.width), float(img.height)
    except (OSError, IndexError, ValueError, pikepdf.PdfError) as ex:
        logger.warning("Cannot measure background %s: %s", path, ex)
        return None


# --- pixels ---

def _rasterize_pdf_page(path: Path, page_index: int) -> Image.Image:
    with fitz.open(str(path)) as doc:
        page = doc.load_page(page_index)
        pix = page.get_pixmap(matrix=fitz.Matrix(1, 1), alpha=False)
        return Image.frombytes("RGB", [pix.width, pix.height], pix.samples)


def load_background_image(ref: str, base_dir: Optional[Path] = None) -> Optional[Image.Image]:
    if (ref or "").startswith("data:"):
        img = decode_data_uri(ref)
        return img.convert("RGB") if img is not None else None

    path = locate_background(ref, base_dir)
    if path is None:
        return None

    _, page_index = parse_background_ref(ref)
    try:
        if is_pdf(path.name):
            return _rasterize_pdf_page(path, page_index)
        with Image.open(path) as img:
            return img.convert("RGB")
    except (OSError, IndexError, ValueError, RuntimeError) as ex:
        logger.warning("Cannot load background %s: %s", path, ex)
        return None
