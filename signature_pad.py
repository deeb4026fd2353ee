from __future__ import annotations

import base64
import binascii
import io
import logging
from enum import Enum
from typing import Callable, Optional, Tuple

from PIL import Image, ImageDraw

logger = logging.getLogger(__name__)

SIGNATURE_SIZE: Tuple[int, int] = (600, 160)
LINE_WIDTH = 2
INK = (0, 0, 0, 255)
PNG_PREFIX = "data:image/png;base64,"


# ----------------------------
# data URI helpers
# ----------------------------

def encode_png_data_uri(image: Image.Image) -> str:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return PNG_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def decode_data_uri(uri: str) -> Optional[Image.Image]:
    """Decode a base64 ``data:image/...`` URI into a Pillow image, or None."""
    if not isinstance(uri, str) or not uri.startswith("data:image/"):
        return None
    head, sep, payload = uri.partition(",")
    if not sep or ";base64" not in head:
        return None
    try:
        raw = base64.b64decode(payload, validate=True)
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (binascii.Error, ValueError, OSError) as ex:
        logger.warning("Undecodable image data URI (%d chars): %s", len(uri), ex)
        return None
    return img


# ----------------------------
# Stroke state machine
# ----------------------------

class StrokeState(str, Enum):
    IDLE = "idle"
    STROKING = "stroking"


class SignaturePad:
    def __init__(
        self,
        width: int = SIGNATURE_SIZE[0],
        height: int = SIGNATURE_SIZE[1],
        line_width: int = LINE_WIDTH,
        on_segment: Optional[Callable[[str], None]] = None,
    ):
        self.width = width
        self.height = height
        self.line_width = line_width
        self.on_segment = on_segment

        self.image = Image.new("RGBA", (width, height), (255, 255, 255, 0))
        self._draw = ImageDraw.Draw(self.image)
        self.state = StrokeState.IDLE
        self._last: Optional[Tuple[float, float]] = None
        self.segments = 0

    def load(self, data_uri: Optional[str]) -> bool:
        if not data_uri:
            return False
        prior = decode_data_uri(data_uri)
        if prior is None:
            return False
        prior = prior.convert("RGBA").resize((self.width, self.height))
        self.image.alpha_composite(prior)
        return True

    def pointer_down(self, x: float, y: float) -> None:
        self.state = StrokeState.STROKING
        self._last = (x, y)

    def pointer_move(self, x: float, y: float) -> Optional[str]:
        if self.state is not StrokeState.STROKING or self._last is None:
            return None
        self._segment(self._last, (x, y))
        self._last = (x, y)
        self.segments += 1

        uri = self.to_data_uri()
        if self.on_segment is not None:
            self.on_segment(uri)
        return uri

    def pointer_up(self) -> None:
        self.state = StrokeState.IDLE
        self._last = None

    pointer_leave = pointer_up

    def _segment(self, start: Tuple[float, float], end: Tuple[float, float]) -> None:
        self._draw.line([start, end], fill=INK, width=self.line_width)
        # round caps
        r = self.line_width / 2.0
        for cx, cy in (start, end):
            self._draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=INK)

    def is_blank(self) -> bool:
        return self.image.getchannel("A").getbbox() is None

    def to_data_uri(self) -> str:
        return encode_png_data_uri(self.image)
