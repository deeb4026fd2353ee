from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from overlay_model import Field

# Assumed background size (A4-like, in px) until the real one is known
FALLBACK_SIZE: Tuple[int, int] = (595, 842)

# Width used when the surface has not been laid out yet
DEFAULT_AVAILABLE_WIDTH = 980.0


def compute_scale(available_width: Optional[float], natural_width: Optional[float]) -> float:
    natw = float(natural_width) if natural_width and natural_width > 0 else float(FALLBACK_SIZE[0])
    avail = float(available_width) if available_width and available_width > 0 else DEFAULT_AVAILABLE_WIDTH
    return avail / natw


@dataclass(frozen=True)
class FieldBox:
    left: float
    top: float
    width: float


@dataclass
class PageGeometry:
    natural_width: float = float(FALLBACK_SIZE[0])
    natural_height: float = float(FALLBACK_SIZE[1])
    scale: float = 1.0
    measured: bool = False

    def set_natural_size(self, width: Optional[float], height: Optional[float]) -> None:
        self.natural_width = float(width) if width and width > 0 else float(FALLBACK_SIZE[0])
        self.natural_height = float(height) if height and height > 0 else float(FALLBACK_SIZE[1])
        self.measured = True

    def apply(self, available_width: Optional[float]) -> float:
        self.scale = compute_scale(available_width, self.natural_width)
        return self.scale

    def displayed_size(self) -> Tuple[float, float]:
        return self.natural_width * self.scale, self.natural_height * self.scale

    def field_box(self, f: Field) -> FieldBox:
        # percentages are of the unscaled surface; the whole surface then scales
        # from its top-left corner
        return FieldBox(
            left=f.x / 100.0 * self.natural_width * self.scale,
            top=f.y / 100.0 * self.natural_height * self.scale,
            width=f.w / 100.0 * self.natural_width * self.scale,
        )


class ScaleEngine:
    def __init__(self, page_count: int, available_width: Optional[float] = None):
        self.pages: List[PageGeometry] = [PageGeometry() for _ in range(page_count)]
        self._available: List[Optional[float]] = [available_width] * page_count
        for i, geom in enumerate(self.pages):
            geom.apply(self._available[i])

    def image_loaded(self, index: int, width: Optional[float], height: Optional[float]) -> float:
        geom = self.pages[index]
        geom.set_natural_size(width, height)
        return geom.apply(self._available[index])

    def resize(self, available: Union[float, Sequence[Optional[float]], None]) -> List[float]:
        if available is None or isinstance(available, (int, float)):
            widths: List[Optional[float]] = [available] * len(self.pages)
        else:
            widths = list(available)
            if len(widths) != len(self.pages):
                raise ValueError(f"Expected {len(self.pages)} widths, got {len(widths)}.")
        self._available = widths
        return [geom.apply(w) for geom, w in zip(self.pages, widths)]

    def scale_for(self, index: int) -> float:
        return self.pages[index].scale
