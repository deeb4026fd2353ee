from __future__ import annotations

import re
from dataclasses import dataclass, field as dc_field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from overlay_model import Field, FieldType

Emit = Callable[[Any], None]


class Mode(str, Enum):
    FILL = "fill"
    PREVIEW = "preview"
    PDF = "pdf"

    @property
    def interactive(self) -> bool:
        return self is Mode.FILL

    @classmethod
    def parse(cls, raw: Any) -> "Mode":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.PREVIEW


class ControlKind(str, Enum):
    TEXT_ENTRY = "text_entry"
    CHOICE = "choice"
    TOGGLE = "toggle"
    RADIO_GROUP = "radio_group"
    DRAWING = "drawing"
    TEXT = "text"
    IMAGE = "image"


@dataclass(frozen=True)
class CheckboxGlyphs:
    checked: str = "☑ 동의"
    unchecked: str = "☐ 미동의"


DEFAULT_GLYPHS = CheckboxGlyphs()


# ----------------------------
# Presentation hints
# ----------------------------

_PLAIN_NUMBER = re.compile(r"^\d+(\.\d+)?$")


def pixels(raw: Any) -> Optional[float]:
    """Numbers and digit-only strings are pixel sizes; anything else is opaque."""
    if raw is None or isinstance(raw, bool) or raw == "auto":
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip()
    if text.endswith("px"):
        text = text[:-2]
    return float(text) if _PLAIN_NUMBER.match(text) else None


@dataclass(frozen=True)
class FieldStyle:
    font_size: Optional[float] = None
    color: Optional[str] = None
    input_height: Optional[float] = None

    @classmethod
    def from_field(cls, f: Field) -> "FieldStyle":
        return cls(
            font_size=pixels(f.font_size),
            color=f.color or None,
            input_height=pixels(f.input_height),
        )


@dataclass
class RenderedField:
    field: Field
    mode: Mode
    kind: ControlKind
    value: Any
    text: str = ""
    options: List[str] = dc_field(default_factory=list)
    image: Optional[str] = None
    style: FieldStyle = dc_field(default_factory=FieldStyle)
    emit: Optional[Emit] = None

    @property
    def interactive(self) -> bool:
        return self.mode.interactive


def effective_value(f: Field, persisted: Mapping[str, Any]) -> Any:
    if f.id and f.id in persisted:
        return persisted[f.id]
    return f.value


# ----------------------------
# Render strategies
# ----------------------------

class FieldRenderer:
    interactive_kind = ControlKind.TEXT_ENTRY
    static_kind = ControlKind.TEXT

    def empty_value(self) -> Any:
        return ""

    def initial(self, value: Any) -> Any:
        return self.empty_value() if value is None else value

    def static_text(self, value: Any, glyphs: CheckboxGlyphs = DEFAULT_GLYPHS) -> str:
        return "" if value is None else str(value)

    def render(
        self,
        f: Field,
        value: Any,
        mode: Mode,
        emit: Optional[Emit] = None,
        glyphs: CheckboxGlyphs = DEFAULT_GLYPHS,
    ) -> RenderedField:
        value = self.initial(value)
        interactive = mode.interactive
        return RenderedField(
            field=f,
            mode=mode,
            kind=self.interactive_kind if interactive else self.static_kind,
            value=value,
            text=self.static_text(value, glyphs),
            options=list(f.options),
            style=FieldStyle.from_field(f),
            emit=emit if (interactive and f.persistable) else None,
        )


class TextRenderer(FieldRenderer):
    pass


class SelectRenderer(FieldRenderer):
    interactive_kind = ControlKind.CHOICE


class RadioRenderer(FieldRenderer):
    interactive_kind = ControlKind.RADIO_GROUP


class CheckboxRenderer(FieldRenderer):
    interactive_kind = ControlKind.TOGGLE

    def empty_value(self) -> Any:
        return False

    def static_text(self, value: Any, glyphs: CheckboxGlyphs = DEFAULT_GLYPHS) -> str:
        return glyphs.checked if value else glyphs.unchecked


class SignatureRenderer(FieldRenderer):
    interactive_kind = ControlKind.DRAWING
    static_kind = ControlKind.IMAGE

    def static_text(self, value: Any, glyphs: CheckboxGlyphs = DEFAULT_GLYPHS) -> str:
        return ""

    def render(self, f, value, mode, emit=None, glyphs=DEFAULT_GLYPHS) -> RenderedField:
        rendered = super().render(f, value, mode, emit, glyphs)
        rendered.image = rendered.value or None
        return rendered


RENDERERS: Dict[FieldType, FieldRenderer] = {
    FieldType.TEXT: TextRenderer(),
    FieldType.SELECT: SelectRenderer(),
    FieldType.CHECKBOX: CheckboxRenderer(),
    FieldType.RADIO: RadioRenderer(),
    FieldType.SIGNATURE: SignatureRenderer(),
}


def renderer_for(field_type: Any) -> FieldRenderer:
    return RENDERERS.get(field_type, RENDERERS[FieldType.TEXT])


def render_field(
    f: Field,
    persisted: Mapping[str, Any],
    mode: Mode,
    emit: Optional[Emit] = None,
    glyphs: CheckboxGlyphs = DEFAULT_GLYPHS,
) -> RenderedField:
    return renderer_for(f.type).render(f, effective_value(f, persisted), mode, emit, glyphs)
