from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field as dc_field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_FIELD_WIDTH = 24.0


# ----------------------------
# Errors
# ----------------------------

class MalformedDocument(ValueError):
    pass


class DuplicateFieldId(MalformedDocument):
    def __init__(self, field_id: str, first_page: int, second_page: int):
        super().__init__(
            f"Field id '{field_id}' is used on page {first_page + 1} and again on page {second_page + 1}."
        )
        self.field_id = field_id
        self.first_page = first_page
        self.second_page = second_page


# ----------------------------
# Data model
# ----------------------------

class FieldType(str, Enum):
    TEXT = "text"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SIGNATURE = "signature"

    @classmethod
    def parse(cls, raw: Any) -> "FieldType":
        if isinstance(raw, cls):
            return raw
        if raw is None:
            return cls.TEXT
        try:
            return cls(str(raw))
        except ValueError:
            return cls.TEXT


@dataclass
class Field:
    id: Optional[str]
    type: FieldType = FieldType.TEXT
    x: float = 0.0
    y: float = 0.0
    w: float = DEFAULT_FIELD_WIDTH
    label: str = ""
    options: List[str] = dc_field(default_factory=list)
    value: Any = None                 # design-time default
    required: bool = False
    font_size: Any = None             # presentation hints, opaque to logic
    color: Optional[str] = None
    input_height: Any = None
    raw_type: str = "text"            # type string as written in the design

    @property
    def persistable(self) -> bool:
        return bool(self.id)

    @property
    def display_name(self) -> str:
        return self.label or self.id or ""


@dataclass
class Page:
    index: int
    background: str
    fields: List[Field] = dc_field(default_factory=list)


@dataclass
class DesignDocument:
    pages: List[Page]
    base_dir: Optional[Path] = None   # directory backgrounds are resolved against

    def iter_fields(self) -> Iterator[Field]:
        for page in self.pages:
            yield from page.fields

    def field_ids(self) -> List[str]:
        return [f.id for f in self.iter_fields() if f.id]

    def find(self, field_id: str) -> Optional[Field]:
        for f in self.iter_fields():
            if f.id == field_id:
                return f
        return None


# ----------------------------
# Parsing
# ----------------------------

def _as_float(raw: Any, default: float) -> float:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _parse_field(raw: Dict[str, Any]) -> Field:
    raw_id = raw.get("id")
    field_id = str(raw_id).strip() if raw_id not in (None, "") else None

    raw_type = raw.get("type")
    ftype = FieldType.parse(raw_type)
    if raw_type is not None and ftype.value != str(raw_type):
        logger.info("Field %r: unrecognized type %r, rendering as text", field_id, raw_type)

    options = raw.get("options")
    if not isinstance(options, list):
        options = []

    return Field(
        id=field_id or None,
        type=ftype,
        x=_as_float(raw.get("x"), 0.0),
        y=_as_float(raw.get("y"), 0.0),
        w=_as_float(raw.get("w"), DEFAULT_FIELD_WIDTH),
        label=str(raw.get("label") or ""),
        options=[str(o) for o in options],
        value=raw.get("value"),
        required=bool(raw.get("required", False)),
        font_size=raw.get("fontSize"),
        color=raw.get("color"),
        input_height=raw.get("inputHeight"),
        raw_type=str(raw_type) if raw_type is not None else "text",
    )


def parse_document(raw: Any, base_dir: Optional[Path] = None) -> DesignDocument:
    if not isinstance(raw, dict):
        raise MalformedDocument("Design must be a JSON object with a 'pages' list.")
    raw_pages = raw.get("pages")
    if not isinstance(raw_pages, list) or not raw_pages:
        raise MalformedDocument("Design has no pages.")

    pages: List[Page] = []
    seen: Dict[str, int] = {}
    for idx, raw_page in enumerate(raw_pages):
        if not isinstance(raw_page, dict):
            raise MalformedDocument(f"Page {idx + 1} is not an object.")

        bg = raw_page.get("bg") or raw_page.get("background") or ""
        page = Page(index=idx, background=str(bg))

        raw_fields = raw_page.get("fields") or []
        if not isinstance(raw_fields, list):
            logger.warning("Page %d: 'fields' is not a list, ignoring it", idx + 1)
            raw_fields = []

        for pos, raw_field in enumerate(raw_fields):
            if not isinstance(raw_field, dict):
                logger.warning("Page %d: skipping field #%d, not an object", idx + 1, pos + 1)
                continue
            f = _parse_field(raw_field)
            if f.id:
                if f.id in seen:
                    raise DuplicateFieldId(f.id, seen[f.id], idx)
                seen[f.id] = idx
            page.fields.append(f)

        pages.append(page)

    return DesignDocument(pages=pages, base_dir=base_dir)


def load_document(path: str | Path) -> DesignDocument:
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except OSError as ex:
        raise MalformedDocument(f"Cannot read design {p}: {ex}") from ex
    except json.JSONDecodeError as ex:
        raise MalformedDocument(f"Design {p} is not valid JSON: {ex}") from ex
    return parse_document(raw, base_dir=p.resolve().parent)
