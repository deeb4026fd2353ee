from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Optional, Tuple

from derived_rules import PlanTable
from field_renderer import Mode

logger = logging.getLogger(__name__)

DEFAULT_CARRIER = "kt"
DEFAULT_BRAND = "mmobile"

DOC_JOIN = "join"
DOC_CHANGE = "change"
DOC_CANCEL = "cancel"

AGE_ADULT = "adult"
AGE_TEEN = "teen"


def normalize_doc_kind(raw: Any) -> str:
    doc = str(raw or "").strip().lower()
    if doc == DOC_CHANGE:
        return DOC_CHANGE
    if doc in ("cancel", "terminate", "close"):
        return DOC_CANCEL
    return DOC_JOIN


def normalize_age_band(raw: Any) -> str:
    return AGE_TEEN if str(raw or "").strip().lower() == AGE_TEEN else AGE_ADULT


def design_filename(doc: Any, age: Any) -> str:
    doc = normalize_doc_kind(doc)
    if doc == DOC_CHANGE:
        return "overlay-design.change.json"
    if doc == DOC_CANCEL:
        return "overlay-design.cancel.json"
    return "overlay-design.teen.json" if normalize_age_band(age) == AGE_TEEN else "overlay-design.adult.json"


def storage_key(carrier: str, brand: str, doc: Any, age: Any) -> str:
    return f"overlay_autosave_{carrier}_{brand}_{normalize_doc_kind(doc)}_{normalize_age_band(age)}"


def carrier_brand_from_path(path: str) -> Optional[Tuple[str, str]]:
    parts = [p for p in PurePosixPath(str(path).replace("\\", "/")).parts if p not in ("/", "")]
    if "brands" in parts:
        i = parts.index("brands")
        if len(parts) > i + 2:
            return parts[i + 1], parts[i + 2]
    return None


@dataclass(frozen=True)
class FormRoute:
    carrier: str = DEFAULT_CARRIER
    brand: str = DEFAULT_BRAND
    doc: str = DOC_JOIN
    age: str = AGE_ADULT
    mode: Mode = Mode.PREVIEW

    @property
    def storage_key(self) -> str:
        return storage_key(self.carrier, self.brand, self.doc, self.age)

    @property
    def design_filename(self) -> str:
        return design_filename(self.doc, self.age)

    def design_path(self, brands_root: Path) -> Path:
        return Path(brands_root) / self.carrier / self.brand / self.design_filename


def resolve_route(
    carrier: Optional[str] = None,
    brand: Optional[str] = None,
    doc: Any = None,
    age: Any = None,
    mode: Any = None,
    path_hint: Optional[str] = None,
) -> FormRoute:
    # explicit carrier+brand win, then a .../brands/<carrier>/<brand>/... path, then defaults
    if not (carrier and brand) and path_hint:
        found = carrier_brand_from_path(path_hint)
        if found:
            carrier, brand = found
    if not (carrier and brand):
        carrier, brand = DEFAULT_CARRIER, DEFAULT_BRAND

    return FormRoute(
        carrier=carrier.strip(),
        brand=brand.strip(),
        doc=normalize_doc_kind(doc),
        age=normalize_age_band(age),
        mode=Mode.parse(mode),
    )


def load_plans(path: Optional[Path]) -> PlanTable:
    if path is None:
        return {}
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as ex:
        logger.warning("[plans] load fail: %s", ex)
        return {}
    if not isinstance(payload, dict):
        logger.warning("[plans] %s is not a JSON object, ignoring it", path)
        return {}
    return payload
