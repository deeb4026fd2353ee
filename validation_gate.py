from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from typing import Any, List, Mapping

from autosave_store import AutosaveStore
from field_renderer import effective_value
from overlay_model import DesignDocument, Field, FieldType

MISSING_PREFIX = "필수 입력 누락: "


def is_empty(f: Field, value: Any) -> bool:
    if f.type is FieldType.CHECKBOX:
        return not value
    return value is None or str(value).strip() == ""


def find_missing(document: DesignDocument, values: Mapping[str, Any]) -> List[str]:
    missing: List[str] = []
    for f in document.iter_fields():
        if not f.required:
            continue
        if is_empty(f, effective_value(f, values)):
            missing.append(f.label or f.id or "")
    return missing


@dataclass
class ValidationReport:
    missing: List[str] = dc_field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing

    def message(self, prefix: str = MISSING_PREFIX) -> str:
        if self.ok:
            return ""
        return prefix + ", ".join(self.missing)


class ValidationGate:
    def __init__(self, store: AutosaveStore, storage_key: str):
        self.store = store
        self.storage_key = storage_key

    def check(self, document: DesignDocument) -> ValidationReport:
        values = self.store.read_all(self.storage_key)
        return ValidationReport(missing=find_missing(document, values))
