from __future__ import annotations

import logging
from datetime import date
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional

from autosave_store import AutosaveStore
from derived_rules import DerivedRules, FieldRule, PlanTable, today_values
from field_renderer import DEFAULT_GLYPHS, CheckboxGlyphs, Mode, RenderedField, effective_value, render_field
from overlay_model import DesignDocument
from validation_gate import ValidationGate, ValidationReport

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


class LiveValue:
    """Current value of one field id; every on-screen representation subscribes."""

    def __init__(self, field_id: str, value: Any = None):
        self.field_id = field_id
        self._value = value
        self._subscribers: List[Subscriber] = []

    @property
    def value(self) -> Any:
        return self._value

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set(self, value: Any) -> None:
        self._value = value
        for cb in list(self._subscribers):
            cb(value)


class FormSession:
    def __init__(
        self,
        document: DesignDocument,
        plans: Optional[PlanTable],
        store: AutosaveStore,
        storage_key: str,
        mode: Mode = Mode.PREVIEW,
        rules: Optional[Mapping[str, FieldRule]] = None,
        glyphs: CheckboxGlyphs = DEFAULT_GLYPHS,
    ):
        self.document = document
        self.store = store
        self.storage_key = storage_key
        self.rules = DerivedRules(plans, rules)
        self.gate = ValidationGate(store, storage_key)
        self.glyphs = glyphs

        self._mode = Mode.parse(mode)
        self._mode_listeners: List[Callable[[Mode], None]] = []
        self._live: Dict[str, LiveValue] = {}
        self._started = False

    # -------------- lifecycle --------------

    def start(self, today: Optional[date] = None) -> None:
        persisted = self.store.load(self.storage_key)
        for f in self.document.iter_fields():
            if f.id:
                self._live[f.id] = LiveValue(f.id, effective_value(f, persisted))
        for fid, value in persisted.items():
            if fid not in self._live:
                self._live[fid] = LiveValue(fid, value)
        self._started = True

        for fid, value in today_values(today):
            self.write(fid, value)
        logger.debug("Session %s started with %d stored values", self.storage_key, len(persisted))

    def _ensure_started(self) -> None:
        if not self._started:
            self.start()

    # -------------- values --------------

    def live(self, field_id: str) -> LiveValue:
        lv = self._live.get(field_id)
        if lv is None:
            lv = self._live[field_id] = LiveValue(field_id)
        return lv

    def value(self, field_id: str) -> Any:
        lv = self._live.get(field_id)
        return lv.value if lv is not None else None

    def values(self) -> Dict[str, Any]:
        return {fid: lv.value for fid, lv in self._live.items()}

    def write(self, field_id: Optional[str], value: Any) -> None:
        if not field_id:
            return
        self.store.upsert(self.storage_key, field_id, value)
        self.live(field_id).set(value)

    def emit(self, field_id: Optional[str], value: Any) -> None:
        if not field_id:
            return
        self.write(field_id, value)
        f = self.document.find(field_id)
        field_type = f.type if f is not None else None
        for dep_id, dep_value in self.rules.writes_for(field_id, value, field_type):
            self.write(dep_id, dep_value)

    # -------------- rendering --------------

    def render_page(self, index: int) -> List[RenderedField]:
        self._ensure_started()
        snapshot = self.values()
        return [
            render_field(f, snapshot, self._mode, partial(self.emit, f.id) if f.id else None, self.glyphs)
            for f in self.document.pages[index].fields
        ]

    def render_all(self) -> List[List[RenderedField]]:
        return [self.render_page(i) for i in range(len(self.document.pages))]

    # -------------- mode / export --------------

    @property
    def mode(self) -> Mode:
        return self._mode

    def on_mode_change(self, callback: Callable[[Mode], None]) -> Callable[[], None]:
        self._mode_listeners.append(callback)
        return lambda: self._mode_listeners.remove(callback) if callback in self._mode_listeners else None

    def set_mode(self, mode: Mode) -> None:
        mode = Mode.parse(mode)
        if mode is self._mode:
            return
        self._mode = mode
        for cb in list(self._mode_listeners):
            cb(mode)

    def request_export(self) -> ValidationReport:
        self._ensure_started()
        self.set_mode(Mode.PDF)
        report = self.gate.check(self.document)
        if not report.ok:
            logger.info("Export blocked, missing: %s", ", ".join(report.missing))
            self.set_mode(Mode.FILL)
        return report
