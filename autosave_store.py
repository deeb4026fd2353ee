from __future__ import annotations

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

ValueSet = Dict[str, Any]

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


class PersistenceReadFailure(Exception):
    pass


class PersistenceWriteFailure(Exception):
    pass


class AutosaveStore:
    """Field values per storage key, one JSON file per key.

    Reads fail soft (empty mapping) and writes are dropped with a warning, so
    the form keeps working when the disk does not. A dropped write is still
    shown on screen but is gone after a reload.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.root / f"{_UNSAFE.sub('_', key)}.json"

    def _read(self, key: str) -> ValueSet:
        path = self._path(key)
        if not path.exists():
            return {}
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as ex:
            raise PersistenceReadFailure(f"{path}: {ex}") from ex
        if not isinstance(payload, dict):
            raise PersistenceReadFailure(f"{path}: expected an object, got {type(payload).__name__}")
        return payload

    def _write(self, key: str, values: ValueSet) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            text = json.dumps(values, ensure_ascii=False, indent=2)
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as ex:
            raise PersistenceWriteFailure(f"{path}: {ex}") from ex

    def load(self, key: str) -> ValueSet:
        try:
            return self._read(key)
        except PersistenceReadFailure as ex:
            logger.warning("Autosave unreadable, starting empty: %s", ex)
            return {}

    def read_all(self, key: str) -> ValueSet:
        return dict(self.load(key))

    def upsert(self, key: str, field_id: str, value: Any) -> bool:
        with self._lock:
            current = self.load(key)
            current[field_id] = value
            try:
                self._write(key, current)
            except PersistenceWriteFailure as ex:
                logger.warning("Autosave of %r dropped: %s", field_id, ex)
                return False
        return True
