"""Viewer configuration: defaults, an optional JSON file, then OVERLAY_FORM_* env vars."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from field_renderer import CheckboxGlyphs
from validation_gate import MISSING_PREFIX

logger = logging.getLogger(__name__)

ENV_PREFIX = "OVERLAY_FORM_"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def default_store_dir() -> Path:
    return Path.home() / ".overlay-form" / "autosave"


@dataclass(frozen=True)
class ViewerConfig:
    brands_root: Path = Path("brands")
    plans_path: Optional[Path] = Path("public/plans.json")
    store_dir: Optional[Path] = None
    available_width: float = 980.0
    export_delay_ms: int = 150
    banner_timeout_ms: int = 4000
    checked_text: str = "☑ 동의"
    unchecked_text: str = "☐ 미동의"
    missing_prefix: str = MISSING_PREFIX
    export_font_path: Optional[Path] = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.store_dir is None:
            object.__setattr__(self, "store_dir", default_store_dir())

    @property
    def glyphs(self) -> CheckboxGlyphs:
        return CheckboxGlyphs(checked=self.checked_text, unchecked=self.unchecked_text)


def _optional_path(raw: Any) -> Optional[Path]:
    return Path(raw).expanduser() if raw not in (None, "") else None


_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "brands_root": lambda v: Path(v).expanduser(),
    "plans_path": _optional_path,
    "store_dir": _optional_path,
    "available_width": float,
    "export_delay_ms": int,
    "banner_timeout_ms": int,
    "checked_text": str,
    "unchecked_text": str,
    "missing_prefix": str,
    "export_font_path": _optional_path,
    "log_level": lambda v: str(v).upper(),
}


def _apply(config: ViewerConfig, overrides: Dict[str, Any], source: str) -> ViewerConfig:
    known = {f.name for f in fields(ViewerConfig)}
    changes: Dict[str, Any] = {}
    for name, raw in overrides.items():
        if name not in known:
            logger.warning("Ignoring unknown config key %r from %s", name, source)
            continue
        try:
            changes[name] = _CONVERTERS[name](raw)
        except (TypeError, ValueError) as ex:
            raise ValueError(f"Invalid value for {name!r} in {source}: {raw!r}") from ex
    return replace(config, **changes) if changes else config


def load_config(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> ViewerConfig:
    config = ViewerConfig()

    if path is not None:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as ex:
            raise ValueError(f"Failed to parse {path}: {ex}") from ex
        if not isinstance(data, dict):
            raise ValueError(f"Config {path} must be a JSON object.")
        config = _apply(config, data, str(path))

    env = os.environ if environ is None else environ
    from_env = {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in env.items()
        if key.startswith(ENV_PREFIX)
    }
    return _apply(config, from_env, "environment")


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not any(getattr(h, "_overlay_form", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._overlay_form = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
