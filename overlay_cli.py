from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from autosave_store import AutosaveStore
from field_renderer import Mode
from form_routing import FormRoute, load_plans, resolve_route
from form_session import FormSession
from overlay_config import ViewerConfig, configure_logging, load_config
from overlay_model import FieldType, MalformedDocument, load_document
from static_export import export_form

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_LOAD_FAILED = 2
EXIT_USAGE = 2

LOAD_FAILED_MESSAGE = "설계를 불러오지 못했습니다."


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="overlay-form", description="Fill, check and export overlay form designs.")
    ap.add_argument("--config", type=Path, help="JSON config file")
    ap.add_argument("--log-level", help="Logging level (default from config)")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--carrier")
    common.add_argument("--brand")
    common.add_argument("--doc", default="join", help="join | change | cancel")
    common.add_argument("--age", default="adult", help="adult | teen")
    common.add_argument("--design", type=Path, help="Design JSON (overrides carrier/brand/doc/age lookup)")
    common.add_argument("--brands-root", type=Path, help="Directory holding <carrier>/<brand>/ designs")
    common.add_argument("--plans", type=Path, help="Plan table JSON")
    common.add_argument("--store-dir", type=Path, help="Autosave directory")

    sub = ap.add_subparsers(dest="command", required=True)

    view = sub.add_parser("view", parents=[common], help="Open the form window")
    view.add_argument("--mode", default="fill", help="fill | preview | pdf")
    view.add_argument("--out", type=Path, help="Default export path")

    sub.add_parser("check", parents=[common], help="Report missing required fields")

    setp = sub.add_parser("set", parents=[common], help="Store values as if typed in (rules apply)")
    setp.add_argument("assignments", nargs="+", metavar="ID=VALUE")

    export = sub.add_parser("export", parents=[common], help="Validate and write the static PDF")
    export.add_argument("--out", type=Path, required=True)

    return ap


def _route(args: argparse.Namespace, mode: Any = None) -> FormRoute:
    hint = str(args.design) if args.design else None
    return resolve_route(args.carrier, args.brand, args.doc, args.age, mode, path_hint=hint)


def open_session(args: argparse.Namespace, config: ViewerConfig, mode: Any = None) -> FormSession:
    route = _route(args, mode)
    design_path = args.design or route.design_path(args.brands_root or config.brands_root)
    try:
        document = load_document(design_path)
    except MalformedDocument as ex:
        logger.error("Design load failed for %s: %s", design_path, ex)
        raise
    plans = load_plans(args.plans or config.plans_path)
    store = AutosaveStore(args.store_dir or config.store_dir)

    session = FormSession(document, plans, store, route.storage_key, mode=route.mode, glyphs=config.glyphs)
    session.start()
    logger.info("Opened %s as %s", design_path, route.storage_key)
    return session


def parse_assignment(session: FormSession, raw: str) -> Tuple[str, Any]:
    field_id, sep, text = raw.partition("=")
    if not sep or not field_id:
        raise ValueError(f"Expected ID=VALUE, got {raw!r}")
    f = session.document.find(field_id)
    if f is not None and f.type is FieldType.CHECKBOX:
        return field_id, text.strip().lower() in ("1", "true", "yes", "y", "on", "checked")
    return field_id, text


def _cmd_check(session: FormSession, config: ViewerConfig) -> int:
    report = session.request_export()
    if report.ok:
        print("All required fields are filled.")
        return EXIT_OK
    print(report.message(config.missing_prefix))
    return EXIT_INCOMPLETE


def _cmd_set(session: FormSession, assignments: List[str]) -> int:
    session.set_mode(Mode.FILL)
    for raw in assignments:
        field_id, value = parse_assignment(session, raw)
        session.emit(field_id, value)
    print(json.dumps(session.store.read_all(session.storage_key), ensure_ascii=False, indent=2))
    return EXIT_OK


def _cmd_export(session: FormSession, config: ViewerConfig, out: Path) -> int:
    report = export_form(session, out, font_path=config.export_font_path)
    if not report.ok:
        print(report.message(config.missing_prefix))
        return EXIT_INCOMPLETE
    print("Wrote:", out)
    return EXIT_OK


def _cmd_view(session: FormSession, config: ViewerConfig, out: Optional[Path]) -> int:
    from overlay_viewer import OverlayViewer

    app = OverlayViewer(session, config, export_path=out)
    app.mainloop()
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
    except ValueError as ex:
        print(str(ex), file=sys.stderr)
        return EXIT_USAGE
    configure_logging(args.log_level or config.log_level)

    mode = getattr(args, "mode", None)
    try:
        session = open_session(args, config, mode)
    except MalformedDocument as ex:
        print(f"{LOAD_FAILED_MESSAGE}\n{ex}", file=sys.stderr)
        return EXIT_LOAD_FAILED

    if args.command == "check":
        return _cmd_check(session, config)
    if args.command == "set":
        try:
            return _cmd_set(session, args.assignments)
        except ValueError as ex:
            print(str(ex), file=sys.stderr)
            return EXIT_USAGE
    if args.command == "export":
        return _cmd_export(session, config, args.out)
    return _cmd_view(session, config, args.out)


if __name__ == "__main__":
    sys.exit(main())
