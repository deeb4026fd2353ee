from __future__ import annotations

from datetime import date
from functools import partial

from field_renderer import ControlKind, Mode
from form_session import FormSession, LiveValue
from overlay_model import parse_document
from signature_pad import SignaturePad

KEY = "overlay_autosave_kt_mmobile_join_adult"
TODAY = date(2026, 3, 7)


def _session(document, plans, store, mode=Mode.FILL) -> FormSession:
    s = FormSession(document, plans, store, KEY, mode=mode)
    s.start(today=TODAY)
    return s


def test_start_writes_today_over_stored_dates(document, plans, store):
    store.upsert(KEY, "applyYear", "1999")
    store.upsert(KEY, "name", "Kim")

    s = _session(document, plans, store)

    assert s.value("applyYear") == "2026"
    assert s.value("applyMonth") == "03"
    assert s.value("applyDay") == "07"
    assert s.value("name") == "Kim"
    assert store.read_all(KEY)["applyYear"] == "2026"


def test_persisted_keys_outside_the_design_are_kept(document, plans, store):
    store.upsert(KEY, "legacy", "x")
    s = _session(document, plans, store)
    assert s.value("legacy") == "x"
    assert s.values()["legacy"] == "x"


def test_emit_persists_and_updates_live_value(document, plans, store):
    s = _session(document, plans, store)
    seen = []
    s.live("name").subscribe(seen.append)

    s.emit("name", "Lee")

    assert store.read_all(KEY)["name"] == "Lee"
    assert s.value("name") == "Lee"
    assert seen == ["Lee"]


def test_plan_choice_writes_fee_fields(document, plans, store):
    s = _session(document, plans, store)

    s.emit("plan", "Basic")
    stored = store.read_all(KEY)
    assert (stored["baseFee"], stored["discountFee"], stored["totalFee"]) == (50000, 10000, 40000)

    s.emit("plan", "Promo")
    assert s.value("totalFee") == 0
    assert store.read_all(KEY)["totalFee"] == 0


def test_derived_fields_rerender_with_new_values(document, plans, store):
    s = _session(document, plans, store, mode=Mode.PREVIEW)
    s.emit("plan", "Basic")
    rendered = {r.field.id: r for r in s.render_page(0)}
    assert rendered["totalFee"].text == "40000"
    assert rendered["plan"].kind is ControlKind.TEXT


def test_every_subscriber_of_an_id_sees_the_write(document, plans, store):
    s = _session(document, plans, store)
    first, second = [], []
    s.live("sim").subscribe(first.append)
    unsubscribe = s.live("sim").subscribe(second.append)

    s.emit("sim", "eSIM")
    unsubscribe()
    s.emit("sim", "USIM")

    assert first == ["eSIM", "USIM"]
    assert second == ["eSIM"]


def test_idless_field_never_persists(document, plans, store):
    s = _session(document, plans, store)
    before = store.read_all(KEY)
    s.emit(None, "x")
    s.emit("", "x")
    assert store.read_all(KEY) == before

    caption = [r for r in s.render_page(0) if r.field.id is None][0]
    assert caption.emit is None


def test_fill_mode_wires_emit_to_the_session(document, plans, store):
    s = _session(document, plans, store)
    name = [r for r in s.render_page(0) if r.field.id == "name"][0]
    name.emit("Park")
    assert store.read_all(KEY)["name"] == "Park"


def test_mode_change_notifies_only_on_change(document, plans, store):
    s = _session(document, plans, store, mode=Mode.PREVIEW)
    seen = []
    s.on_mode_change(seen.append)
    s.set_mode(Mode.PREVIEW)
    s.set_mode("fill")
    assert seen == [Mode.FILL]
    assert s.mode is Mode.FILL


def test_export_request_blocked_returns_to_fill(document, plans, store):
    s = _session(document, plans, store, mode=Mode.PREVIEW)
    seen = []
    s.on_mode_change(seen.append)

    report = s.request_export()

    assert not report.ok
    assert report.missing == ["Name", "Plan", "I agree"]
    assert seen == [Mode.PDF, Mode.FILL]
    assert s.mode is Mode.FILL


def test_export_request_ok_stays_in_pdf_mode(document, plans, store):
    s = _session(document, plans, store)
    s.emit("name", "Kim")
    s.emit("plan", "Basic")
    s.emit("agree", True)

    report = s.request_export()

    assert report.ok
    assert s.mode is Mode.PDF
    rendered = {r.field.id: r for r in s.render_page(1)}
    assert rendered["agree"].text == "☑ 동의"


def test_render_starts_session_lazily(document, plans, store):
    s = FormSession(document, plans, store, KEY)
    pages = s.render_all()
    assert len(pages) == 2
    assert s.value("applyYear") == str(date.today().year)


def test_live_value_holds_last_value():
    lv = LiveValue("a", 1)
    lv.set(2)
    assert lv.value == 2


def test_plan_rule_ignores_a_plan_field_that_is_not_a_select(plans, store):
    doc = parse_document({"pages": [{"fields": [
        {"id": "plan", "type": "text"},
        {"id": "totalFee"},
    ]}]})
    s = _session(doc, plans, store)

    s.emit("plan", "Basic")

    stored = store.read_all(KEY)
    assert stored["plan"] == "Basic"
    assert "totalFee" not in stored
    assert s.value("totalFee") is None


def test_checkbox_and_radio_values_round_trip_through_emit(document, plans, store):
    s = _session(document, plans, store)
    s.emit("agree", True)
    s.emit("sim", "eSIM")

    stored = store.read_all(KEY)
    assert stored["agree"] is True
    assert stored["sim"] == "eSIM"

    s.emit("agree", False)
    assert store.read_all(KEY)["agree"] is False


def test_signature_strokes_round_trip_through_emit(document, plans, store):
    s = _session(document, plans, store)
    emitted = []
    pad = SignaturePad(on_segment=partial(s.emit, "sign"))
    s.live("sign").subscribe(emitted.append)

    pad.pointer_down(10, 20)
    pad.pointer_move(120, 60)
    pad.pointer_move(300, 90)
    pad.pointer_up()

    assert len(emitted) == 2
    assert emitted[-1].startswith("data:image/png;base64,")
    assert store.read_all(KEY)["sign"] == emitted[-1]

    reloaded = _session(document, plans, store)
    assert reloaded.value("sign") == emitted[-1]
