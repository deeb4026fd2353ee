from __future__ import annotations

from datetime import date

import pytest

from derived_rules import DATE_FIELDS, DerivedRules, plan_fee_rule, today_values
from overlay_model import FieldType


def test_total_is_base_minus_discount(plans):
    assert plan_fee_rule("Basic", plans) == [("baseFee", 50000), ("discountFee", 10000), ("totalFee", 40000)]


def test_total_never_goes_negative(plans):
    writes = dict(plan_fee_rule("Promo", plans))
    assert writes["totalFee"] == 0


def test_unknown_plan_writes_zero_fees(plans):
    assert plan_fee_rule("Gold", plans) == [("baseFee", 0), ("discountFee", 0), ("totalFee", 0)]


def test_empty_or_missing_plan_table():
    assert dict(plan_fee_rule("Basic", {}))["totalFee"] == 0
    assert dict(plan_fee_rule("Basic", None))["totalFee"] == 0


def test_fee_figures_are_coerced():
    plans = {"P": {"baseFee": "33000", "discountFee": "abc"}, "Q": {"baseFee": 9900.5, "discountFee": None}}
    assert plan_fee_rule("P", plans) == [("baseFee", 33000), ("discountFee", 0), ("totalFee", 33000)]
    assert dict(plan_fee_rule("Q", plans))["totalFee"] == 9900.5


def test_rules_fire_only_for_controlling_field(plans):
    rules = DerivedRules(plans)
    assert rules.controls("plan", FieldType.SELECT)
    assert not rules.controls("name", FieldType.SELECT)
    assert not rules.controls(None)
    assert rules.writes_for("name", "Basic", FieldType.TEXT) == []
    assert dict(rules.writes_for("plan", "Basic", FieldType.SELECT))["totalFee"] == 40000


@pytest.mark.parametrize("field_type", [FieldType.TEXT, FieldType.RADIO, None])
def test_plan_rule_needs_a_select_field(plans, field_type):
    rules = DerivedRules(plans)
    assert not rules.controls("plan", field_type)
    assert rules.writes_for("plan", "Basic", field_type) == []


def test_custom_rule_table():
    rules = DerivedRules({}, {"qty": (None, lambda value, _plans: [("double", int(value) * 2)])})
    assert rules.writes_for("qty", "4", FieldType.TEXT) == [("double", 8)]
    assert rules.writes_for("qty", "4") == [("double", 8)]
    assert rules.writes_for("plan", "Basic", FieldType.SELECT) == []


def test_today_values_are_zero_padded():
    assert today_values(date(2026, 3, 7)) == [("applyYear", "2026"), ("applyMonth", "03"), ("applyDay", "07")]
    assert [k for k, _ in today_values()] == list(DATE_FIELDS)
