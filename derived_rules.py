from __future__ import annotations

import math
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from overlay_model import FieldType

PlanTable = Dict[str, Dict[str, Any]]
Write = Tuple[str, Any]
DerivedRule = Callable[[Any, PlanTable], List[Write]]
FieldRule = Tuple[Optional[FieldType], DerivedRule]

Number = Union[int, float]

DATE_FIELDS = ("applyYear", "applyMonth", "applyDay")


def _fee(raw: Any) -> Number:
    if raw is None or raw == "" or isinstance(raw, bool):
        return 0
    try:
        num = float(raw)
    except (TypeError, ValueError):
        return 0
    if math.isnan(num) or math.isinf(num):
        return 0
    return int(num) if num.is_integer() else num


def plan_fee_rule(selected: Any, plans: PlanTable) -> List[Write]:
    plan = plans.get(str(selected)) if isinstance(plans, Mapping) and selected is not None else None
    if not isinstance(plan, Mapping):
        plan = {}

    base = _fee(plan.get("baseFee"))
    discount = _fee(plan.get("discountFee"))
    total = max(base - discount, 0)
    return [("baseFee", base), ("discountFee", discount), ("totalFee", total)]


# controlling field id -> (required field type, rule); None accepts any type
DEFAULT_RULES: Dict[str, FieldRule] = {
    "plan": (FieldType.SELECT, plan_fee_rule),
}


class DerivedRules:
    def __init__(self, plans: Optional[PlanTable] = None, rules: Optional[Mapping[str, FieldRule]] = None):
        self.plans: PlanTable = dict(plans) if isinstance(plans, Mapping) else {}
        self.rules: Dict[str, FieldRule] = dict(DEFAULT_RULES if rules is None else rules)

    def controls(self, field_id: Optional[str], field_type: Optional[FieldType] = None) -> bool:
        if not field_id or field_id not in self.rules:
            return False
        required, _ = self.rules[field_id]
        return required is None or required is field_type

    def writes_for(self, field_id: Optional[str], value: Any, field_type: Optional[FieldType] = None) -> List[Write]:
        if not self.controls(field_id, field_type):
            return []
        _, rule = self.rules[field_id]
        return list(rule(value, self.plans))


def today_values(day: Optional[date] = None) -> List[Write]:
    d = day or date.today()
    return [
        ("applyYear", str(d.year)),
        ("applyMonth", f"{d.month:02d}"),
        ("applyDay", f"{d.day:02d}"),
    ]
