from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from autosave_store import AutosaveStore  # noqa: E402
from overlay_model import parse_document  # noqa: E402


def sample_design() -> dict:
    return {
        "pages": [
            {
                "bg": "page1.png",
                "fields": [
                    {"id": "name", "label": "Name", "x": 10, "y": 10, "w": 30, "required": True},
                    {"id": "plan", "type": "select", "label": "Plan", "x": 10, "y": 20,
                     "options": ["Basic", "Promo"], "required": True},
                    {"id": "baseFee", "x": 50, "y": 20, "w": 10},
                    {"id": "discountFee", "x": 62, "y": 20, "w": 10},
                    {"id": "totalFee", "x": 74, "y": 20, "w": 10},
                    {"id": "sim", "type": "radio", "label": "SIM", "x": 10, "y": 30, "options": ["USIM", "eSIM"]},
                    {"label": "Office use only", "x": 70, "y": 90},
                ],
            },
            {
                "bg": "page2.png",
                "fields": [
                    {"id": "agree", "type": "checkbox", "label": "I agree", "x": 10, "y": 10, "required": True},
                    {"id": "applyYear", "x": 50, "y": 80, "w": 8},
                    {"id": "applyMonth", "x": 60, "y": 80, "w": 5},
                    {"id": "applyDay", "x": 67, "y": 80, "w": 5},
                    {"id": "sign", "type": "signature", "label": "Signature", "x": 50, "y": 85, "w": 40},
                ],
            },
        ]
    }


SAMPLE_PLANS = {
    "Basic": {"baseFee": 50000, "discountFee": 10000},
    "Promo": {"baseFee": 50000, "discountFee": 60000},
}


@pytest.fixture
def design() -> dict:
    return sample_design()


@pytest.fixture
def document(design):
    return parse_document(design)


@pytest.fixture
def plans() -> dict:
    return {k: dict(v) for k, v in SAMPLE_PLANS.items()}


@pytest.fixture
def store(tmp_path: Path) -> AutosaveStore:
    return AutosaveStore(tmp_path / "autosave")
