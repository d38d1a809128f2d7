from __future__ import annotations

import pytest

from klarity.catalog import find_act
from klarity.domain.models import CCAMAct
from klarity.domain.normalize import format_iso, normalize_amount, parse_iso, round_euros, round_half_up
from klarity.pricing import (
    act_out_of_pocket,
    applied_price,
    base_remboursement_total,
    complication_estimate,
    fair_price_indicator,
    monthly_installment,
    out_of_pocket,
    price_breakdown,
    quote_total,
    reference_price,
)


def _act(code="X1", **prices) -> CCAMAct:
    return CCAMAct(
        code=code,
        label_technical="Acte test",
        label_patient="Acte test",
        description="",
        category="soin",
        reimbursable=True,
        **prices,
    )


def test_reference_price_fallbacks():
    assert reference_price(_act(price_avg_province=550, base_remboursement=120)) == 550
    assert reference_price(_act(price_avg_province=0, base_remboursement=30)) == 30
    assert reference_price(_act(base_remboursement=30)) == 30
    assert reference_price(_act()) == 0


def test_applied_price_prefers_custom_including_zero():
    crown = find_act("HBLD038")
    assert applied_price(crown, {}) == 550
    assert applied_price(crown, {"HBLD038": 620}) == 620
    assert applied_price(crown, {"HBLD038": 0}) == 0


def test_quote_total_counts_each_occurrence():
    crown = find_act("HBLD038")
    xray = find_act("HBQK002")
    total = quote_total([crown, crown, xray], {"HBLD038": 600})
    assert total == pytest.approx(1221.28)
    assert base_remboursement_total([crown, crown, xray]) == pytest.approx(261.28)
    assert base_remboursement_total([find_act("LBLD015")]) == 0


def test_out_of_pocket_clamps_only_when_asked():
    assert out_of_pocket(100, 150) == 0
    assert out_of_pocket(100, 150, clamp=False) == -50
    assert out_of_pocket(550, 120) == 430
    assert act_out_of_pocket(find_act("HBLD038")) == 430
    assert act_out_of_pocket(find_act("LBLD015")) == 1100


@pytest.mark.parametrize(
    "amount, expected",
    [(0, 25), (100, 25), (101, 26), (430, 108), (1215, 304)],
)
def test_monthly_installment(amount, expected):
    assert monthly_installment(amount) == expected


def test_fair_price_indicator_thresholds():
    assert fair_price_indicator(700, 550) == "high"
    assert fair_price_indicator(660, 550) == "fair"
    assert fair_price_indicator(440, 550) == "fair"
    assert fair_price_indicator(400, 550) == "low"
    assert fair_price_indicator(10, None) == "high"
    assert fair_price_indicator(None, None) == "fair"


def test_complication_estimate_defaults_to_200():
    assert complication_estimate([]) == 200
    assert complication_estimate([_act()]) == 200
    assert complication_estimate([find_act("HBQK002"), find_act("HBLD350")]) == 1500


def test_price_breakdown_keeps_raw_difference():
    xray = find_act("HBQK002")
    summary = price_breakdown([xray], {"HBQK002": 10})
    assert summary["act_count"] == 1
    assert summary["reste_a_charge"] == pytest.approx(10 - 21.28)
    assert summary["lines"][0]["indicator"] == "low"


def test_half_up_rounding():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(1.005, 2) == 1.01
    assert round_euros(742.5) == 743


@pytest.mark.parametrize(
    "raw, expected",
    [
        (550, 550.0),
        ("21.28", 21.28),
        ("14,70", 14.7),
        ("1 470,00 €", 1470.0),
        ("1,470.00", 1470.0),
        ("1.470,50", 1470.5),
        ("", None),
        ("abc", None),
        ("abc12", None),
        ("12abc", 12.0),
        (float("nan"), None),
        (float("inf"), None),
        (10**400, None),
        (None, None),
        (True, None),
    ],
)
def test_normalize_amount(raw, expected):
    assert normalize_amount(raw) == expected


def test_iso_helpers_use_utc_with_z_suffix():
    dt = parse_iso("2024-06-01T09:30:00.000Z")
    assert dt is not None and dt.utcoffset().total_seconds() == 0
    assert format_iso(dt) == "2024-06-01T09:30:00.000Z"
    assert parse_iso("not a date") is None
    assert parse_iso(None) is None
