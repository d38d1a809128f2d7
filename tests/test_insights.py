from __future__ import annotations

from datetime import timedelta

import pytest

from klarity.catalog import find_act
from klarity.domain.models import CCAMAct, Quote
from klarity.insights import (
    MUTUELLE_OPTIONS,
    build_act_result,
    build_landing,
    financing_offer,
    good_better_best,
    inaction_scenario,
    recommended_mutuelle,
    reviews_for_acts,
)
from klarity.quotes import build_magic_link

from conftest import T0


def _act(label_patient: str, label_technical: str = "", **kwargs) -> CCAMAct:
    return CCAMAct(
        code=kwargs.pop("code", "X1"),
        label_technical=label_technical,
        label_patient=label_patient,
        description="",
        category=kwargs.pop("category", "autre"),
        reimbursable=False,
        **kwargs,
    )


def test_tiers_for_empty_plan():
    tiers = good_better_best([])
    assert tiers["base"] == 900
    assert tiers["selected"] == "better"
    prices = {o["id"]: o["price"] for o in tiers["options"]}
    assert prices == {"good": 720, "better": 900, "best": 1215}
    badges = {o["id"]: o["badge"] for o in tiers["options"]}
    assert badges == {"good": None, "better": "Conseillée", "best": "Longévité"}


def test_tiers_round_half_up_and_fallback_price():
    tiers = good_better_best([find_act("HBLD038")])
    by_id = {o["id"]: o for o in tiers["options"]}
    assert by_id["good"]["price"] == 440
    assert by_id["best"]["price"] == 743
    assert by_id["best"]["monthly"] == 186

    unpriced = good_better_best([_act("Acte sans prix"), find_act("LBLD015")], selected="best")
    assert unpriced["base"] == 1350
    assert unpriced["selected"] == "best"
    assert good_better_best([], selected="platinum")["selected"] == "better"


@pytest.mark.parametrize(
    "code, price, condition, future_price",
    [
        ("HBMD049", 26.97, "Nécrose de la dent", 950),
        ("HBGD035", 0, "Perte osseuse & Déplacement des dents", 2200),
        ("HBJD001", 28.92, "Parodontite (Déchaussement)", 1200),
        ("HBLD038", 550, "Fracture de la racine", 1800),
        ("HBLD038", 1000, "Fracture de la racine", 2400),
        ("LBLD015", 1100, "Aggravation et perte de matière", 3300),
    ],
)
def test_inaction_rules(code, price, condition, future_price):
    scenario = inaction_scenario(find_act(code), price)
    assert scenario.future_condition == condition
    assert scenario.future_price == future_price


def test_inaction_checks_technical_label_and_rule_order():
    restoration = inaction_scenario(_act("Soin", "Restauration d'une dent"), 100)
    assert restoration.future_treatment == "Dévitalisation + Couronne + Inlay-Core"
    assert restoration.future_price == 950

    # caries terms win over crown terms
    mixed = inaction_scenario(_act("Couronne après carie"))
    assert mixed.future_condition == "Nécrose de la dent"
    assert mixed.reimbursed is True


def test_social_proof_defaults_and_ranking():
    assert [r.id for r in reviews_for_acts([])] == ["r1", "r2", "r3"]
    assert [r.id for r in reviews_for_acts([find_act("HBMD049")])] == ["r3", "r1", "r2"]
    assert [r.id for r in reviews_for_acts([find_act("HBLD038")])] == ["r1", "r2", "r4"]
    # no shared tag: rating order, stable
    assert [r.id for r in reviews_for_acts([_act("Rien", category="autre")])] == ["r1", "r2", "r4"]


def test_financing_offer_uses_highlighted_mutuelle():
    offer = financing_offer(430)
    assert offer["monthly"] == 108
    assert offer["installments"] == 4
    assert offer["mutuelle"]["id"] == "m1"
    assert recommended_mutuelle(MUTUELLE_OPTIONS[1:]).id == "m2"


def _quote(*codes: str) -> Quote:
    acts = [find_act(c) for c in codes]
    quote = Quote(
        id="q1",
        patient_name="Alice",
        date="2024-06-01T09:30:00.000Z",
        status="sent",
        acts=acts,
        total=sum(a.price_avg_province or 0 for a in acts),
    )
    return build_magic_link(quote, now=T0)


def test_landing_view():
    landing = build_landing(_quote("HBLD038", "HBQK002"), now=T0)
    assert landing["total"] == pytest.approx(571.28)
    assert landing["base_remboursement"] == pytest.approx(141.28)
    assert landing["reste_a_charge"] == pytest.approx(430)
    assert landing["monthly"] == 108
    assert [a["code"] for a in landing["acts_preview"]] == ["HBLD038", "HBQK002"]
    assert landing["more_acts"] == 0
    assert landing["inaction"]["future_price"] == 1800
    assert landing["complication_estimate"] == 550
    assert landing["link_expired"] is False
    assert landing["financing"]["monthly"] == 108
    assert len(landing["reviews"]) == 3
    assert landing["tiers"]["base"] == pytest.approx(571.28)


def test_landing_view_preview_and_expiry():
    quote = _quote("HBQK002", "HBQK389", "HBJD001", "HBBD005", "HBMD049")
    landing = build_landing(quote, now=T0 + timedelta(days=15))
    assert len(landing["acts_preview"]) == 3
    assert landing["more_acts"] == 2
    assert landing["reste_a_charge"] == 0
    assert landing["monthly"] == 25
    assert landing["link_expired"] is True


def test_landing_without_acts():
    landing = build_landing(_quote(), now=T0)
    assert landing["inaction"] is None
    assert landing["complication_estimate"] == 200
    assert landing["tiers"]["base"] == 900


def test_act_result():
    result = build_act_result(find_act("HBLD038"))
    assert result["act"]["code"] == "HBLD038"
    assert result["reste_a_charge"] == 430
    assert result["inaction"]["future_condition"] == "Fracture de la racine"
