from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from ..domain.models import CCAMAct
from ..domain.normalize import fold, round_euros


@dataclass
class InactionScenario:
    future_condition: str
    future_treatment: str
    future_price: int
    reimbursed: bool
    pain_level: int       # 1-10
    complexity: int       # 1-10
    description: str
    timeframe: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class _Rule:
    patient_terms: Tuple[str, ...]
    technical_terms: Tuple[str, ...]
    base_price: int
    factor: float
    future_condition: str
    future_treatment: str
    reimbursed: bool
    pain_level: int
    complexity: int
    description: str
    timeframe: str


# Checked in order; the first rule whose terms appear in the act labels wins.
_RULES: Tuple[_Rule, ...] = (
    _Rule(
        patient_terms=("carie", "obturation", "composite"),
        technical_terms=("restauration",),
        base_price=950,
        factor=2.5,
        future_condition="Nécrose de la dent",
        future_treatment="Dévitalisation + Couronne + Inlay-Core",
        reimbursed=True,
        pain_level=8,
        complexity=6,
        description=(
            "La carie va atteindre le nerf. La douleur sera intense (rage de dent) "
            "et la dent deviendra cassante, nécessitant une couronne."
        ),
        timeframe="6 mois - 1 an",
    ),
    _Rule(
        patient_terms=("extraction", "avulsion"),
        technical_terms=(),
        base_price=2200,
        factor=3,
        future_condition="Perte osseuse & Déplacement des dents",
        future_treatment="Greffe osseuse + Implant + Couronne",
        reimbursed=False,
        pain_level=4,
        complexity=9,
        description=(
            "Sans racine, l'os se résorbe. Les dents voisines se couchent. Pour remplacer "
            "la dent plus tard, il faudra une chirurgie lourde (greffe)."
        ),
        timeframe="1 an - 2 ans",
    ),
    _Rule(
        patient_terms=("détartrage", "gencive", "surfaçage"),
        technical_terms=(),
        base_price=1200,
        factor=2.2,
        future_condition="Parodontite (Déchaussement)",
        future_treatment="Surfaçage complet + Chirurgie parodontale",
        reimbursed=False,
        pain_level=5,
        complexity=7,
        description=(
            "L'inflammation va détruire l'os de soutien. Les dents vont bouger et "
            "finiront par tomber spontanément."
        ),
        timeframe="2 ans - 5 ans",
    ),
    _Rule(
        patient_terms=("couronne", "bridge"),
        technical_terms=(),
        base_price=1800,
        factor=2.4,
        future_condition="Fracture de la racine",
        future_treatment="Extraction + Implant",
        reimbursed=False,
        pain_level=6,
        complexity=8,
        description=(
            "La dent fragilisée risque de se fendre verticalement. Elle sera alors "
            "impossible à sauver et devra être extraite."
        ),
        timeframe="1 an - 3 ans",
    ),
)

_FALLBACK = _Rule(
    patient_terms=(),
    technical_terms=(),
    base_price=1500,
    factor=3,
    future_condition="Aggravation et perte de matière",
    future_treatment="Traitement complet + Couronne ou Implant",
    reimbursed=False,
    pain_level=6,
    complexity=7,
    description=(
        "Sans intervention, la situation dégénère : plus d'inflammation, d'os perdu, "
        "et un traitement prothétique ou implantaire devient inévitable."
    ),
    timeframe="1 an - 2 ans",
)


def build_future_price(base: int, factor: float, current_price: Optional[float]) -> int:
    if current_price and current_price > 0:
        return max(base, round_euros(current_price * factor))
    return base


def _match_rule(act: CCAMAct) -> _Rule:
    patient = fold(act.label_patient)
    technical = fold(act.label_technical)
    for rule in _RULES:
        if any(t in patient for t in rule.patient_terms) or any(t in technical for t in rule.technical_terms):
            return rule
    return _FALLBACK


def inaction_scenario(act: CCAMAct, current_price: Optional[float] = None) -> InactionScenario:
    """What postponing this act is likely to cost later."""
    rule = _match_rule(act)
    return InactionScenario(
        future_condition=rule.future_condition,
        future_treatment=rule.future_treatment,
        future_price=build_future_price(rule.base_price, rule.factor, current_price),
        reimbursed=rule.reimbursed,
        pain_level=rule.pain_level,
        complexity=rule.complexity,
        description=rule.description,
        timeframe=rule.timeframe,
    )
