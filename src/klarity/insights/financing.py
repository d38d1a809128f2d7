from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Sequence, Tuple

from ..pricing import INSTALLMENTS, monthly_installment


@dataclass(frozen=True)
class MutuelleOption:
    id: str
    name: str
    coverage: str
    delay: str
    compatibility: str
    monthly: int
    highlight: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


MUTUELLE_OPTIONS: Tuple[MutuelleOption, ...] = (
    MutuelleOption(
        id="m1",
        name="SantéPlus Optimum",
        coverage="200% BR + forfait implant 500€",
        delay="Sans carence",
        compatibility="Implants / Couronne",
        monthly=32,
        highlight=True,
    ),
    MutuelleOption(
        id="m2",
        name="NeoMutuelle Confort",
        coverage="180% BR + prothèse 350€",
        delay="Carence 3 mois",
        compatibility="Couronne / Inlay-Core",
        monthly=27,
    ),
    MutuelleOption(
        id="m3",
        name="Direct Santé Flex",
        coverage="150% BR + plafond dentaire 900€",
        delay="Sans carence",
        compatibility="Soins / orthodontie légère",
        monthly=24,
    ),
)


def recommended_mutuelle(options: Sequence[MutuelleOption] = MUTUELLE_OPTIONS) -> MutuelleOption:
    for option in options:
        if option.highlight:
            return option
    return options[0]


def financing_offer(reste_a_charge: float) -> Dict[str, Any]:
    """4x payment of the out-of-pocket amount, next to the best insurance offer."""
    return {
        "reste_a_charge": reste_a_charge,
        "installments": INSTALLMENTS,
        "monthly": monthly_installment(reste_a_charge),
        "mutuelle": recommended_mutuelle().to_dict(),
    }
