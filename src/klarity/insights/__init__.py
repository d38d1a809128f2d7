"""Patient-facing views derived from acts and quotes (tiers, financing, reviews, inaction)."""

from .financing import MUTUELLE_OPTIONS, financing_offer, recommended_mutuelle
from .inaction import InactionScenario, inaction_scenario
from .landing import build_act_result, build_landing
from .social_proof import REVIEWS, reviews_for_acts
from .tiers import good_better_best

__all__ = [
    "MUTUELLE_OPTIONS",
    "REVIEWS",
    "InactionScenario",
    "build_act_result",
    "build_landing",
    "financing_offer",
    "good_better_best",
    "inaction_scenario",
    "recommended_mutuelle",
    "reviews_for_acts",
]
