from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Sequence, Set, Tuple

from ..domain.models import CCAMAct

TOP_N = 3


@dataclass(frozen=True)
class Review:
    id: str
    name: str
    city: str
    snippet: str
    tags: Tuple[str, ...]
    rating: int

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["tags"] = list(self.tags)
        return payload


REVIEWS: Tuple[Review, ...] = (
    Review("r1", "Michel L.", "Lyon", "Implant parfaitement indolore, suivi clair. Je n’ai rien senti.",
           ("implant", "chirurgie"), 5),
    Review("r2", "Sarah P.", "Bordeaux", "Couronne céramique esthétique, résultat très naturel.",
           ("couronne", "prothese", "esthetique"), 5),
    Review("r3", "Nadia K.", "Paris", "Traitement carie rapide, explications simples, aucun stress.",
           ("carie", "soin", "prevention"), 4),
    Review("r4", "Julien D.", "Marseille",
           "Greffe osseuse + implant : prise en charge complète, rendez-vous bien coordonnés.",
           ("implant", "greffe", "chirurgie"), 5),
    Review("r5", "Elodie V.", "Nantes", "Facette et alignement : sourire impeccable et process fluide.",
           ("esthetique", "orthodontie"), 5),
)

# Code fragments that hint at a review tag.
_CODE_TAGS: Tuple[Tuple[str, str], ...] = (
    ("hbl", "implant"),
    ("hbj", "couronne"),
    ("hbd", "carie"),
)


def _tags_for(acts: Sequence[CCAMAct]) -> Set[str]:
    tags: Set[str] = set()
    for act in acts:
        tags.add(act.category)
        code = act.code.lower()
        for fragment, tag in _CODE_TAGS:
            if fragment in code:
                tags.add(tag)
    return tags


def reviews_for_acts(acts: Sequence[CCAMAct]) -> List[Review]:
    if not acts:
        return list(REVIEWS[:TOP_N])
    tags = _tags_for(acts)
    scored = [(1 if any(t in tags for t in review.tags) else 0, review) for review in REVIEWS]
    scored.sort(key=lambda pair: (pair[0], pair[1].rating), reverse=True)
    return [review for _, review in scored[:TOP_N]]
