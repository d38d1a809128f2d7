"""Static CCAM dental act reference table and its search helpers."""

from .reference import find_act, load_reference_table, search_acts, suggest_acts

__all__ = [
    "find_act",
    "load_reference_table",
    "search_acts",
    "suggest_acts",
]
