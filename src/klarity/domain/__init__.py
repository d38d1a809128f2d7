"""Domain types and helpers shared by the catalog, quotes and analysis layers."""

from .models import AnalyzedAct, CCAMAct, DentistUser, Quote

__all__ = [
    "AnalyzedAct",
    "CCAMAct",
    "DentistUser",
    "Quote",
]
