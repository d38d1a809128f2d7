"""Vision analysis of quote images and mapping of the result onto the catalog."""

from .extraction import MOCK_ACTS, VisionQuoteAnalyzer
from .images import data_url_from_path
from .mapping import map_analyzed_act, map_analyzed_to_catalog
from .parser import parse_analyzed_acts, parse_model_reply, strip_fences

__all__ = [
    "MOCK_ACTS",
    "VisionQuoteAnalyzer",
    "data_url_from_path",
    "map_analyzed_act",
    "map_analyzed_to_catalog",
    "parse_analyzed_acts",
    "parse_model_reply",
    "strip_fences",
]
