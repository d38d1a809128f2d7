"""
Klarity: dental quote decoding for patients, quote links for practitioners.

Shared utilities (config, logging, paths) live at the package root; the
catalog, pricing, quotes, analysis and insights packages build on them.
"""

__all__ = [
    "config",
    "logging",
    "paths",
]
