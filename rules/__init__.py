"""
Rules Module - Filter script evaluation
=======================================

This module provides a minimal filter engine around the variables
extension, offering:
- Structured scripts loaded from YAML or dicts
- Header, address and string tests with is/contains/matches
- Positional captures from :matches
- Recorded tag, fileinto, log, keep, discard and stop actions
"""

from .engine import (
    FilterEngine,
    FilterScript,
    FilterResult,
    EvaluationContext,
    parse_message,
    load_message,
)
from .matching import MatchType, Comparator, match_value

__all__ = [
    "FilterEngine",
    "FilterScript",
    "FilterResult",
    "EvaluationContext",
    "parse_message",
    "load_message",
    "MatchType",
    "Comparator",
    "match_value",
]
