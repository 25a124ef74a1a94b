"""
Variables Module - Variable binding and template expansion
==========================================================

This module implements the variables extension of the filter engine:
- Modifier pipeline for ``set`` (:lower, :upperfirst, :length, ...)
- Case-insensitive variable store with match captures ${1}..${9}
- Single-pass ``${...}`` template expansion
- ``set`` validation/evaluation and capture binding
"""

from .modifiers import Modifier, ModifierSet, apply_modifiers
from .store import VariableStore
from .expander import expand, extract_references
from .commands import (
    SetCommand,
    SetCommandEvaluator,
    CaptureBinder,
    parse_set_arguments,
)

__all__ = [
    "Modifier",
    "ModifierSet",
    "apply_modifiers",
    "VariableStore",
    "expand",
    "extract_references",
    "SetCommand",
    "SetCommandEvaluator",
    "CaptureBinder",
    "parse_set_arguments",
]
