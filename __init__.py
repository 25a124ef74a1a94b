"""
Sieve Variables Engine - Variable binding and template expansion for mail filters
=================================================================================

Implements the variables extension of a mail filtering engine:
1. ``set`` with modifiers applied in a fixed canonical order
2. Single-pass ``${...}`` expansion over a case-insensitive store,
   including ``${1}``..``${9}`` captures from ``:matches`` tests

License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
__license__ = "MIT"
