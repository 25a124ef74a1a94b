"""
Matching - Match types and comparators for filter tests
=======================================================

Implements the three match types used by header, address and string
tests:

- ``is``        whole-value equality
- ``contains``  substring search
- ``matches``   glob with ``*`` (any run) and ``?`` (one character);
                a backslash makes the next character literal

Only ``matches`` produces positional captures, one per wildcard, in
pattern order. When a value can be split more than one way the
leftmost wildcard takes as much as it can.
"""

import re
from enum import Enum
from functools import lru_cache
from typing import List, Optional

from core.exceptions import ScriptError


class MatchType(Enum):
    """Types of pattern matching."""
    IS = "is"
    CONTAINS = "contains"
    MATCHES = "matches"

    @classmethod
    def parse(cls, value: str) -> "MatchType":
        keyword = value[1:] if value.startswith(":") else value
        try:
            return cls(keyword.lower())
        except ValueError:
            raise ScriptError(f"Unknown match type: {value}", {"match_type": value}) from None


class Comparator(Enum):
    """
    Comparators.

    ``i;ascii-casemap`` folds ASCII letters only. ``i;ascii-numeric``
    compares the leading run of digits as a number; a value without one
    counts as positive infinity, so any two such values are equal. It
    only supports ``is``.
    """
    ASCII_CASEMAP = "i;ascii-casemap"
    OCTET = "i;octet"
    ASCII_NUMERIC = "i;ascii-numeric"

    @classmethod
    def parse(cls, value: str) -> "Comparator":
        try:
            return cls(value.lower())
        except ValueError:
            raise ScriptError(f"Unsupported comparator: {value}", {"comparator": value}) from None

    @property
    def flags(self) -> int:
        if self is Comparator.ASCII_CASEMAP:
            return re.DOTALL | re.IGNORECASE | re.ASCII
        return re.DOTALL

    def supports(self, match_type: "MatchType") -> bool:
        return self is not Comparator.ASCII_NUMERIC or match_type is MatchType.IS


_LEADING_DIGITS = re.compile(r"[0-9]+")


def numeric_value(value: str) -> Optional[int]:
    """Leading decimal digits of ``value`` as an int, None for infinity."""
    match = _LEADING_DIGITS.match(value)
    return int(match.group()) if match else None


def wildcard_to_regex(pattern: str) -> str:
    """
    Translate a ``:matches`` glob into a regular expression.

    Each ``*`` becomes a greedy ``(.*)`` group and each ``?`` a ``(.)``
    group.
    """
    parts = []
    pos = 0
    while pos < len(pattern):
        ch = pattern[pos]
        if ch == "\\" and pos + 1 < len(pattern):
            parts.append(re.escape(pattern[pos + 1]))
            pos += 2
            continue
        if ch == "*":
            parts.append("(.*)")
        elif ch == "?":
            parts.append("(.)")
        else:
            parts.append(re.escape(ch))
        pos += 1
    return "".join(parts)


@lru_cache(maxsize=256)
def _compile(match_type: MatchType, key: str, comparator: Comparator) -> "re.Pattern":
    if match_type is MatchType.MATCHES:
        source = wildcard_to_regex(key)
    else:
        source = re.escape(key)
    return re.compile(source, comparator.flags)


def match_value(
    value: str,
    key: str,
    match_type: MatchType = MatchType.IS,
    comparator: Comparator = Comparator.ASCII_CASEMAP
) -> Optional[List[str]]:
    """
    Match one value against one key.

    Args:
        value: Value taken from the message (header, address part, string)
        key: Key from the script, already expanded
        match_type: How to compare
        comparator: Case handling

    Returns:
        None if there is no match, otherwise the wildcard groups
        (always empty for ``is`` and ``contains``)

    Raises:
        ScriptError: If the comparator does not support the match type
    """
    if not comparator.supports(match_type):
        raise ScriptError(
            f"Comparator {comparator.value} does not support :{match_type.value}",
            {"comparator": comparator.value, "match_type": match_type.value},
        )
    if comparator is Comparator.ASCII_NUMERIC:
        return [] if numeric_value(value) == numeric_value(key) else None

    regex = _compile(match_type, key, comparator)

    if match_type is MatchType.CONTAINS:
        return [] if regex.search(value) else None

    match = regex.fullmatch(value)
    if match is None:
        return None
    return list(match.groups())
