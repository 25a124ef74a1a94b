"""Variable store for one script evaluation over one message.

Names are case-insensitive and stored lower-cased. Positional captures
from the most recent ``:matches`` test live in a separate sequence and
only indices 1 through 9 are addressable.
"""

import re
from typing import Dict, Iterable, List, Optional

MAX_CAPTURES = 9

_NUMERIC_NAME = re.compile(r"[0-9]+")


class VariableStore:
    """
    Flat name -> value table plus positional captures.

    Example:
        store = VariableStore()
        store.bind("Company", "ACME")
        store.lookup("COMPANY")  # "ACME"
        store.bind_captures(["ACME.Example", ""])
        store.lookup("1")        # "ACME.Example"
    """

    def __init__(self) -> None:
        self._vars: Dict[str, str] = {}
        self._captures: List[str] = []

    def bind(self, name: str, value: str) -> None:
        """Bind ``name`` (case-insensitive), replacing any prior binding."""
        self._vars[name.lower()] = value

    def bind_captures(self, groups: Iterable[str]) -> None:
        """
        Replace the whole capture sequence.

        ``groups[0]`` becomes ``${1}``. Groups past the ninth are dropped.
        """
        captures = []
        for group in groups:
            if len(captures) == MAX_CAPTURES:
                break
            captures.append(group)
        self._captures = captures

    def lookup(self, name: str) -> Optional[str]:
        """
        Resolve a variable name.

        Multi-digit numeric names never resolve, even when bound. A
        single digit resolves to the capture at that index if the last
        match produced one, otherwise to a plain binding of that name.

        Returns:
            Bound value, or None
        """
        key = name.lower()
        if _NUMERIC_NAME.fullmatch(key):
            if len(key) > 1:
                return None
            index = int(key)
            if 1 <= index <= len(self._captures):
                return self._captures[index - 1]
        return self._vars.get(key)

    def reset(self) -> None:
        """Clear bindings and captures."""
        self._vars.clear()
        self._captures = []

    @property
    def captures(self) -> List[str]:
        return list(self._captures)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._vars)

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def __len__(self) -> int:
        return len(self._vars)

    def __repr__(self) -> str:
        return f"VariableStore({self._vars!r}, captures={self._captures!r})"
