"""
Variable Modifiers - String transforms applied by ``set``
=========================================================

Modifiers always run in a fixed canonical order, whatever order the
script wrote them in:

    quotewildcard -> lower -> upper -> lowerfirst -> upperfirst -> encodeurl -> length

``length`` runs last and measures the string produced by the others.
"""

from enum import Enum
from typing import Callable, Iterable, List, Tuple
from urllib.parse import quote_plus

from core.exceptions import SieveSyntaxError


class Modifier(Enum):
    """Known ``set`` modifiers, declared in canonical order."""
    QUOTE_WILDCARD = "quotewildcard"
    LOWER = "lower"
    UPPER = "upper"
    LOWER_FIRST = "lowerfirst"
    UPPER_FIRST = "upperfirst"
    ENCODE_URL = "encodeurl"
    LENGTH = "length"

    @classmethod
    def from_token(cls, token: str) -> "Modifier":
        """
        Resolve a script token such as ``:UpperFirst`` to a modifier.

        Raises:
            SieveSyntaxError: If the token names no known modifier
        """
        keyword = token[1:] if token.startswith(":") else token
        try:
            return cls(keyword.lower())
        except ValueError:
            raise SieveSyntaxError(
                f"Invalid variable modifier: {token}",
                {"token": token},
            ) from None


def _quote_wildcard(value: str) -> str:
    return "".join("\\" + ch if ch in "\\*?" else ch for ch in value)


def _lower_first(value: str) -> str:
    return value[:1].lower() + value[1:]


def _upper_first(value: str) -> str:
    return value[:1].upper() + value[1:]


def _encode_url(value: str) -> str:
    # Form encoding: space becomes '+'; letters, digits and "*-_." pass
    # through; everything else, '~' included, is percent-encoded as UTF-8.
    return quote_plus(value, safe="*").replace("~", "%7E")


PIPELINE: Tuple[Tuple[Modifier, Callable[[str], str]], ...] = (
    (Modifier.QUOTE_WILDCARD, _quote_wildcard),
    (Modifier.LOWER, str.lower),
    (Modifier.UPPER, str.upper),
    (Modifier.LOWER_FIRST, _lower_first),
    (Modifier.UPPER_FIRST, _upper_first),
    (Modifier.ENCODE_URL, _encode_url),
    (Modifier.LENGTH, lambda value: str(len(value))),
)


class ModifierSet:
    """
    Fixed set of enable flags, one slot per known modifier.

    Example:
        flags = ModifierSet.from_tokens([":upperfirst", ":lower"])
        flags.apply("juMBlEd lETteRS")  # "Jumbled letters"
    """

    def __init__(self, modifiers: Iterable[Modifier] = ()):
        self._enabled = {modifier: False for modifier in Modifier}
        for modifier in modifiers:
            self._enabled[modifier] = True

    @classmethod
    def from_tokens(cls, tokens: Iterable[str]) -> "ModifierSet":
        """
        Build a set from script tokens, validating each one.

        Args:
            tokens: Modifier keywords, with or without the leading ':'

        Raises:
            SieveSyntaxError: On the first unknown keyword
        """
        return cls(Modifier.from_token(token) for token in tokens)

    def enable(self, modifier: Modifier) -> None:
        self._enabled[modifier] = True

    def is_enabled(self, modifier: Modifier) -> bool:
        return self._enabled[modifier]

    def enabled(self) -> List[Modifier]:
        """Enabled modifiers in canonical order."""
        return [modifier for modifier, _ in PIPELINE if self._enabled[modifier]]

    def apply(self, value: str) -> str:
        return apply_modifiers(value, self)

    def __bool__(self) -> bool:
        return any(self._enabled.values())

    def __eq__(self, other) -> bool:
        if not isinstance(other, ModifierSet):
            return NotImplemented
        return self._enabled == other._enabled

    def __repr__(self) -> str:
        names = ", ".join(m.value for m in self.enabled())
        return f"ModifierSet({names})"


def apply_modifiers(value: str, modifiers: ModifierSet) -> str:
    """
    Run every enabled modifier over ``value`` in canonical order.

    The modifier set is assumed to be validated already; this
    function never raises for well-typed input.

    Args:
        value: Raw value of the ``set`` command
        modifiers: Enabled modifiers

    Returns:
        Transformed value
    """
    for modifier, transform in PIPELINE:
        if modifiers.is_enabled(modifier):
            value = transform(value)
    return value
