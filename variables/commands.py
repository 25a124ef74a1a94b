"""
Variable Commands - ``set`` evaluation and match capture binding
================================================================

This module connects the filter engine to the variable store:
- SetCommand / parse_set_arguments: load-time validation of ``set``
- SetCommandEvaluator: runs the modifier pipeline and binds the result
- CaptureBinder: stores ``:matches`` wildcard groups as ``${1}``..``${9}``
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from core.exceptions import SieveSyntaxError
from core.logging import get_logger

from .expander import expand
from .modifiers import ModifierSet, apply_modifiers
from .store import MAX_CAPTURES, VariableStore

logger = get_logger("variables.commands")


@dataclass
class SetCommand:
    """
    A validated ``set`` command.

    Attributes:
        name (str): Variable name, never expanded
        value (str): Raw value, expanded when the command runs
        modifier_tokens (list): Modifier keywords as written
        modifiers (ModifierSet): Parsed modifier flags
    """
    name: str
    value: str
    modifier_tokens: List[str] = field(default_factory=list)
    modifiers: ModifierSet = field(default_factory=ModifierSet)

    def to_arguments(self) -> List[str]:
        """Convert back to the argument list form."""
        return [*self.modifier_tokens, self.name, self.value]


def parse_set_arguments(arguments: Sequence[str]) -> SetCommand:
    """
    Validate the argument list of a ``set`` command.

    Tagged arguments (``:lower``) come first and name modifiers; the
    remaining arguments are the variable name and the value.

    Args:
        arguments: Arguments as written in the script

    Returns:
        SetCommand

    Raises:
        SieveSyntaxError: On wrong arity or an unknown modifier
    """
    arguments = list(arguments)
    split = 0
    while split < len(arguments) and arguments[split].startswith(":"):
        split += 1
    tokens, plain = arguments[:split], arguments[split:]

    if len(plain) < 2:
        raise SieveSyntaxError(
            f"At least 2 arguments are needed. Found arguments: {arguments}",
            {"arguments": arguments},
        )
    if len(plain) > 2:
        raise SieveSyntaxError(
            f"Too many arguments for set. Found arguments: {arguments}",
            {"arguments": arguments},
        )

    return SetCommand(
        name=plain[0],
        value=plain[1],
        modifier_tokens=tokens,
        modifiers=ModifierSet.from_tokens(tokens),
    )


class SetCommandEvaluator:
    """
    Evaluates ``set`` commands against one variable store.

    When the variables feature is disabled every ``set`` is a no-op.

    Example:
        evaluator = SetCommandEvaluator(store)
        evaluator.evaluate([":upper"], "var", "test")
        store.lookup("var")  # "TEST"
    """

    def __init__(self, store: VariableStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled

    def evaluate(self, modifier_tokens: Sequence[str], name: str, value: str) -> Optional[str]:
        """
        Apply modifiers to ``value`` and bind the result to ``name``.

        Args:
            modifier_tokens: Modifier keywords, validated here
            name: Variable name
            value: Value after expansion

        Returns:
            The bound value, or None when the feature is disabled

        Raises:
            SieveSyntaxError: If a modifier token is unknown
        """
        modifiers = ModifierSet.from_tokens(modifier_tokens)
        if not self.enabled:
            return None

        result = apply_modifiers(value, modifiers)
        self.store.bind(name, result)
        logger.debug(f"set {name!r} = {result!r}")
        return result

    def execute(
        self,
        command: SetCommand,
        expander: Callable[[str, VariableStore], str] = expand
    ) -> Optional[str]:
        """
        Run a parsed ``set`` command: expand its value, then evaluate.

        Args:
            command: Command produced by :func:`parse_set_arguments`
            expander: Expansion function for the value

        Returns:
            The bound value, or None when the feature is disabled
        """
        if not self.enabled:
            logger.debug(f"variables disabled, skipping set {command.name!r}")
            return None

        value = expander(command.value, self.store)
        result = apply_modifiers(value, command.modifiers)
        self.store.bind(command.name, result)
        logger.debug(f"set {command.name!r} = {result!r}")
        return result


class CaptureBinder:
    """
    Writes positional captures after a successful ``:matches`` test.

    Bypassed entirely when the variables feature is disabled.
    """

    def __init__(self, store: VariableStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled

    def bind(self, groups: Sequence[str]) -> None:
        """
        Replace the store's captures with ``groups``.

        Args:
            groups: Wildcard groups of the match, in order (possibly empty)
        """
        if not self.enabled:
            return
        self.store.bind_captures(groups)
        logger.debug(f"bound {min(len(groups), MAX_CAPTURES)} match capture(s)")
