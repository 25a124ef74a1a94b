"""
Test Variable Commands
======================

Unit tests for set validation/evaluation and capture binding.
"""

import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from variables.commands import (
    CaptureBinder,
    SetCommandEvaluator,
    parse_set_arguments,
)
from variables.modifiers import Modifier
from variables.store import VariableStore
from core.exceptions import SieveSyntaxError


class TestParseSetArguments:
    """Tests for load-time validation of set."""

    def test_plain(self):
        command = parse_set_arguments(["var", "hello"])
        assert command.name == "var"
        assert command.value == "hello"
        assert not command.modifiers

    def test_with_modifiers(self):
        command = parse_set_arguments([":upper", ":LOWERFIRST", "var", "test"])
        assert command.modifiers.is_enabled(Modifier.UPPER)
        assert command.modifiers.is_enabled(Modifier.LOWER_FIRST)
        assert command.to_arguments() == [":upper", ":LOWERFIRST", "var", "test"]

    def test_too_few_arguments(self):
        """Test the error carries the argument list received."""
        with pytest.raises(SieveSyntaxError) as exc_info:
            parse_set_arguments(["hello"])

        assert "At least 2 arguments are needed. Found arguments: ['hello']" in str(exc_info.value)
        assert exc_info.value.details["arguments"] == ["hello"]

    def test_modifier_without_value(self):
        """Test a modifier does not count as a plain argument."""
        with pytest.raises(SieveSyntaxError) as exc_info:
            parse_set_arguments([":lower", "var"])
        assert "At least 2 arguments" in str(exc_info.value)

    def test_unknown_modifier(self):
        with pytest.raises(SieveSyntaxError) as exc_info:
            parse_set_arguments([":lownner", "var", "hello"])
        assert "Invalid variable modifier: :lownner" in str(exc_info.value)

    def test_too_many_arguments(self):
        with pytest.raises(SieveSyntaxError):
            parse_set_arguments(["var", "hello", "extra"])

    def test_value_may_start_with_colon(self):
        """Test only leading tagged arguments are modifiers."""
        command = parse_set_arguments(["var", ":upper"])
        assert command.value == ":upper"
        assert not command.modifiers


class TestSetCommandEvaluator:
    """Tests for SetCommandEvaluator."""

    def test_evaluate(self):
        store = VariableStore()
        SetCommandEvaluator(store).evaluate([":upper"], "var", "test")
        assert store.lookup("var") == "TEST"

    def test_evaluate_unknown_modifier(self):
        store = VariableStore()
        with pytest.raises(SieveSyntaxError):
            SetCommandEvaluator(store).evaluate([":bogus"], "var", "test")
        assert store.lookup("var") is None

    def test_execute_expands_value(self):
        """Test the modifier sequence over expanded values."""
        store = VariableStore()
        evaluator = SetCommandEvaluator(store)

        for arguments in (["a", "juMBlEd lETteRS"],
                          [":length", "b", "${a}"]):
            evaluator.execute(parse_set_arguments(arguments))
        assert store.lookup("b") == "15"

        for arguments in ([":lower", "b", "${a}"],
                          [":upperfirst", "c", "${b}"],
                          [":upperfirst", ":lower", "d", "${c}"]):
            evaluator.execute(parse_set_arguments(arguments))

        assert store.lookup("b") == "jumbled letters"
        assert store.lookup("c") == "Jumbled letters"
        assert store.lookup("d") == "Jumbled letters"

    def test_name_not_expanded(self):
        store = VariableStore()
        store.bind("x", "y")
        SetCommandEvaluator(store).execute(parse_set_arguments(["${x}", "v"]))
        assert store.lookup("${x}") == "v"
        assert store.lookup("y") is None

    def test_disabled(self):
        """Test set is a no-op when variables are disabled."""
        store = VariableStore()
        evaluator = SetCommandEvaluator(store, enabled=False)
        assert evaluator.execute(parse_set_arguments(["var", "hello"])) is None
        assert evaluator.evaluate([], "var", "hello") is None
        assert store.lookup("var") is None


class TestCaptureBinder:
    """Tests for CaptureBinder."""

    def test_bind(self):
        store = VariableStore()
        CaptureBinder(store).bind(["ACME.Example", ""])
        assert store.captures == ["ACME.Example", ""]

    def test_disabled(self):
        store = VariableStore()
        CaptureBinder(store, enabled=False).bind(["a"])
        assert store.captures == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
