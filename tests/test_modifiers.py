"""
Test Variable Modifiers
=======================

Unit tests for the set modifier pipeline and modifier parsing.
"""

import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from variables.modifiers import Modifier, ModifierSet, apply_modifiers
from core.exceptions import SieveSyntaxError


class TestModifierParsing:
    """Tests for modifier keyword parsing."""

    def test_token_with_colon(self):
        """Test tokens written as tagged arguments."""
        assert Modifier.from_token(":lower") is Modifier.LOWER
        assert Modifier.from_token(":quotewildcard") is Modifier.QUOTE_WILDCARD

    def test_token_case_insensitive(self):
        """Test keywords match regardless of case."""
        assert Modifier.from_token(":UPPERFIRST") is Modifier.UPPER_FIRST
        assert Modifier.from_token("EncodeURL") is Modifier.ENCODE_URL

    def test_unknown_token(self):
        """Test unknown keywords are rejected with the token in the message."""
        with pytest.raises(SieveSyntaxError) as exc_info:
            ModifierSet.from_tokens([":lower", ":lownner"])

        assert "Invalid variable modifier: :lownner" in str(exc_info.value)
        assert exc_info.value.details["token"] == ":lownner"

    def test_enabled_in_canonical_order(self):
        """Test enabled() ignores the written order."""
        flags = ModifierSet.from_tokens([":length", ":upper", ":quotewildcard"])
        assert flags.enabled() == [Modifier.QUOTE_WILDCARD, Modifier.UPPER, Modifier.LENGTH]

    def test_empty_set(self):
        """Test an empty set is falsy and leaves values alone."""
        flags = ModifierSet()
        assert not flags
        assert flags.apply("MiXeD") == "MiXeD"


class TestApplyModifiers:
    """Tests for the modifier pipeline."""

    def test_lower_then_upperfirst(self):
        """Test case modifiers compose."""
        flags = ModifierSet([Modifier.LOWER, Modifier.UPPER_FIRST])
        assert apply_modifiers("juMBlEd lETteRS", flags) == "Jumbled letters"

    def test_length(self):
        """Test length replaces the value with its character count."""
        flags = ModifierSet([Modifier.LENGTH])
        assert apply_modifiers("juMBlEd lETteRS", flags) == "15"

    def test_length_runs_last(self):
        """Test length measures the output of the other modifiers."""
        flags = ModifierSet([Modifier.LENGTH, Modifier.QUOTE_WILDCARD])
        assert apply_modifiers("a*b", flags) == "4"

    def test_canonical_order(self):
        """Test quotewildcard, upper and lowerfirst run in canonical order."""
        value = "j?uMBlEd*lETte\\RS"
        expected = "j\\?UMBLED\\*LETTE\\\\RS"

        for tokens in ([":upper", ":lowerfirst", ":quotewildcard"],
                       [":quotewildcard", ":upper", ":lowerfirst"],
                       [":lowerfirst", ":quotewildcard", ":upper"]):
            assert apply_modifiers(value, ModifierSet.from_tokens(tokens)) == expected

    def test_lowerfirst(self):
        """Test lowerfirst only touches the first character."""
        assert ModifierSet([Modifier.LOWER_FIRST]).apply("WORLD") == "wORLD"

    def test_upperfirst(self):
        """Test upperfirst only touches the first character."""
        assert ModifierSet([Modifier.UPPER_FIRST]).apply("example") == "Example"
        assert ModifierSet([Modifier.UPPER_FIRST]).apply("") == ""

    def test_upper(self):
        """Test upper."""
        assert ModifierSet([Modifier.UPPER]).apply("test") == "TEST"

    def test_encodeurl(self):
        """Test form encoding with space as '+'."""
        flags = ModifierSet.from_tokens([":encodeurl", ":lower"])
        assert flags.apply("Safe body&evil=evilbody") == "safe+body%26evil%3Devilbody"

    def test_encodeurl_non_ascii(self):
        """Test non-ASCII characters are percent-encoded as UTF-8."""
        assert ModifierSet([Modifier.ENCODE_URL]).apply("é/x") == "%C3%A9%2Fx"

    def test_encodeurl_form_safe_characters(self):
        """Test '*', '-', '_' and '.' pass through while '~' is encoded."""
        assert ModifierSet([Modifier.ENCODE_URL]).apply("a*b~c-d_e.f") == "a*b%7Ec-d_e.f"

    def test_encodeurl_length(self):
        flags = ModifierSet.from_tokens([":encodeurl", ":length"])
        assert flags.apply("~*") == "4"

    def test_quotewildcard_then_encodeurl(self):
        """Test the backslash added by quotewildcard is encoded, the '*' is not."""
        flags = ModifierSet.from_tokens([":encodeurl", ":quotewildcard"])
        assert flags.apply("a*b") == "a%5C*b"

    def test_length_counts_characters(self):
        """Test length counts characters, not bytes."""
        assert ModifierSet([Modifier.LENGTH]).apply("おしらせ") == "4"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
