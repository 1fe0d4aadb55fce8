"""Tests for player name normalization and splitting."""
from __future__ import annotations

import pytest

from cricket_scoring.data.names import full_name, normalize_name, split_name
from cricket_scoring.types import InvalidNameFormat


class TestNormalizeName:
    """Tests for normalize_name()."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("John Smith", "john smith"),
            ("  JOHN   smith ", "john smith"),
            ("john\tsmith", "john smith"),
            ("", ""),
        ],
    )
    def test_normalizes(self, raw: str, expected: str) -> None:
        assert normalize_name(raw) == expected


class TestSplitName:
    """Tests for split_name()."""

    def test_first_token_and_rest(self) -> None:
        assert split_name("John Paul Smith") == ("John", "Paul Smith")

    def test_comma_form(self) -> None:
        assert split_name("Smith, John") == ("John", "Smith")

    def test_comma_form_collapses_whitespace(self) -> None:
        assert split_name(" de  Villiers ,  AB ") == ("AB", "de Villiers")

    @pytest.mark.parametrize("raw", ["Smith", "  ", "", "Smith,"])
    def test_single_token_rejected(self, raw: str) -> None:
        with pytest.raises(InvalidNameFormat) as exc_info:
            split_name(raw)

        assert exc_info.value.raw_name == raw


class TestFullName:
    def test_joins_and_trims(self) -> None:
        assert full_name("Joe", "Root") == "Joe Root"
        assert full_name("Joe", "") == "Joe"
        assert full_name("Joe", None) == "Joe"
