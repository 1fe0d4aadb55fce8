"""Tests for type definitions module."""
from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from cricket_scoring.types import (
    AlreadyPublished,
    CardKind,
    Category,
    FormulaError,
    InvalidNameFormat,
    MatchNotFound,
    MatchNotPublished,
    MergeConflict,
    NoActiveFormula,
    NotFoundError,
    PointsEventDraft,
    PublishError,
    ScoringEngineError,
)


class TestEnums:
    def test_values_are_strings(self) -> None:
        assert Category.BATTING == "batting"
        assert CardKind.FIELDING.value == "fielding"
        assert {kind.value for kind in CardKind} == {c.value for c in Category}


class TestPointsEventDraft:
    def test_frozen(self) -> None:
        draft = PointsEventDraft(
            player_id=1, category=Category.BATTING, event_type="runs", points=52
        )

        with pytest.raises(FrozenInstanceError):
            draft.points = 0  # type: ignore[misc]
        assert draft.metadata == {}


class TestExceptions:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        "exc",
        [
            AlreadyPublished(3),
            NoActiveFormula(2),
            MatchNotPublished(3),
            MatchNotFound("Match 3 not found"),
            InvalidNameFormat("Prince"),
            MergeConflict("same player"),
            FormulaError("bad"),
        ],
    )
    def test_all_derive_from_base(self, exc: Exception) -> None:
        assert isinstance(exc, ScoringEngineError)

    def test_publish_errors(self) -> None:
        assert issubclass(AlreadyPublished, PublishError)
        assert issubclass(NoActiveFormula, PublishError)
        assert issubclass(MatchNotFound, NotFoundError)

    def test_messages_carry_ids(self) -> None:
        exc = AlreadyPublished(42)

        assert exc.match_id == 42
        assert "42" in str(exc)
        assert NoActiveFormula(7).season_id == 7
        assert InvalidNameFormat("Prince").raw_name == "Prince"
