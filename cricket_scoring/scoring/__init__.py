"""Scoring formula, points calculation and leaderboards.

Submodules:
    formula: Typed season scoring formula
    calculator: Card -> points events rules
    leaderboard: Season totals per player
"""
from __future__ import annotations

from cricket_scoring.scoring.calculator import (
    PointsCalculator,
    batting_events,
    bowling_events,
    calculate_points,
    economy_rate,
    fielding_events,
    is_dismissed,
)
from cricket_scoring.scoring.formula import (
    DEFAULT_FORMULA,
    ActiveFormula,
    BattingFormula,
    BowlingFormula,
    FieldingFormula,
    ScoringFormula,
)
from cricket_scoring.scoring.leaderboard import season_leaderboard

__all__ = [
    "ActiveFormula",
    "BattingFormula",
    "BowlingFormula",
    "DEFAULT_FORMULA",
    "FieldingFormula",
    "PointsCalculator",
    "ScoringFormula",
    "batting_events",
    "bowling_events",
    "calculate_points",
    "economy_rate",
    "fielding_events",
    "is_dismissed",
    "season_leaderboard",
]
