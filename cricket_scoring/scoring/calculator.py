"""Points calculator: scorecard lines to points events.

Pure functions. Given one card and a season's formula they return the
ordered list of points events the card earns; persisting them is the
publication orchestrator's job.

Every rule is evaluated independently and all triggered rules apply, with
two exceptions where only the highest tier counts:

- batting milestones: 100+ runs selects the 100 tier, otherwise 50+ selects
  the 50 tier (a century never also earns the half-century bonus);
- wicket milestones: 5+ wickets selects the five-for tier, otherwise 3+
  selects the three-for tier.

A rule whose formula value is absent or zero never produces an event.

Example:
    >>> from cricket_scoring.scoring.formula import ScoringFormula
    >>> formula = ScoringFormula.from_json({"run": 1, "duck": -5})
    >>> calculate_points(batting_card, formula)
    [PointsEventDraft(player_id=7, category=<Category.BATTING: 'batting'>, ...)]
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from cricket_scoring.data.names import normalize_name
from cricket_scoring.logging import WARN, get_logger
from cricket_scoring.scoring.formula import ScoringFormula
from cricket_scoring.types import (
    BattingLine,
    BowlingLine,
    CardKind,
    Category,
    FieldingLine,
    PointsEventDraft,
)

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Dismissal texts that mean the batter was not out
NOT_DISMISSED: frozenset[str] = frozenset(
    {"not out", "did not bat", "dnb", "retired hurt", "retired not out", "absent"}
)

# Highest tier first
RUN_MILESTONES: tuple[tuple[int, str], ...] = ((100, "milestone_100"), (50, "milestone_50"))
WICKET_MILESTONES: tuple[tuple[int, str], ...] = (
    (5, "milestone_5_wickets"),
    (3, "milestone_3_wickets"),
)

# (card attribute, formula key, event type)
_BATTING_COUNTS = (("runs", "run", "runs"), ("fours", "four", "fours"), ("sixes", "six", "sixes"))
_BOWLING_COUNTS = (("wickets", "wicket", "wickets"), ("maidens", "maiden", "maidens"))
_FIELDING_COUNTS = (
    ("catches", "catch", "catches"),
    ("stumpings", "stumping", "stumpings"),
    ("run_outs", "run_out", "run_outs"),
    ("drops", "drop", "drops"),
    ("misfields", "misfield", "misfields"),
)


# =============================================================================
# Helpers
# =============================================================================


def is_dismissed(card: BattingLine) -> bool:
    """Whether the batter was out.

    A not-out style dismissal text always wins; otherwise an explicit
    ``is_out`` flag is honoured, and failing that any dismissal text counts.
    """
    how_out = normalize_name(card.how_out or "")
    if how_out in NOT_DISMISSED:
        return False
    if card.is_out is not None:
        return bool(card.is_out)
    return bool(how_out)


def economy_rate(overs: float | None, runs_conceded: int | None) -> float | None:
    """Runs conceded per over, or None when no overs were bowled."""
    if not overs or overs <= 0:
        return None
    return (runs_conceded or 0) / overs


def _highest_tier(value: int, tiers: tuple[tuple[int, str], ...]) -> str | None:
    for threshold, event_type in tiers:
        if value >= threshold:
            return event_type
    return None


def _count_events(
    card: Any,
    formula: ScoringFormula,
    section: str,
    category: Category,
    rules: Iterable[tuple[str, str, str]],
) -> list[PointsEventDraft]:
    events = []
    for attribute, key, event_type in rules:
        count = getattr(card, attribute) or 0
        value = formula.rule_value(section, key)
        if count > 0 and value is not None:
            events.append(
                PointsEventDraft(
                    player_id=card.player_id,
                    category=category,
                    event_type=event_type,
                    points=count * value,
                    metadata={attribute: count},
                )
            )
    return events


# =============================================================================
# Rules
# =============================================================================


def batting_events(card: BattingLine, formula: ScoringFormula) -> list[PointsEventDraft]:
    """Runs, boundary, milestone and duck events for a batting card."""
    events = _count_events(card, formula, "batting", Category.BATTING, _BATTING_COUNTS)
    runs = card.runs or 0

    milestone = _highest_tier(runs, RUN_MILESTONES)
    if milestone is not None:
        value = formula.rule_value("batting", milestone)
        if value is not None:
            events.append(
                PointsEventDraft(
                    player_id=card.player_id,
                    category=Category.BATTING,
                    event_type=milestone,
                    points=value,
                    metadata={"runs": runs},
                )
            )

    duck = formula.rule_value("batting", "duck")
    if runs == 0 and duck is not None and is_dismissed(card):
        events.append(
            PointsEventDraft(
                player_id=card.player_id,
                category=Category.BATTING,
                event_type="duck",
                points=duck,
                metadata={"how_out": card.how_out},
            )
        )

    return events


def bowling_events(card: BowlingLine, formula: ScoringFormula) -> list[PointsEventDraft]:
    """Wicket, maiden, wicket-milestone and economy events for a bowling card."""
    events = _count_events(card, formula, "bowling", Category.BOWLING, _BOWLING_COUNTS)
    wickets = card.wickets or 0

    milestone = _highest_tier(wickets, WICKET_MILESTONES)
    if milestone is not None:
        value = formula.rule_value("bowling", milestone)
        if value is not None:
            events.append(
                PointsEventDraft(
                    player_id=card.player_id,
                    category=Category.BOWLING,
                    event_type=milestone,
                    points=value,
                    metadata={"wickets": wickets},
                )
            )

    economy = economy_rate(card.overs, card.runs_conceded)
    if economy is None:
        return events

    bowling = formula.bowling
    bonus_points = formula.rule_value("bowling", "economy_bonus_points")
    penalty_points = formula.rule_value("bowling", "economy_penalty_points")
    bonus = (
        bowling.economy_bonus_threshold is not None
        and bonus_points is not None
        and economy <= bowling.economy_bonus_threshold
    )
    penalty = (
        bowling.economy_penalty_threshold is not None
        and penalty_points is not None
        and economy >= bowling.economy_penalty_threshold
    )

    if bonus and penalty:
        logger.warning(
            f"{WARN} Economy {economy:.2f} of player {card.player_id} satisfies both "
            f"bonus (<= {bowling.economy_bonus_threshold}) and penalty "
            f"(>= {bowling.economy_penalty_threshold}) thresholds; applying both"
        )

    metadata = {"economy": round(economy, 2), "overs": card.overs}
    if bonus:
        events.append(
            PointsEventDraft(
                player_id=card.player_id,
                category=Category.BOWLING,
                event_type="economy_bonus",
                points=bonus_points,
                metadata=metadata,
            )
        )
    if penalty:
        events.append(
            PointsEventDraft(
                player_id=card.player_id,
                category=Category.BOWLING,
                event_type="economy_penalty",
                points=penalty_points,
                metadata=dict(metadata),
            )
        )

    return events


def fielding_events(card: FieldingLine, formula: ScoringFormula) -> list[PointsEventDraft]:
    """Catch, stumping, run-out, drop and misfield events for a fielding card."""
    return _count_events(card, formula, "fielding", Category.FIELDING, _FIELDING_COUNTS)


def _card_kind(card: Any) -> CardKind:
    kind = getattr(card, "kind", None)
    if isinstance(kind, CardKind):
        return kind
    if hasattr(card, "runs_conceded"):
        return CardKind.BOWLING
    if hasattr(card, "catches"):
        return CardKind.FIELDING
    return CardKind.BATTING


def calculate_points(card: Any, formula: ScoringFormula) -> list[PointsEventDraft]:
    """Points events for any kind of card.

    Args:
        card: Batting, bowling or fielding card (ORM row or any object with
            the same attributes).
        formula: Season scoring formula.

    Returns:
        Ordered list of event drafts; empty when no rule fires.
    """
    kind = _card_kind(card)
    if kind is CardKind.BOWLING:
        return bowling_events(card, formula)
    if kind is CardKind.FIELDING:
        return fielding_events(card, formula)
    return batting_events(card, formula)


class PointsCalculator:
    """Applies one formula to many cards.

    Attributes:
        formula: Season scoring formula.
    """

    def __init__(self, formula: ScoringFormula) -> None:
        self.formula = formula

    def calculate(self, card: Any) -> list[PointsEventDraft]:
        """Events earned by a single card."""
        return calculate_points(card, self.formula)

    def calculate_all(self, cards: Iterable[Any]) -> list[PointsEventDraft]:
        """Events for every card, in card order."""
        events: list[PointsEventDraft] = []
        for card in cards:
            events.extend(self.calculate(card))
        return events

    def total(self, cards: Iterable[Any]) -> float:
        """Sum of points over the given cards."""
        return sum(event.points for event in self.calculate_all(cards))
