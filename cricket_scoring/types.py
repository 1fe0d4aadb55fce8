"""Type definitions, protocols and exceptions for the scoring engine.

This module defines common types, protocols, and type aliases used throughout
the application. The protocols describe the collaborators the publication
pipeline talks to; the SQLAlchemy repositories in
``cricket_scoring.data.repositories`` satisfy them, and tests are free to
substitute lighter fakes.

Example:
    >>> from cricket_scoring.types import MatchSource
    >>> def claim(matches: MatchSource, match_id: int) -> bool:
    ...     return matches.set_published(match_id)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from cricket_scoring.data.models import (
        BattingCard,
        BowlingCard,
        FieldingCard,
        Match,
        PointsEvent,
    )
    from cricket_scoring.scoring.formula import ActiveFormula

# =============================================================================
# Type Aliases
# =============================================================================

ClubId = int
PlayerId = int
TeamId = int
SeasonId = int
MatchId = int
CardId = int

# Raw player name as captured on the scorecard -> resolved player id
PlayerMappings = dict[str, PlayerId]


# =============================================================================
# Enums
# =============================================================================


class Category(str, Enum):
    """Points event category."""

    BATTING = "batting"
    BOWLING = "bowling"
    FIELDING = "fielding"


class CardKind(str, Enum):
    """Kind of scorecard row."""

    BATTING = "batting"
    BOWLING = "bowling"
    FIELDING = "fielding"


# =============================================================================
# Protocols (card statistics)
# =============================================================================


class BattingLine(Protocol):
    """Anything carrying a batter's statistical line."""

    player_id: PlayerId | None
    runs: int | None
    fours: int | None
    sixes: int | None
    how_out: str | None
    is_out: bool | None


class BowlingLine(Protocol):
    """Anything carrying a bowler's statistical line."""

    player_id: PlayerId | None
    overs: float | None
    maidens: int | None
    runs_conceded: int | None
    wickets: int | None


class FieldingLine(Protocol):
    """Anything carrying a fielder's statistical line."""

    player_id: PlayerId | None
    catches: int | None
    stumpings: int | None
    run_outs: int | None
    drops: int | None
    misfields: int | None


# =============================================================================
# Protocols (collaborators)
# =============================================================================


class FormulaSource(Protocol):
    """Read access to the season's scoring formula."""

    def get_active_formula(self, season_id: SeasonId) -> ActiveFormula:
        """Return the active formula or raise NoActiveFormula."""
        ...


class CardSource(Protocol):
    """Scorecard rows of a match."""

    def list_unresolved_cards(
        self, match_id: MatchId
    ) -> list[BattingCard | BowlingCard]:
        """Batting and bowling cards without a player identity."""
        ...

    def assign_player(
        self, card: BattingCard | BowlingCard, player_id: PlayerId
    ) -> None:
        """Attach a resolved player identity to a card."""
        ...

    def list_cards_for_scoring(
        self, match_id: MatchId
    ) -> list[BattingCard | BowlingCard | FieldingCard]:
        """Every card of the match whose player_id is set."""
        ...


class SquadSource(Protocol):
    """Squad membership lookups."""

    def list_squad_player_ids(
        self, team_id: TeamId, season_id: SeasonId
    ) -> list[PlayerId]:
        """Players registered to the team for the season."""
        ...


class MatchSource(Protocol):
    """Match lookups and the publish gate."""

    def get_match(self, match_id: MatchId) -> Match:
        """Return the match or raise MatchNotFound."""
        ...

    def set_published(self, match_id: MatchId) -> bool:
        """Conditionally flip published; True only if this call flipped it."""
        ...


class PointsEventSink(Protocol):
    """Append-only store of points events."""

    def append_events(self, events: Sequence[PointsEvent]) -> None:
        """Persist new events."""
        ...

    def delete_events_for_players(
        self, match_id: MatchId, player_ids: Iterable[PlayerId]
    ) -> int:
        """Remove a match's events for the given players (recalculation only)."""
        ...


# =============================================================================
# Dataclasses
# =============================================================================


@dataclass(frozen=True)
class PointsEventDraft:
    """A points event computed but not yet persisted."""

    player_id: PlayerId | None
    category: Category
    event_type: str
    points: float
    metadata: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Exceptions
# =============================================================================


class ScoringEngineError(Exception):
    """Base exception for scoring engine errors."""


class PublishError(ScoringEngineError):
    """Publication could not complete. Nothing was changed."""


class AlreadyPublished(PublishError):
    """Match is already published. Terminal, do not retry."""

    def __init__(self, match_id: MatchId) -> None:
        super().__init__(f"Match {match_id} is already published")
        self.match_id = match_id


class NoActiveFormula(PublishError):
    """Season has no active scoring formula."""

    def __init__(self, season_id: SeasonId) -> None:
        super().__init__(
            f"No active scoring formula for season {season_id}; "
            "save a formula before publishing"
        )
        self.season_id = season_id


class MatchNotPublished(PublishError):
    """Recalculation requested for a match that was never published."""

    def __init__(self, match_id: MatchId) -> None:
        super().__init__(f"Match {match_id} has not been published")
        self.match_id = match_id


class NotFoundError(ScoringEngineError):
    """Requested entity does not exist."""


class MatchNotFound(NotFoundError):
    """Requested match not found."""


class TeamNotFound(NotFoundError):
    """Requested team not found."""


class SeasonNotFound(NotFoundError):
    """Requested season not found."""


class PlayerNotFound(NotFoundError):
    """Requested player not found."""


class InvalidNameFormat(ScoringEngineError):
    """Raw player name cannot be split into first and last name."""

    def __init__(self, raw_name: str) -> None:
        super().__init__(f"Invalid player name format: {raw_name!r}")
        self.raw_name = raw_name


class MergeConflict(ScoringEngineError):
    """Players cannot be merged."""


class FormulaError(ScoringEngineError):
    """Scoring formula is malformed."""
