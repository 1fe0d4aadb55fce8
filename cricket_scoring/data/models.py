"""SQLAlchemy ORM models for club, match and scoring data.

Models are organized into categories:
- Club Reference: Club, Player, Season, Team, SquadMember
- Match Data: Match, Innings, BattingCard, BowlingCard, FieldingCard
- Scoring: ScoringFormulaVersion, PointsEvent

A Match exclusively owns its innings, cards and points events; deleting the
match (or the team it belongs to) removes them.

Example:
    >>> from cricket_scoring.data.models import Match
    >>> from cricket_scoring.data.db import session_scope
    >>> with session_scope() as session:
    ...     match = session.get(Match, 1)
    ...     print(match.published, len(match.batting_cards))
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cricket_scoring.data.names import full_name, normalize_name
from cricket_scoring.data.schema import Base, TimestampMixin
from cricket_scoring.types import CardKind

# =============================================================================
# Club Reference Models
# =============================================================================


class Club(Base):
    """Club reference table. Scope for players, seasons, teams and matches."""

    __tablename__ = "clubs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    players: Mapped[list[Player]] = relationship(back_populates="club")
    seasons: Mapped[list[Season]] = relationship(back_populates="club")

    def __repr__(self) -> str:
        return f"<Club(id={self.id}, name={self.name!r})>"


class Player(TimestampMixin, Base):
    """Player identity record.

    Created by an admin or by the identity resolver during import. Players
    persist across seasons and are only removed by an explicit merge.

    Attributes:
        id: Auto-increment primary key.
        club_id: Owning club.
        first_name: Given name.
        last_name: Family name (may be empty for admin-created players).
        normalized_name: Lookup key, unique per club.
        email: Optional contact address.
        user_id: Optional link to an authenticated account.
    """

    __tablename__ = "players"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(
        ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(60), nullable=False)
    last_name: Mapped[str] = mapped_column(String(60), nullable=False, default="")
    normalized_name: Mapped[str] = mapped_column(String(121), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    club: Mapped[Club] = relationship(back_populates="players")

    __table_args__ = (
        UniqueConstraint("club_id", "normalized_name", name="uq_player_club_name"),
        Index("idx_players_club", "club_id"),
    )

    @property
    def full_name(self) -> str:
        return full_name(self.first_name, self.last_name)

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name={self.full_name!r})>"


def _set_normalized_name(mapper: Any, connection: Any, target: Player) -> None:
    """Keep the lookup key in step with the stored name."""
    target.normalized_name = normalize_name(full_name(target.first_name, target.last_name))


event.listen(Player, "before_insert", _set_normalized_name)
event.listen(Player, "before_update", _set_normalized_name)


class Season(TimestampMixin, Base):
    """Club-scoped season.

    At most one season per club has ``is_active`` set; see
    ``SeasonRepository.activate``.
    """

    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(
        ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date | None] = mapped_column(nullable=True)
    end_date: Mapped[date | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    club: Mapped[Club] = relationship(back_populates="seasons")
    teams: Mapped[list[Team]] = relationship(back_populates="season")

    __table_args__ = (Index("idx_seasons_club", "club_id"),)

    def __repr__(self) -> str:
        return f"<Season(id={self.id}, name={self.name!r}, active={self.is_active})>"


class Team(Base):
    """Team within a season. Deleting a team deletes its matches."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(
        ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    season_id: Mapped[int] = mapped_column(
        ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    season: Mapped[Season] = relationship(back_populates="teams")
    matches: Mapped[list[Match]] = relationship(
        back_populates="team", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name!r})>"


class SquadMember(Base):
    """Squad association: a player registered to a team for a season."""

    __tablename__ = "squad_members"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    season_id: Mapped[int] = mapped_column(
        ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("team_id", "season_id", "player_id", name="uq_squad_member"),
        Index("idx_squad_team_season", "team_id", "season_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<SquadMember(team_id={self.team_id}, season_id={self.season_id}, "
            f"player_id={self.player_id})>"
        )


# =============================================================================
# Match Models
# =============================================================================


class Match(TimestampMixin, Base):
    """Match played by one of the club's teams.

    ``published`` is a one-way gate: once set, scorecards are frozen and
    points are not computed again except through an explicit recalculation.
    """

    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(
        ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    season_id: Mapped[int] = mapped_column(
        ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False
    )
    match_date: Mapped[date | None] = mapped_column(nullable=True)
    opponent_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    venue: Mapped[str | None] = mapped_column(String(100), nullable=True)
    match_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    result: Mapped[str | None] = mapped_column(String(200), nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    team: Mapped[Team] = relationship(back_populates="matches")
    innings: Mapped[list[Innings]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="Innings.innings_number",
    )
    batting_cards: Mapped[list[BattingCard]] = relationship(
        back_populates="match", cascade="all, delete-orphan"
    )
    bowling_cards: Mapped[list[BowlingCard]] = relationship(
        back_populates="match", cascade="all, delete-orphan"
    )
    fielding_cards: Mapped[list[FieldingCard]] = relationship(
        back_populates="match", cascade="all, delete-orphan"
    )
    points_events: Mapped[list[PointsEvent]] = relationship(
        back_populates="match", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_matches_club", "club_id"),
        Index("idx_matches_season", "season_id"),
    )

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, opponent={self.opponent_name!r}, published={self.published})>"


class Innings(Base):
    """One innings of a match with its aggregate totals."""

    __tablename__ = "innings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    innings_number: Mapped[int] = mapped_column(nullable=False)
    batting_side: Mapped[str] = mapped_column(String(10), nullable=False)  # home / away
    total_runs: Mapped[int] = mapped_column(nullable=False, default=0)
    wickets: Mapped[int] = mapped_column(nullable=False, default=0)
    overs: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    extras: Mapped[int] = mapped_column(nullable=False, default=0)

    match: Mapped[Match] = relationship(back_populates="innings")

    __table_args__ = (
        UniqueConstraint("match_id", "innings_number", name="uq_innings_match_number"),
    )

    def __repr__(self) -> str:
        return f"<Innings(match_id={self.match_id}, number={self.innings_number})>"


class BattingCard(Base):
    """A batter's line in a match.

    ``derived`` rows are generated for squad players who did not bat.
    ``player_id`` is null until the raw ``player_name`` is resolved.
    """

    __tablename__ = "batting_cards"

    kind = CardKind.BATTING

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    innings_id: Mapped[int | None] = mapped_column(
        ForeignKey("innings.id", ondelete="CASCADE"), nullable=True
    )
    player_id: Mapped[int | None] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=True
    )
    player_name: Mapped[str] = mapped_column(String(121), nullable=False)
    position: Mapped[int | None] = mapped_column(nullable=True)
    how_out: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_out: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    runs: Mapped[int] = mapped_column(nullable=False, default=0)
    balls: Mapped[int] = mapped_column(nullable=False, default=0)
    fours: Mapped[int] = mapped_column(nullable=False, default=0)
    sixes: Mapped[int] = mapped_column(nullable=False, default=0)
    derived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    match: Mapped[Match] = relationship(back_populates="batting_cards")

    __table_args__ = (
        Index("idx_batting_cards_match", "match_id"),
        Index("idx_batting_cards_player", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<BattingCard(match_id={self.match_id}, player={self.player_name!r}, runs={self.runs})>"


class BowlingCard(Base):
    """A bowler's figures in a match."""

    __tablename__ = "bowling_cards"

    kind = CardKind.BOWLING

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    innings_id: Mapped[int | None] = mapped_column(
        ForeignKey("innings.id", ondelete="CASCADE"), nullable=True
    )
    player_id: Mapped[int | None] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=True
    )
    player_name: Mapped[str] = mapped_column(String(121), nullable=False)
    overs: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    maidens: Mapped[int] = mapped_column(nullable=False, default=0)
    runs_conceded: Mapped[int] = mapped_column(nullable=False, default=0)
    wickets: Mapped[int] = mapped_column(nullable=False, default=0)
    wides: Mapped[int] = mapped_column(nullable=False, default=0)
    no_balls: Mapped[int] = mapped_column(nullable=False, default=0)
    note: Mapped[str | None] = mapped_column(String(100), nullable=True)
    derived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    match: Mapped[Match] = relationship(back_populates="bowling_cards")

    __table_args__ = (
        Index("idx_bowling_cards_match", "match_id"),
        Index("idx_bowling_cards_player", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<BowlingCard(match_id={self.match_id}, player={self.player_name!r}, wickets={self.wickets})>"


class FieldingCard(Base):
    """A fielder's contributions in a match."""

    __tablename__ = "fielding_cards"

    kind = CardKind.FIELDING

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int | None] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=True
    )
    player_name: Mapped[str | None] = mapped_column(String(121), nullable=True)
    catches: Mapped[int] = mapped_column(nullable=False, default=0)
    stumpings: Mapped[int] = mapped_column(nullable=False, default=0)
    run_outs: Mapped[int] = mapped_column(nullable=False, default=0)
    drops: Mapped[int] = mapped_column(nullable=False, default=0)
    misfields: Mapped[int] = mapped_column(nullable=False, default=0)
    note: Mapped[str | None] = mapped_column(String(100), nullable=True)
    derived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    match: Mapped[Match] = relationship(back_populates="fielding_cards")

    __table_args__ = (
        Index("idx_fielding_cards_match", "match_id"),
        Index("idx_fielding_cards_player", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<FieldingCard(match_id={self.match_id}, player_id={self.player_id})>"


# =============================================================================
# Scoring Models
# =============================================================================


class ScoringFormulaVersion(TimestampMixin, Base):
    """Versioned scoring formula of a season.

    ``formula_json`` holds the serialized ``ScoringFormula``. Exactly one
    version per season is active.
    """

    __tablename__ = "scoring_formulas"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    season_id: Mapped[int] = mapped_column(
        ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False)
    formula_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    effective_from: Mapped[datetime] = mapped_column(default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("season_id", "version", name="uq_formula_season_version"),
        Index("idx_formulas_season_active", "season_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScoringFormulaVersion(season_id={self.season_id}, version={self.version}, "
            f"active={self.is_active})>"
        )


class PointsEvent(Base):
    """Immutable points record produced at publication.

    Events are appended once per (match, formula) and only ever deleted by an
    explicit recalculation or player merge, never updated.

    Attributes:
        category: batting, bowling or fielding.
        event_type: Rule that fired (runs, fours, duck, economy_bonus, ...).
        points: Points awarded (negative for penalties).
        details: Rule inputs, stored in the ``metadata`` column.
    """

    __tablename__ = "points_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    formula_id: Mapped[int | None] = mapped_column(
        ForeignKey("scoring_formulas.id", ondelete="SET NULL"), nullable=True
    )
    category: Mapped[str] = mapped_column(String(10), nullable=False)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(default=func.now(), nullable=False)

    match: Mapped[Match] = relationship(back_populates="points_events")

    __table_args__ = (
        Index("idx_points_events_match_player", "match_id", "player_id"),
        Index("idx_points_events_player", "player_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointsEvent(match_id={self.match_id}, player_id={self.player_id}, "
            f"{self.event_type}={self.points})>"
        )


Card = BattingCard | BowlingCard | FieldingCard
