"""SQLAlchemy repositories behind the publication pipeline.

Each repository wraps a session it does not own: callers decide transaction
boundaries (usually through ``session_scope()``), repositories only add,
query and flush. Together they satisfy the collaborator protocols declared
in ``cricket_scoring.types``.

Example:
    >>> from cricket_scoring.data.db import session_scope
    >>> from cricket_scoring.data.repositories import FormulaStore
    >>> with session_scope() as session:
    ...     active = FormulaStore(session).get_active_formula(season_id=3)
    ...     print(active.version, active.formula.batting.run)
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from cricket_scoring.data.models import (
    BattingCard,
    BowlingCard,
    Card,
    FieldingCard,
    Innings,
    Match,
    Player,
    PointsEvent,
    ScoringFormulaVersion,
    Season,
    SquadMember,
    Team,
)
from cricket_scoring.logging import get_logger
from cricket_scoring.scoring.formula import ActiveFormula, ScoringFormula
from cricket_scoring.types import (
    CardKind,
    MatchId,
    MatchNotFound,
    NoActiveFormula,
    PlayerId,
    PlayerNotFound,
    SeasonId,
    SeasonNotFound,
    TeamId,
    TeamNotFound,
)

logger = get_logger(__name__)

CARD_MODELS: dict[CardKind, type[BattingCard] | type[BowlingCard] | type[FieldingCard]] = {
    CardKind.BATTING: BattingCard,
    CardKind.BOWLING: BowlingCard,
    CardKind.FIELDING: FieldingCard,
}


class FormulaStore:
    """Versioned scoring formulas, one active version per season."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_active_formula(self, season_id: SeasonId) -> ActiveFormula:
        """Load and parse the season's active formula.

        Raises:
            NoActiveFormula: If the season has no active version.
            FormulaError: If the stored JSON is not a valid formula.
        """
        row = (
            self.session.query(ScoringFormulaVersion)
            .filter(
                ScoringFormulaVersion.season_id == season_id,
                ScoringFormulaVersion.is_active.is_(True),
            )
            .order_by(ScoringFormulaVersion.version.desc())
            .first()
        )
        if row is None:
            raise NoActiveFormula(season_id)
        return ActiveFormula(
            id=row.id,
            season_id=row.season_id,
            version=row.version,
            name=row.name,
            formula=ScoringFormula.from_json(row.formula_json),
        )

    def save_formula(
        self, season_id: SeasonId, name: str, formula: ScoringFormula
    ) -> ScoringFormulaVersion:
        """Store a new active version and deactivate every other one.

        Raises:
            SeasonNotFound: If the season does not exist.
        """
        if self.session.get(Season, season_id) is None:
            raise SeasonNotFound(f"Season {season_id} not found")

        latest = (
            self.session.query(func.max(ScoringFormulaVersion.version))
            .filter(ScoringFormulaVersion.season_id == season_id)
            .scalar()
        )
        self.session.query(ScoringFormulaVersion).filter(
            ScoringFormulaVersion.season_id == season_id,
            ScoringFormulaVersion.is_active.is_(True),
        ).update({ScoringFormulaVersion.is_active: False}, synchronize_session="fetch")

        row = ScoringFormulaVersion(
            season_id=season_id,
            name=name,
            version=(latest or 0) + 1,
            formula_json=formula.to_json(),
            is_active=True,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(f"Saved formula {name!r} v{row.version} for season {season_id}")
        return row

    def list_versions(self, season_id: SeasonId) -> list[ScoringFormulaVersion]:
        """All versions of the season, newest first."""
        return (
            self.session.query(ScoringFormulaVersion)
            .filter(ScoringFormulaVersion.season_id == season_id)
            .order_by(ScoringFormulaVersion.version.desc())
            .all()
        )


class CardRepository:
    """Batting, bowling and fielding rows of matches."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_unresolved_cards(self, match_id: MatchId) -> list[BattingCard | BowlingCard]:
        batting = (
            self.session.query(BattingCard)
            .filter(BattingCard.match_id == match_id, BattingCard.player_id.is_(None))
            .order_by(BattingCard.id)
            .all()
        )
        bowling = (
            self.session.query(BowlingCard)
            .filter(BowlingCard.match_id == match_id, BowlingCard.player_id.is_(None))
            .order_by(BowlingCard.id)
            .all()
        )
        return [*batting, *bowling]

    def assign_player(self, card: Card, player_id: PlayerId) -> None:
        card.player_id = player_id
        self.session.flush([card])

    def list_cards_for_scoring(self, match_id: MatchId) -> list[Card]:
        """Every card of the match with a resolved player, batting first."""
        cards: list[Card] = []
        for model in CARD_MODELS.values():
            cards.extend(
                self.session.query(model)
                .filter(model.match_id == match_id, model.player_id.is_not(None))
                .order_by(model.id)
                .all()
            )
        return cards

    def existing_player_ids(self, match_id: MatchId, kind: CardKind) -> set[PlayerId]:
        """Players that already have a card of this kind in the match."""
        model = CARD_MODELS[kind]
        rows = (
            self.session.query(model.player_id)
            .filter(model.match_id == match_id, model.player_id.is_not(None))
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def first_innings(self, match_id: MatchId) -> Innings | None:
        return (
            self.session.query(Innings)
            .filter(Innings.match_id == match_id)
            .order_by(Innings.innings_number)
            .first()
        )

    def repoint_player(self, from_player_id: PlayerId, to_player_id: PlayerId) -> int:
        """Move every card of one player to another. Returns rows changed."""
        changed = 0
        for model in CARD_MODELS.values():
            changed += (
                self.session.query(model)
                .filter(model.player_id == from_player_id)
                .update({model.player_id: to_player_id}, synchronize_session="fetch")
            )
        return changed

    def match_ids_for_player(self, player_id: PlayerId) -> set[MatchId]:
        match_ids: set[MatchId] = set()
        for model in CARD_MODELS.values():
            rows = (
                self.session.query(model.match_id)
                .filter(model.player_id == player_id)
                .distinct()
                .all()
            )
            match_ids.update(row[0] for row in rows)
        return match_ids


class SquadRepository:
    """Team squads per season."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_squad_player_ids(self, team_id: TeamId, season_id: SeasonId) -> list[PlayerId]:
        rows = (
            self.session.query(SquadMember.player_id)
            .filter(SquadMember.team_id == team_id, SquadMember.season_id == season_id)
            .order_by(SquadMember.id)
            .all()
        )
        return [row[0] for row in rows]

    def add(self, team_id: TeamId, season_id: SeasonId, player_id: PlayerId) -> bool:
        """Register a player to the squad. Returns False if already a member."""
        exists = (
            self.session.query(SquadMember.id)
            .filter_by(team_id=team_id, season_id=season_id, player_id=player_id)
            .first()
        )
        if exists is not None:
            return False
        self.session.add(SquadMember(team_id=team_id, season_id=season_id, player_id=player_id))
        self.session.flush()
        return True


class MatchRepository:
    """Match lookups and the publish gate."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_match(self, match_id: MatchId) -> Match:
        """
        Raises:
            MatchNotFound: If no such match exists.
        """
        match = self.session.get(Match, match_id)
        if match is None:
            raise MatchNotFound(f"Match {match_id} not found")
        return match

    def set_published(self, match_id: MatchId) -> bool:
        """Flip ``published`` only if it is still false.

        The predicate carries the expected state, so of two concurrent calls
        exactly one sees a changed row.
        """
        changed = (
            self.session.query(Match)
            .filter(Match.id == match_id, Match.published.is_(False))
            .update({Match.published: True}, synchronize_session="fetch")
        )
        return changed == 1

    def list_for_club(self, club_id: int) -> list[Match]:
        return (
            self.session.query(Match)
            .filter(Match.club_id == club_id)
            .order_by(Match.match_date, Match.id)
            .all()
        )

    def published_match_ids(self, match_ids: Iterable[MatchId]) -> list[MatchId]:
        ids = list(match_ids)
        if not ids:
            return []
        rows = (
            self.session.query(Match.id)
            .filter(Match.id.in_(ids), Match.published.is_(True))
            .order_by(Match.id)
            .all()
        )
        return [row[0] for row in rows]


class SeasonRepository:
    """Seasons and the one-active-season-per-club rule."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, season_id: SeasonId) -> Season:
        season = self.session.get(Season, season_id)
        if season is None:
            raise SeasonNotFound(f"Season {season_id} not found")
        return season

    def activate(self, season_id: SeasonId) -> Season:
        """Make this the club's only active season."""
        season = self.get(season_id)
        self.session.query(Season).filter(
            Season.club_id == season.club_id, Season.id != season_id
        ).update({Season.is_active: False}, synchronize_session="fetch")
        season.is_active = True
        self.session.flush()
        logger.info(f"Activated season {season.name!r} for club {season.club_id}")
        return season

    def get_active(self, club_id: int) -> Season | None:
        return (
            self.session.query(Season)
            .filter(Season.club_id == club_id, Season.is_active.is_(True))
            .first()
        )


class TeamRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, team_id: TeamId) -> Team:
        team = self.session.get(Team, team_id)
        if team is None:
            raise TeamNotFound(f"Team {team_id} not found")
        return team


class PlayerRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, player_id: PlayerId) -> Player:
        player = self.session.get(Player, player_id)
        if player is None:
            raise PlayerNotFound(f"Player {player_id} not found")
        return player

    def list_for_club(self, club_id: int) -> list[Player]:
        return (
            self.session.query(Player)
            .filter(Player.club_id == club_id)
            .order_by(Player.id)
            .all()
        )


class PointsEventRepository:
    """Append-only points event store."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def append_events(self, events: Sequence[PointsEvent]) -> None:
        self.session.add_all(events)
        self.session.flush()

    def delete_events_for_players(
        self, match_id: MatchId, player_ids: Iterable[PlayerId]
    ) -> int:
        ids = list(player_ids)
        if not ids:
            return 0
        return (
            self.session.query(PointsEvent)
            .filter(PointsEvent.match_id == match_id, PointsEvent.player_id.in_(ids))
            .delete(synchronize_session="fetch")
        )

    def list_for_match(self, match_id: MatchId) -> list[PointsEvent]:
        return (
            self.session.query(PointsEvent)
            .filter(PointsEvent.match_id == match_id)
            .order_by(PointsEvent.id)
            .all()
        )
