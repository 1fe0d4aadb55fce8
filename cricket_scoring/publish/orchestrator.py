"""Match publication: claim, resolve, complete, score.

Publishing turns a draft match into scored history in one all-or-nothing
unit of work:

1. claim the match with a conditional write on ``published``;
2. attach player identities to unresolved batting/bowling cards;
3. insert derived rows for squad players without cards;
4. load the season's active formula and append a points event for every
   rule each identified card triggers.

All four steps run inside a SAVEPOINT of the caller's transaction. If any
step raises, the savepoint is rolled back (``published`` is false again and
no cards, rows or events were changed) and the error propagates.

Example:
    >>> from cricket_scoring.data.db import session_scope
    >>> with session_scope() as session:
    ...     result = publish_match(session, 12, {"J Smith": 4}, [4, 5, 6])
    ...     print(result.events_created, result.total_points)
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from cricket_scoring.config import Settings, get_settings
from cricket_scoring.data.models import Card, Innings, Match, PointsEvent
from cricket_scoring.data.repositories import (
    CardRepository,
    FormulaStore,
    MatchRepository,
    PointsEventRepository,
)
from cricket_scoring.logging import SUCCESS, WARN, get_logger
from cricket_scoring.publish.identity import IdentityResolver
from cricket_scoring.publish.zero_rows import ZeroRowCompleter, ZeroRowResult
from cricket_scoring.scoring.calculator import PointsCalculator
from cricket_scoring.scoring.formula import ActiveFormula
from cricket_scoring.types import (
    AlreadyPublished,
    CardKind,
    InvalidNameFormat,
    MatchId,
    MatchNotPublished,
    PlayerId,
    PlayerMappings,
)

logger = get_logger(__name__)


@dataclass
class PublishResult:
    """Outcome of a successful publication.

    Attributes:
        match_id: Published match.
        formula_id: Stored formula version the events were computed with.
        formula_version: Version number of that formula.
        cards_mapped: Cards that received a player id during publication.
        unresolved: Raw names of cards left without a player identity.
        invalid_names: Raw names auto-resolution could not split.
        zero_rows: Derived rows inserted by zero-row completion.
        events_created: Points events appended.
        player_points: Total points per player for this match.
    """

    match_id: MatchId
    formula_id: int
    formula_version: int
    cards_mapped: int = 0
    unresolved: list[str] = field(default_factory=list)
    invalid_names: list[str] = field(default_factory=list)
    zero_rows: ZeroRowResult | None = None
    events_created: int = 0
    player_points: dict[PlayerId, float] = field(default_factory=dict)

    @property
    def total_points(self) -> float:
        return sum(self.player_points.values())

    @property
    def zero_row_errors(self) -> dict[str, str]:
        """Failure message per card kind whose derived rows were not added."""
        if self.zero_rows is None:
            return {}
        return {kind.value: error for kind, error in self.zero_rows.errors.items()}


@dataclass
class RecalculationResult:
    """Outcome of recomputing a published match's points."""

    match_id: MatchId
    formula_id: int
    formula_version: int
    events_deleted: int = 0
    events_created: int = 0
    player_points: dict[PlayerId, float] = field(default_factory=dict)


class PublicationOrchestrator:
    """Publishes matches and recomputes points of published ones.

    Attributes:
        session: Session whose transaction the work joins.
        settings: Settings for zero-row completion.
    """

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.matches = MatchRepository(session)
        self.cards = CardRepository(session)
        self.formulas = FormulaStore(session)
        self.events = PointsEventRepository(session)
        self.completer = ZeroRowCompleter(session, self.settings)

    def publish(
        self,
        match_id: MatchId,
        player_mappings: PlayerMappings | None = None,
        squad_player_ids: list[PlayerId] | None = None,
        auto_resolve: bool = False,
    ) -> PublishResult:
        """Publish a draft match and compute its points.

        Args:
            match_id: Match to publish.
            player_mappings: Raw scorecard name -> player id for cards the
                admin resolved by hand.
            squad_player_ids: Players who should have a row of every kind.
                Defaults to the team's registered squad; an empty list skips
                zero-row completion.
            auto_resolve: Resolve remaining home-side names through the
                identity resolver, creating players as needed.

        Returns:
            Publication summary.

        Raises:
            MatchNotFound: If no such match exists.
            AlreadyPublished: If the match is (or concurrently became)
                published.
            NoActiveFormula: If the season has no active formula.
        """
        match = self.matches.get_match(match_id)
        if match.published:
            raise AlreadyPublished(match_id)

        with self.session.begin_nested():
            if not self.matches.set_published(match_id):
                raise AlreadyPublished(match_id)
            logger.debug(f"Claimed match {match_id} for publication")

            cards_mapped, unresolved, invalid = self._apply_mappings(
                match, player_mappings or {}, auto_resolve
            )
            zero_rows = self.completer.complete(match, squad_player_ids)
            if zero_rows.errors:
                logger.warning(
                    f"{WARN} Match {match_id}: zero-row completion incomplete for "
                    f"{', '.join(kind.value for kind in zero_rows.errors)}"
                )

            active = self.formulas.get_active_formula(match.season_id)
            events = self._score(match_id, active, self.cards.list_cards_for_scoring(match_id))
            self.events.append_events(events)

        result = PublishResult(
            match_id=match_id,
            formula_id=active.id,
            formula_version=active.version,
            cards_mapped=cards_mapped,
            unresolved=unresolved,
            invalid_names=invalid,
            zero_rows=zero_rows,
            events_created=len(events),
            player_points=_player_totals(events),
        )
        logger.info(
            f"{SUCCESS} Published match {match_id}: {result.events_created} events, "
            f"{result.total_points:g} points, formula v{active.version}"
        )
        if unresolved:
            logger.warning(
                f"{WARN} Match {match_id}: {len(unresolved)} cards left without a player"
            )
        return result

    def recalculate(
        self, match_id: MatchId, player_ids: Iterable[PlayerId] | None = None
    ) -> RecalculationResult:
        """Replace a published match's points with the current formula's.

        Args:
            match_id: Published match.
            player_ids: Restrict to these players. Defaults to every player
                with a card or an existing event in the match.

        Raises:
            MatchNotFound: If no such match exists.
            MatchNotPublished: If the match is still a draft.
            NoActiveFormula: If the season has no active formula.
        """
        match = self.matches.get_match(match_id)
        if not match.published:
            raise MatchNotPublished(match_id)

        with self.session.begin_nested():
            active = self.formulas.get_active_formula(match.season_id)
            cards = self.cards.list_cards_for_scoring(match_id)
            if player_ids is None:
                affected = {card.player_id for card in cards}
                affected.update(event.player_id for event in self.events.list_for_match(match_id))
            else:
                affected = set(player_ids)
                cards = [card for card in cards if card.player_id in affected]

            deleted = self.events.delete_events_for_players(match_id, affected)
            events = self._score(match_id, active, cards)
            self.events.append_events(events)

        logger.info(
            f"Recalculated match {match_id} with formula v{active.version}: "
            f"{deleted} events replaced by {len(events)}"
        )
        return RecalculationResult(
            match_id=match_id,
            formula_id=active.id,
            formula_version=active.version,
            events_deleted=deleted,
            events_created=len(events),
            player_points=_player_totals(events),
        )

    def _apply_mappings(
        self, match: Match, player_mappings: PlayerMappings, auto_resolve: bool
    ) -> tuple[int, list[str], list[str]]:
        resolver = IdentityResolver(self.session, match.club_id, match.team_id, match.season_id)
        home_innings = self._home_batting_innings(match)
        mapped = 0
        unresolved: list[str] = []
        invalid: list[str] = []

        for card in self.cards.list_unresolved_cards(match.id):
            player_id = player_mappings.get(card.player_name)
            if player_id is None and auto_resolve and _is_home_card(card, home_innings):
                try:
                    player_id = resolver.resolve(card.player_name)
                except InvalidNameFormat:
                    invalid.append(card.player_name)
            if player_id is None:
                unresolved.append(card.player_name)
                continue
            self.cards.assign_player(card, player_id)
            mapped += 1
        return mapped, unresolved, invalid

    def _home_batting_innings(self, match: Match) -> set[int]:
        rows = (
            self.session.query(Innings.id)
            .filter(Innings.match_id == match.id, Innings.batting_side == "home")
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def _score(match_id: MatchId, active: ActiveFormula, cards: list[Card]) -> list[PointsEvent]:
        drafts = PointsCalculator(active.formula).calculate_all(cards)
        return [
            PointsEvent(
                match_id=match_id,
                player_id=draft.player_id,
                formula_id=active.id,
                category=draft.category.value,
                event_type=draft.event_type,
                points=draft.points,
                details=dict(draft.metadata),
            )
            for draft in drafts
        ]


def _is_home_card(card: Card, home_batting_innings: set[int]) -> bool:
    """Home batters bat in home innings, home bowlers bowl in away innings."""
    innings_id = getattr(card, "innings_id", None)
    if innings_id is None:
        return True
    if card.kind is CardKind.BATTING:
        return innings_id in home_batting_innings
    return innings_id not in home_batting_innings


def _player_totals(events: Iterable[PointsEvent]) -> dict[PlayerId, float]:
    totals: dict[PlayerId, float] = defaultdict(float)
    for event in events:
        totals[event.player_id] += event.points
    return dict(totals)


def publish_match(
    session: Session,
    match_id: MatchId,
    player_mappings: PlayerMappings | None = None,
    squad_player_ids: list[PlayerId] | None = None,
    settings: Settings | None = None,
) -> PublishResult:
    """Publish a match with a one-off orchestrator.

    See ``PublicationOrchestrator.publish``.
    """
    return PublicationOrchestrator(session, settings).publish(
        match_id, player_mappings, squad_player_ids
    )
