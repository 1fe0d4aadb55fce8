"""Zero-row completion for squad players without scorecard lines.

Every squad player should appear in each of a match's batting, bowling and
fielding tables. Players the scorecard never mentions get a *derived* row:
all numbers zero, a "did not ..." marker, and for batting a position after
every real entry. Existing rows, derived or not, are never touched, so the
completer can run any number of times.

Example:
    >>> completer = ZeroRowCompleter(session)
    >>> result = completer.complete(match)
    >>> result.inserted
    {<CardKind.BATTING: 'batting'>: 3, <CardKind.BOWLING: 'bowling'>: 6, ...}
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cricket_scoring.config import Settings, get_settings
from cricket_scoring.data.models import BattingCard, BowlingCard, FieldingCard, Match, Player
from cricket_scoring.data.repositories import CardRepository, MatchRepository, SquadRepository
from cricket_scoring.logging import FAIL, SUCCESS, WARN, get_logger
from cricket_scoring.types import CardKind, ClubId, MatchId, PlayerId

logger = get_logger(__name__)


@dataclass
class ZeroRowResult:
    """Derived rows inserted for one match.

    Attributes:
        match_id: Match completed.
        inserted: Rows inserted per card kind.
        errors: Failure message per card kind that could not be completed.
    """

    match_id: MatchId
    inserted: dict[CardKind, int] = field(default_factory=dict)
    errors: dict[CardKind, str] = field(default_factory=dict)

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    @property
    def success(self) -> bool:
        return not self.errors


class ZeroRowCompleter:
    """Insert derived rows for squad players missing from a match."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.cards = CardRepository(session)
        self.squads = SquadRepository(session)

    def complete(self, match: Match, player_ids: list[PlayerId] | None = None) -> ZeroRowResult:
        """Fill batting, bowling and fielding gaps for the match's squad.

        Args:
            match: Match to complete.
            player_ids: Squad to complete for. Defaults to the players
                registered to the match's team for its season.

        Returns:
            Per-kind insert counts and errors. A failure in one kind is
            rolled back to its savepoint and does not stop the others.
        """
        if player_ids is None:
            player_ids = self.squads.list_squad_player_ids(match.team_id, match.season_id)
        squad = list(dict.fromkeys(player_ids))
        result = ZeroRowResult(match_id=match.id)
        if not squad:
            logger.debug(f"Match {match.id}: empty squad, nothing to complete")
            return result

        names = self._player_names(squad)
        innings = self.cards.first_innings(match.id)
        innings_id = innings.id if innings is not None else None

        for kind in CardKind:
            existing = self.cards.existing_player_ids(match.id, kind)
            missing = [player_id for player_id in squad if player_id not in existing]
            if not missing:
                result.inserted[kind] = 0
                continue
            rows = [
                self._derived_row(kind, match.id, innings_id, player_id, names.get(player_id, ""))
                for player_id in missing
            ]
            try:
                with self.session.begin_nested():
                    self.session.add_all(rows)
            except SQLAlchemyError as exc:
                logger.error(f"{FAIL} Match {match.id}: {kind.value} completion failed: {exc}")
                result.errors[kind] = str(exc)
                continue
            result.inserted[kind] = len(rows)

        logger.debug(f"Match {match.id}: inserted {result.total_inserted} derived rows")
        return result

    def _player_names(self, player_ids: list[PlayerId]) -> dict[PlayerId, str]:
        players = self.session.query(Player).filter(Player.id.in_(player_ids)).all()
        return {player.id: player.full_name for player in players}

    def _derived_row(
        self,
        kind: CardKind,
        match_id: MatchId,
        innings_id: int | None,
        player_id: PlayerId,
        player_name: str,
    ) -> BattingCard | BowlingCard | FieldingCard:
        if kind is CardKind.BATTING:
            return BattingCard(
                match_id=match_id,
                innings_id=innings_id,
                player_id=player_id,
                player_name=player_name,
                position=self.settings.derived_batting_position,
                how_out=self.settings.did_not_bat_marker,
                is_out=False,
                runs=0,
                balls=0,
                fours=0,
                sixes=0,
                derived=True,
            )
        if kind is CardKind.BOWLING:
            return BowlingCard(
                match_id=match_id,
                innings_id=innings_id,
                player_id=player_id,
                player_name=player_name,
                overs=0.0,
                maidens=0,
                runs_conceded=0,
                wickets=0,
                wides=0,
                no_balls=0,
                note=self.settings.did_not_bowl_marker,
                derived=True,
            )
        return FieldingCard(
            match_id=match_id,
            player_id=player_id,
            player_name=player_name,
            catches=0,
            stumpings=0,
            run_outs=0,
            drops=0,
            misfields=0,
            note=self.settings.did_not_field_marker,
            derived=True,
        )


# =============================================================================
# Batch backfill
# =============================================================================


class BackfillStatus(Enum):
    """Final state of a backfill run."""

    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    CANCELLED = "cancelled"


@dataclass
class MatchOutcome:
    """Backfill outcome of a single match."""

    match_id: MatchId
    inserted: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class BackfillReport:
    """Results from a backfill run.

    Attributes:
        status: Final run status.
        outcomes: One entry per match attempted, in processing order.
        duration_seconds: Total execution time in seconds.
    """

    status: BackfillStatus
    outcomes: list[MatchOutcome] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def rows_inserted(self) -> int:
        return sum(outcome.inserted for outcome in self.outcomes)


class ZeroRowBackfill:
    """Run zero-row completion over every match of a club.

    Each match is completed inside its own savepoint, so one failing match
    is recorded and the rest of the batch carries on. The run can be
    cancelled between matches by setting ``cancel_event``.
    """

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self.session = session
        self.completer = ZeroRowCompleter(session, settings)
        self.matches = MatchRepository(session)

    def run(
        self, club_id: ClubId, cancel_event: threading.Event | None = None
    ) -> BackfillReport:
        """Complete every match of the club.

        Args:
            club_id: Club whose matches are processed.
            cancel_event: When set, the run stops before the next match.

        Returns:
            Report with a per-match outcome list.
        """
        start = time.time()
        report = BackfillReport(status=BackfillStatus.COMPLETED)
        matches = self.matches.list_for_club(club_id)
        logger.info(f"Backfilling zero rows for {len(matches)} matches of club {club_id}")

        for match in matches:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    f"{WARN} Backfill cancelled after {len(report.outcomes)} of "
                    f"{len(matches)} matches"
                )
                report.status = BackfillStatus.CANCELLED
                break
            report.outcomes.append(self._complete_match(match))

        if report.status is BackfillStatus.COMPLETED and report.failed:
            report.status = BackfillStatus.COMPLETED_WITH_ERRORS
        report.duration_seconds = time.time() - start

        logger.info(
            f"{SUCCESS if not report.failed else WARN} Backfill {report.status.value}: "
            f"{report.processed} matches ok, {report.failed} failed, "
            f"{report.rows_inserted} rows inserted"
        )
        return report

    def _complete_match(self, match: Match) -> MatchOutcome:
        match_id = match.id
        try:
            with self.session.begin_nested():
                result = self.completer.complete(match)
        except SQLAlchemyError as exc:
            logger.error(f"{FAIL} Match {match_id}: backfill failed: {exc}")
            return MatchOutcome(match_id=match_id, error=str(exc))

        if result.errors:
            message = "; ".join(f"{kind.value}: {error}" for kind, error in result.errors.items())
            return MatchOutcome(match_id=match_id, inserted=result.total_inserted, error=message)
        return MatchOutcome(match_id=match_id, inserted=result.total_inserted)
