"""Tests for match publication and recalculation."""
from __future__ import annotations

import threading

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from cricket_scoring.data.models import (
    BattingCard,
    BowlingCard,
    Club,
    Innings,
    Match,
    Player,
    PointsEvent,
    Season,
    Team,
)
from cricket_scoring.data.repositories import FormulaStore
from cricket_scoring.publish.orchestrator import PublicationOrchestrator, publish_match
from cricket_scoring.scoring.formula import DEFAULT_FORMULA, ScoringFormula
from cricket_scoring.types import (
    AlreadyPublished,
    MatchNotFound,
    MatchNotPublished,
    NoActiveFormula,
)


@pytest.fixture
def scorecard(match: Match, squad: list[Player], add_batting, add_bowling) -> Match:
    """Cook (unresolved) made 52, Stokes took 3 for 24, one opposition bowler."""
    add_batting(match, "A Cook", runs=52, fours=6, sixes=1, is_out=True, position=1)
    add_bowling(match, "Ben Stokes", squad[1].id, overs=8.0, runs_conceded=24, wickets=3)
    add_bowling(match, "Opposition Quick", side="home", overs=10.0, runs_conceded=40)
    return match


def _events(session: Session, match: Match) -> list[PointsEvent]:
    return session.query(PointsEvent).filter_by(match_id=match.id).order_by(PointsEvent.id).all()


class TestPublish:
    """Tests for PublicationOrchestrator.publish()."""

    def test_publishes_and_scores(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        cook, stokes = squad[0], squad[1]

        result = PublicationOrchestrator(db_session).publish(
            scorecard.id, {"A Cook": cook.id}, None
        )

        assert scorecard.published is True
        assert result.cards_mapped == 1
        assert result.unresolved == ["Opposition Quick"]
        assert result.formula_id == formula.id
        assert result.player_points == {cook.id: 70, stokes.id: 65}
        assert result.total_points == 135
        assert result.events_created == 7

        events = _events(db_session, scorecard)
        assert {event.formula_id for event in events} == {formula.id}
        assert [(event.event_type, event.points) for event in events if event.player_id == cook.id] == [
            ("runs", 52),
            ("fours", 6),
            ("sixes", 2),
            ("milestone_50", 10),
        ]
        stokes_events = {event.event_type: event for event in events if event.player_id == stokes.id}
        assert stokes_events["economy_bonus"].details["economy"] == 3.0
        assert set(stokes_events) == {"wickets", "milestone_3_wickets", "economy_bonus"}

    def test_zero_rows_added_for_registered_squad(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        result = PublicationOrchestrator(db_session).publish(
            scorecard.id, {"A Cook": squad[0].id}, None
        )

        assert result.zero_rows is not None
        assert result.zero_rows.inserted["batting"] == 10
        batting_ids = {
            card.player_id for card in db_session.query(BattingCard).filter_by(match_id=scorecard.id)
        }
        assert batting_ids == {player.id for player in squad}

    def test_empty_squad_list_skips_zero_rows(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        result = PublicationOrchestrator(db_session).publish(scorecard.id, {}, [])

        assert result.zero_rows.total_inserted == 0
        assert db_session.query(BattingCard).filter_by(derived=True).count() == 0

    def test_zero_row_failures_reported(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        """An unknown squad id blocks derived rows but not the publication."""
        result = PublicationOrchestrator(db_session).publish(scorecard.id, {}, [999_999])

        assert scorecard.published is True
        assert set(result.zero_row_errors) == {"batting", "bowling", "fielding"}
        assert result.player_points == {squad[1].id: 65}

    def test_no_zero_row_errors_on_clean_publish(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        result = PublicationOrchestrator(db_session).publish(scorecard.id, {}, None)

        assert result.zero_row_errors == {}

    def test_unmapped_cards_left_null(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        result = PublicationOrchestrator(db_session).publish(scorecard.id, {}, [])

        cook_card = db_session.query(BattingCard).filter_by(player_name="A Cook").one()
        assert cook_card.player_id is None
        assert sorted(result.unresolved) == ["A Cook", "Opposition Quick"]
        assert result.player_points == {squad[1].id: 65}

    def test_auto_resolve_only_home_side(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        result = PublicationOrchestrator(db_session).publish(
            scorecard.id, {}, [], auto_resolve=True
        )

        cook_card = db_session.query(BattingCard).filter_by(player_name="A Cook").one()
        opposition = db_session.query(BowlingCard).filter_by(player_name="Opposition Quick").one()
        assert cook_card.player_id is not None
        assert db_session.get(Player, cook_card.player_id).full_name == "A Cook"
        assert opposition.player_id is None
        assert result.unresolved == ["Opposition Quick"]

    def test_already_published(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        orchestrator = PublicationOrchestrator(db_session)
        orchestrator.publish(scorecard.id, {"A Cook": squad[0].id}, None)
        count = len(_events(db_session, scorecard))

        with pytest.raises(AlreadyPublished) as exc_info:
            orchestrator.publish(scorecard.id, {"A Cook": squad[0].id}, None)

        assert exc_info.value.match_id == scorecard.id
        assert len(_events(db_session, scorecard)) == count

    def test_missing_match(self, db_session: Session, formula) -> None:
        with pytest.raises(MatchNotFound):
            PublicationOrchestrator(db_session).publish(9999, {}, None)

    def test_no_active_formula_changes_nothing(
        self, db_session: Session, scorecard: Match, squad: list[Player]
    ) -> None:
        with pytest.raises(NoActiveFormula):
            PublicationOrchestrator(db_session).publish(scorecard.id, {"A Cook": squad[0].id}, None)

        db_session.expire_all()
        match = db_session.get(Match, scorecard.id)
        assert match.published is False
        assert _events(db_session, match) == []
        assert db_session.query(BattingCard).filter_by(player_name="A Cook").one().player_id is None
        assert db_session.query(BattingCard).filter_by(derived=True).count() == 0

    def test_retry_after_failure_succeeds(
        self, db_session: Session, scorecard: Match, squad: list[Player], season: Season
    ) -> None:
        orchestrator = PublicationOrchestrator(db_session)
        with pytest.raises(NoActiveFormula):
            orchestrator.publish(scorecard.id, {"A Cook": squad[0].id}, None)

        FormulaStore(db_session).save_formula(season.id, "Standard", DEFAULT_FORMULA)
        result = orchestrator.publish(scorecard.id, {"A Cook": squad[0].id}, None)

        assert result.total_points == 135

    def test_publish_match_function(
        self, db_session: Session, scorecard: Match, squad: list[Player], formula
    ) -> None:
        result = publish_match(db_session, scorecard.id, {"A Cook": squad[0].id}, None)

        assert result.match_id == scorecard.id
        assert scorecard.published is True


def _seed_match(engine: Engine) -> int:
    """Commit a one-card match and an active formula, visible to every session."""
    with Session(engine) as setup:
        club = Club(name="Brookweald CC")
        setup.add(club)
        setup.flush()
        season = Season(club_id=club.id, name="2024", is_active=True)
        setup.add(season)
        setup.flush()
        team = Team(club_id=club.id, season_id=season.id, name="1st XI")
        setup.add(team)
        setup.flush()
        match = Match(club_id=club.id, team_id=team.id, season_id=season.id)
        setup.add(match)
        setup.flush()
        setup.add(Innings(match_id=match.id, innings_number=1, batting_side="home"))
        player = Player(club_id=club.id, first_name="Joe", last_name="Root")
        setup.add(player)
        setup.flush()
        setup.add(
            BattingCard(match_id=match.id, player_id=player.id, player_name="Joe Root", runs=30)
        )
        FormulaStore(setup).save_formula(season.id, "Standard", DEFAULT_FORMULA)
        setup.commit()
        return match.id


class TestConcurrentPublish:
    """Two sessions race to publish the same match."""

    def test_simultaneous_publish_scores_once(self, engine: Engine, test_settings) -> None:
        match_id = _seed_match(engine)
        start = threading.Barrier(2, timeout=10)
        outcomes: list[str] = []

        def publish_from_thread() -> None:
            with Session(engine) as session:
                start.wait()
                try:
                    publish_match(session, match_id, {}, [])
                    session.commit()
                    outcomes.append("published")
                except AlreadyPublished:
                    session.rollback()
                    outcomes.append("already published")

        workers = [threading.Thread(target=publish_from_thread) for _ in range(2)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=30)

        assert sorted(outcomes) == ["already published", "published"]
        with Session(engine) as check:
            assert check.query(PointsEvent).filter_by(match_id=match_id).count() == 1
            assert check.get(Match, match_id).published is True

    def test_stale_session_gets_already_published(self, engine: Engine, test_settings) -> None:
        match_id = _seed_match(engine)

        with Session(engine, expire_on_commit=False) as first, Session(
            engine, expire_on_commit=False
        ) as second:
            # Both sessions see an unpublished match
            assert second.get(Match, match_id).published is False
            second.commit()

            publish_match(first, match_id, {}, [])
            first.commit()

            # second still holds its unpublished copy of the match
            with pytest.raises(AlreadyPublished):
                publish_match(second, match_id, {}, [])
            second.rollback()

            assert second.query(PointsEvent).count() == 1


class TestRecalculate:
    """Tests for PublicationOrchestrator.recalculate()."""

    def test_requires_published_match(
        self, db_session: Session, scorecard: Match, formula
    ) -> None:
        with pytest.raises(MatchNotPublished):
            PublicationOrchestrator(db_session).recalculate(scorecard.id)

    def test_recomputes_with_current_formula(
        self, db_session: Session, scorecard: Match, squad: list[Player], season: Season, formula
    ) -> None:
        orchestrator = PublicationOrchestrator(db_session)
        orchestrator.publish(scorecard.id, {"A Cook": squad[0].id}, [])
        FormulaStore(db_session).save_formula(
            season.id, "Runs only", ScoringFormula.from_json({"run": 2})
        )

        result = orchestrator.recalculate(scorecard.id)

        assert result.formula_version == 2
        assert result.events_deleted == 7
        assert result.player_points == {squad[0].id: 104}
        assert [(event.player_id, event.event_type) for event in _events(db_session, scorecard)] == [
            (squad[0].id, "runs")
        ]

    def test_restricted_to_players(
        self, db_session: Session, scorecard: Match, squad: list[Player], season: Season, formula
    ) -> None:
        orchestrator = PublicationOrchestrator(db_session)
        orchestrator.publish(scorecard.id, {"A Cook": squad[0].id}, [])
        FormulaStore(db_session).save_formula(
            season.id, "Runs only", ScoringFormula.from_json({"run": 2})
        )

        result = orchestrator.recalculate(scorecard.id, [squad[0].id])

        events = _events(db_session, scorecard)
        assert result.events_deleted == 4
        assert {event.player_id for event in events} == {squad[0].id, squad[1].id}
        assert sum(event.points for event in events if event.player_id == squad[1].id) == 65
