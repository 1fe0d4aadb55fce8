"""Integration tests for the publication pipeline.

Tests a season end to end: scorecard import, publication, the
leaderboard, a formula change with recalculation, and a
duplicate-player merge, all against one SQLite database.
"""
from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy.orm import Session

from cricket_scoring.data.models import BattingCard, Club, Match, Player, PointsEvent, Season, Team
from cricket_scoring.data.repositories import FormulaStore
from cricket_scoring.publish import (
    ParsedScorecard,
    PlayerMerger,
    PublicationOrchestrator,
    ScorecardImporter,
)
from cricket_scoring.scoring import DEFAULT_FORMULA, ScoringFormula, season_leaderboard
from cricket_scoring.types import AlreadyPublished

pytestmark = pytest.mark.integration


def _scorecard(opponent: str, root_runs: int, stokes_wickets: int) -> ParsedScorecard:
    payload: dict[str, Any] = {
        "match": {"match_date": "2024-06-08", "opponent_name": opponent},
        "innings": [
            {
                "innings_number": 1,
                "batting_team": "Brookweald CC",
                "batting_cards": [
                    {"player_name": "Joe Root", "runs": root_runs, "is_out": True},
                    {"player_name": "JE Root", "runs": 0, "dismissal_type": "bowled",
                     "is_out": True},
                ],
                "bowling_cards": [{"player_name": f"{opponent} Quick", "overs": 10.0}],
            },
            {
                "innings_number": 2,
                "batting_team": opponent,
                "batting_cards": [{"player_name": f"{opponent} Opener", "runs": 30}],
                "bowling_cards": [
                    {"player_name": "Ben Stokes", "overs": 10.0, "runs_conceded": 50,
                     "wickets": stokes_wickets}
                ],
            },
        ],
        "fielding_cards": [{"player_name": "Ben Stokes", "catches": 1}],
    }
    return ParsedScorecard.model_validate(payload)


@pytest.fixture
def club_setup(db_session: Session) -> dict[str, Any]:
    club = Club(name="Brookweald CC")
    db_session.add(club)
    db_session.flush()
    season = Season(club_id=club.id, name="2024", is_active=True)
    db_session.add(season)
    db_session.flush()
    team = Team(club_id=club.id, season_id=season.id, name="1st XI")
    db_session.add(team)
    db_session.flush()
    FormulaStore(db_session).save_formula(season.id, "Standard", DEFAULT_FORMULA)
    return {"club": club, "season": season, "team": team}


class TestPublishPipeline:
    """End-to-end tests over a short season."""

    def test_season_flow(self, db_session: Session, club_setup: dict[str, Any]) -> None:
        club, season, team = club_setup["club"], club_setup["season"], club_setup["team"]
        importer = ScorecardImporter(db_session)
        orchestrator = PublicationOrchestrator(db_session)

        first = importer.import_scorecard(
            club.id, team.id, season.id, _scorecard("Hutton CC", 52, 3)
        )
        second = importer.import_scorecard(
            club.id, team.id, season.id, _scorecard("Writtle CC", 104, 5)
        )

        # Both matches are drafts: nothing on the board yet
        assert season_leaderboard(db_session, season.id).empty

        orchestrator.publish(first.match_id)
        orchestrator.publish(second.match_id)
        with pytest.raises(AlreadyPublished):
            orchestrator.publish(first.match_id)

        board = season_leaderboard(db_session, season.id).set_index("player_name")
        # 52 + 10 and 104 + 25, a century never also earns the fifty
        assert board.loc["Joe Root", "batting"] == 191
        assert board.loc["Joe Root", "matches"] == 2
        # 3 wickets: 45 + 10, 5 wickets: 75 + 25, one catch a match
        assert board.loc["Ben Stokes", "bowling"] == 155
        assert board.loc["Ben Stokes", "fielding"] == 10
        assert board.index[0] == "Joe Root"
        # Out for a duck in the first match and the second
        assert board.loc["JE Root", "total"] == -20

        FormulaStore(db_session).save_formula(
            season.id, "Runs only", ScoringFormula.from_json({"run": 1})
        )
        orchestrator.recalculate(first.match_id)
        board = season_leaderboard(db_session, season.id).set_index("player_name")
        assert board.loc["Joe Root", "batting"] == 52 + 129

    def test_merge_after_publication(
        self, db_session: Session, club_setup: dict[str, Any]
    ) -> None:
        club, season, team = club_setup["club"], club_setup["season"], club_setup["team"]
        result = ScorecardImporter(db_session).import_scorecard(
            club.id, team.id, season.id, _scorecard("Hutton CC", 52, 3)
        )
        PublicationOrchestrator(db_session).publish(result.match_id)

        root = db_session.query(Player).filter_by(normalized_name="joe root").one()
        je_root = db_session.query(Player).filter_by(normalized_name="je root").one()

        # Both records have a real batting row in the match, so both stay
        merge = PlayerMerger(db_session).merge(root.id, je_root.id)

        cards = db_session.query(BattingCard).filter_by(
            match_id=result.match_id, player_id=root.id
        ).all()
        events = db_session.query(PointsEvent).filter_by(
            match_id=result.match_id, player_id=root.id
        ).all()
        assert merge.recalculated_matches == [result.match_id]
        assert sorted(card.runs for card in cards) == [0, 52]
        assert sum(event.points for event in events) == 62 - 10
        assert db_session.get(Match, result.match_id).published is True
