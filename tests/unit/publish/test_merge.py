"""Tests for merging duplicate player records."""
from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from cricket_scoring.data.models import (
    BattingCard,
    Club,
    Match,
    Player,
    PointsEvent,
    Season,
    SquadMember,
    Team,
)
from cricket_scoring.publish.merge import PlayerMerger
from cricket_scoring.publish.orchestrator import PublicationOrchestrator
from cricket_scoring.types import MergeConflict, PlayerNotFound


@pytest.fixture
def duplicate(db_session: Session, club: Club) -> Player:
    """Second record for Joe Root, imported under an initial."""
    player = Player(club_id=club.id, first_name="J", last_name="Root")
    db_session.add(player)
    db_session.flush()
    return player


class TestMerge:
    """Tests for PlayerMerger.merge()."""

    def test_moves_cards_and_deletes_duplicate(
        self, db_session: Session, match: Match, squad: list[Player], duplicate: Player,
        add_batting, add_fielding,
    ) -> None:
        primary = squad[2]
        batting = add_batting(match, "J Root", duplicate.id, runs=20)
        fielding = add_fielding(match, "J Root", duplicate.id, catches=1)
        duplicate_id = duplicate.id

        result = PlayerMerger(db_session).merge(primary.id, duplicate_id)

        assert result.cards_moved == 2
        assert batting.player_id == primary.id
        assert fielding.player_id == primary.id
        assert db_session.get(Player, duplicate_id) is None
        assert result.recalculated_matches == []

    def test_squads_moved_or_dropped(
        self, db_session: Session, club: Club, team: Team, season: Season,
        squad: list[Player], duplicate: Player,
    ) -> None:
        second_xi = Team(club_id=club.id, season_id=season.id, name="2nd XI")
        db_session.add(second_xi)
        db_session.flush()
        db_session.add_all(
            [
                SquadMember(team_id=team.id, season_id=season.id, player_id=duplicate.id),
                SquadMember(team_id=second_xi.id, season_id=season.id, player_id=duplicate.id),
            ]
        )
        db_session.flush()

        result = PlayerMerger(db_session).merge(squad[2].id, duplicate.id)

        teams = {
            member.team_id
            for member in db_session.query(SquadMember).filter_by(player_id=squad[2].id)
        }
        assert (result.squads_moved, result.squads_dropped) == (1, 1)
        assert teams == {team.id, second_xi.id}

    def test_account_and_email_move_to_primary(
        self, db_session: Session, squad: list[Player], duplicate: Player
    ) -> None:
        duplicate.user_id = "user-17"
        duplicate.email = "joe@example.org"
        db_session.flush()

        result = PlayerMerger(db_session).merge(squad[2].id, duplicate.id)

        assert result.user_linked is True
        assert squad[2].user_id == "user-17"
        assert squad[2].email == "joe@example.org"

    def test_derived_row_gives_way_to_real_row(
        self, db_session: Session, match: Match, squad: list[Player], duplicate: Player,
        add_batting,
    ) -> None:
        primary = squad[2]
        add_batting(match, primary.full_name, primary.id, how_out="did not bat", derived=True)
        add_batting(match, "J Root", duplicate.id, runs=33, is_out=True)

        result = PlayerMerger(db_session).merge(primary.id, duplicate.id)

        cards = db_session.query(BattingCard).filter_by(match_id=match.id, player_id=primary.id).all()
        assert result.derived_removed == 1
        assert len(cards) == 1
        assert cards[0].runs == 33
        assert cards[0].derived is False

    def test_recalculates_published_matches(
        self, db_session: Session, match: Match, squad: list[Player], duplicate: Player,
        add_batting, formula,
    ) -> None:
        primary = squad[2]
        add_batting(match, "J Root", duplicate.id, runs=52, is_out=True)
        PublicationOrchestrator(db_session).publish(match.id, {}, [])
        duplicate_id = duplicate.id

        result = PlayerMerger(db_session).merge(primary.id, duplicate_id)

        events = db_session.query(PointsEvent).filter_by(match_id=match.id).all()
        assert result.recalculated_matches == [match.id]
        assert {event.player_id for event in events} == {primary.id}
        assert sum(event.points for event in events) == 62

    def test_self_merge_rejected(self, db_session: Session, squad: list[Player]) -> None:
        with pytest.raises(MergeConflict):
            PlayerMerger(db_session).merge(squad[0].id, squad[0].id)

    def test_different_clubs_rejected(
        self, db_session: Session, squad: list[Player]
    ) -> None:
        other_club = Club(name="Writtle CC")
        db_session.add(other_club)
        db_session.flush()
        stranger = Player(club_id=other_club.id, first_name="Joe", last_name="Root")
        db_session.add(stranger)
        db_session.flush()

        with pytest.raises(MergeConflict):
            PlayerMerger(db_session).merge(squad[2].id, stranger.id)

    def test_two_accounts_rejected(
        self, db_session: Session, squad: list[Player], duplicate: Player
    ) -> None:
        squad[2].user_id = "user-1"
        duplicate.user_id = "user-2"
        db_session.flush()

        with pytest.raises(MergeConflict):
            PlayerMerger(db_session).merge(squad[2].id, duplicate.id)
        assert db_session.get(Player, duplicate.id) is duplicate

    def test_missing_player(self, db_session: Session, squad: list[Player]) -> None:
        with pytest.raises(PlayerNotFound):
            PlayerMerger(db_session).merge(squad[0].id, 4040)
