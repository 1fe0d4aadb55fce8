"""Shared pytest fixtures for scoring engine tests.

This module contains fixtures used across multiple test modules:
- Configuration fixtures (test settings)
- Database fixtures (temporary SQLite engine and session)
- Seeded club data (club, season, team, 11-player squad, draft match)
- Card factories for building scorecards

Example:
    def test_something(db_session, match, add_batting):
        add_batting(match, "J Smith", runs=52)
"""
from __future__ import annotations

import os
from collections.abc import Callable, Generator
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from cricket_scoring.config import Settings, reset_settings
from cricket_scoring.data.db import create_db_engine
from cricket_scoring.data.models import (
    BattingCard,
    BowlingCard,
    Club,
    FieldingCard,
    Innings,
    Match,
    Player,
    Season,
    SquadMember,
    Team,
)
from cricket_scoring.data.repositories import FormulaStore
from cricket_scoring.data.schema import Base
from cricket_scoring.scoring.formula import DEFAULT_FORMULA

SQUAD_NAMES = [
    "Alastair Cook",
    "Ben Stokes",
    "Joe Root",
    "Jos Buttler",
    "Moeen Ali",
    "Chris Woakes",
    "Stuart Broad",
    "James Anderson",
    "Adil Rashid",
    "Mark Wood",
    "Jack Leach",
]


# =============================================================================
# Paths
# =============================================================================


@pytest.fixture
def tmp_data_dir(tmp_path: Path) -> Path:
    """Create and return temporary data directory."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return data_dir


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def test_settings(tmp_data_dir: Path) -> Generator[Settings, None, None]:
    """Provide test settings with temporary directories.

    Automatically resets settings singleton after test.
    """
    os.environ["CRICKET_DB_PATH"] = str(tmp_data_dir / "test.db")
    os.environ["LOG_DIR"] = str(tmp_data_dir / "logs")
    os.environ["LOG_LEVEL"] = "DEBUG"

    reset_settings()
    from cricket_scoring.config import get_settings

    settings = get_settings()
    settings.ensure_directories()

    yield settings

    # Cleanup
    reset_settings()
    for key in ["CRICKET_DB_PATH", "LOG_DIR", "LOG_LEVEL"]:
        os.environ.pop(key, None)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine(tmp_data_dir: Path) -> Generator[Engine, None, None]:
    """SQLite engine on a temporary file with all tables created."""
    from cricket_scoring.data import models  # noqa: F401

    db_engine = create_db_engine(f"sqlite:///{tmp_data_dir / 'scoring.db'}")
    Base.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def db_session(engine: Engine, test_settings: Settings) -> Generator[Session, None, None]:
    """Session bound to the test engine. Rolled back and closed after test."""
    session = Session(engine)
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Seeded Club Data
# =============================================================================


@pytest.fixture
def club(db_session: Session) -> Club:
    club = Club(name="Brookweald CC")
    db_session.add(club)
    db_session.flush()
    return club


@pytest.fixture
def season(db_session: Session, club: Club) -> Season:
    season = Season(
        club_id=club.id,
        name="2024",
        start_date=date(2024, 4, 1),
        end_date=date(2024, 9, 30),
        is_active=True,
    )
    db_session.add(season)
    db_session.flush()
    return season


@pytest.fixture
def team(db_session: Session, club: Club, season: Season) -> Team:
    team = Team(club_id=club.id, season_id=season.id, name="1st XI")
    db_session.add(team)
    db_session.flush()
    return team


@pytest.fixture
def squad(db_session: Session, club: Club, season: Season, team: Team) -> list[Player]:
    """Eleven players registered to the team for the season."""
    players = []
    for name in SQUAD_NAMES:
        first_name, last_name = name.split(" ", 1)
        player = Player(club_id=club.id, first_name=first_name, last_name=last_name)
        db_session.add(player)
        players.append(player)
    db_session.flush()
    for player in players:
        db_session.add(SquadMember(team_id=team.id, season_id=season.id, player_id=player.id))
    db_session.flush()
    return players


@pytest.fixture
def match(db_session: Session, club: Club, season: Season, team: Team) -> Match:
    """Draft match with a home and an away innings."""
    match = Match(
        club_id=club.id,
        team_id=team.id,
        season_id=season.id,
        match_date=date(2024, 6, 1),
        opponent_name="Hutton CC",
        venue="Brookweald",
        published=False,
    )
    db_session.add(match)
    db_session.flush()
    db_session.add_all(
        [
            Innings(match_id=match.id, innings_number=1, batting_side="home", total_runs=180),
            Innings(match_id=match.id, innings_number=2, batting_side="away", total_runs=150),
        ]
    )
    db_session.flush()
    return match


@pytest.fixture
def formula(db_session: Session, season: Season) -> Any:
    """Club standard formula saved as the season's active version."""
    return FormulaStore(db_session).save_formula(season.id, "Standard", DEFAULT_FORMULA)


# =============================================================================
# Card Factories
# =============================================================================


def _innings(session: Session, match: Match, side: str) -> Innings | None:
    return (
        session.query(Innings)
        .filter(Innings.match_id == match.id, Innings.batting_side == side)
        .first()
    )


@pytest.fixture
def add_batting(db_session: Session) -> Callable[..., BattingCard]:
    """Factory adding a home batting card to a match."""

    def _add(
        match: Match, player_name: str, player_id: int | None = None, **stats: Any
    ) -> BattingCard:
        innings = _innings(db_session, match, stats.pop("side", "home"))
        card = BattingCard(
            match_id=match.id,
            innings_id=innings.id if innings else None,
            player_id=player_id,
            player_name=player_name,
            **stats,
        )
        db_session.add(card)
        db_session.flush()
        return card

    return _add


@pytest.fixture
def add_bowling(db_session: Session) -> Callable[..., BowlingCard]:
    """Factory adding a home bowling card (bowled in the away innings)."""

    def _add(
        match: Match, player_name: str, player_id: int | None = None, **stats: Any
    ) -> BowlingCard:
        innings = _innings(db_session, match, stats.pop("side", "away"))
        card = BowlingCard(
            match_id=match.id,
            innings_id=innings.id if innings else None,
            player_id=player_id,
            player_name=player_name,
            **stats,
        )
        db_session.add(card)
        db_session.flush()
        return card

    return _add


@pytest.fixture
def add_fielding(db_session: Session) -> Callable[..., FieldingCard]:
    """Factory adding a fielding card."""

    def _add(
        match: Match, player_name: str | None, player_id: int | None = None, **stats: Any
    ) -> FieldingCard:
        card = FieldingCard(
            match_id=match.id, player_id=player_id, player_name=player_name, **stats
        )
        db_session.add(card)
        db_session.flush()
        return card

    return _add


# =============================================================================
# Marker Helpers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
