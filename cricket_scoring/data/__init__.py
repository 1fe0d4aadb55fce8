"""Data layer for the scoring engine.

Submodules:
    db: Database engine and session management
    schema: SQLAlchemy base class and mixins
    models: SQLAlchemy ORM model definitions
    names: Player name normalization and splitting
    repositories: Query and persistence helpers used by the pipeline

Example:
    >>> from cricket_scoring.data import init_db, session_scope, Match
    >>> init_db()
    >>> with session_scope() as session:
    ...     drafts = session.query(Match).filter_by(published=False).all()
"""
from __future__ import annotations

from cricket_scoring.data.db import (
    create_db_engine,
    get_engine,
    get_session,
    init_db,
    reset_engine,
    session_scope,
    verify_foreign_keys_enabled,
)
from cricket_scoring.data.models import (
    BattingCard,
    BowlingCard,
    Club,
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
from cricket_scoring.data.names import full_name, normalize_name, split_name
from cricket_scoring.data.repositories import (
    CardRepository,
    FormulaStore,
    MatchRepository,
    PlayerRepository,
    PointsEventRepository,
    SeasonRepository,
    SquadRepository,
    TeamRepository,
)
from cricket_scoring.data.schema import Base, TimestampMixin

__all__ = [
    # Database
    "create_db_engine",
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
    "session_scope",
    "verify_foreign_keys_enabled",
    # Schema
    "Base",
    "TimestampMixin",
    # Models
    "BattingCard",
    "BowlingCard",
    "Club",
    "FieldingCard",
    "Innings",
    "Match",
    "Player",
    "PointsEvent",
    "ScoringFormulaVersion",
    "Season",
    "SquadMember",
    "Team",
    # Names
    "full_name",
    "normalize_name",
    "split_name",
    # Repositories
    "CardRepository",
    "FormulaStore",
    "MatchRepository",
    "PlayerRepository",
    "PointsEventRepository",
    "SeasonRepository",
    "SquadRepository",
    "TeamRepository",
]
