"""Match publication pipeline.

Submodules:
    identity: Raw scorecard name -> player resolution
    zero_rows: Derived rows for squad players without cards, and backfill
    orchestrator: Atomic publish and recalculation
    ingest: Parsed scorecard import as a draft match
    merge: Duplicate player merge

Example:
    >>> from cricket_scoring.publish import publish_match
    >>> with session_scope() as session:
    ...     result = publish_match(session, match_id=12, player_mappings={}, squad_player_ids=None)
"""
from __future__ import annotations

from cricket_scoring.publish.identity import IdentityResolver, ResolveResult
from cricket_scoring.publish.ingest import ImportResult, ParsedScorecard, ScorecardImporter
from cricket_scoring.publish.merge import MergeResult, PlayerMerger
from cricket_scoring.publish.orchestrator import (
    PublicationOrchestrator,
    PublishResult,
    RecalculationResult,
    publish_match,
)
from cricket_scoring.publish.zero_rows import (
    BackfillReport,
    BackfillStatus,
    MatchOutcome,
    ZeroRowBackfill,
    ZeroRowCompleter,
    ZeroRowResult,
)

__all__ = [
    "BackfillReport",
    "BackfillStatus",
    "IdentityResolver",
    "ImportResult",
    "MatchOutcome",
    "MergeResult",
    "ParsedScorecard",
    "PlayerMerger",
    "PublicationOrchestrator",
    "PublishResult",
    "RecalculationResult",
    "ResolveResult",
    "ScorecardImporter",
    "ZeroRowBackfill",
    "ZeroRowCompleter",
    "ZeroRowResult",
    "publish_match",
]
