"""Season leaderboard built from published points events.

Example:
    >>> with session_scope() as session:
    ...     board = season_leaderboard(session, season_id=2)
    >>> board.head(3)[["player_name", "total"]]
"""
from __future__ import annotations

import pandas as pd
from sqlalchemy.orm import Session

from cricket_scoring.data.models import Match, Player, PointsEvent
from cricket_scoring.types import Category, SeasonId

LEADERBOARD_COLUMNS = [
    "player_id",
    "player_name",
    "matches",
    Category.BATTING.value,
    Category.BOWLING.value,
    Category.FIELDING.value,
    "total",
]


def season_leaderboard(session: Session, season_id: SeasonId) -> pd.DataFrame:
    """Points per player and category over the season's published matches.

    Args:
        session: Database session.
        season_id: Season to rank.

    Returns:
        DataFrame with one row per player that has at least one event,
        sorted by total descending (ties by name). Empty with the same
        columns when nothing is published.
    """
    rows = (
        session.query(
            PointsEvent.player_id,
            Player.first_name,
            Player.last_name,
            PointsEvent.match_id,
            PointsEvent.category,
            PointsEvent.points,
        )
        .join(Match, Match.id == PointsEvent.match_id)
        .join(Player, Player.id == PointsEvent.player_id)
        .filter(Match.season_id == season_id, Match.published.is_(True))
        .all()
    )
    if not rows:
        return pd.DataFrame(columns=LEADERBOARD_COLUMNS)

    events = pd.DataFrame(
        rows,
        columns=["player_id", "first_name", "last_name", "match_id", "category", "points"],
    )
    events["player_name"] = (
        events["first_name"].str.cat(events["last_name"].fillna(""), sep=" ").str.strip()
    )

    by_category = events.pivot_table(
        index=["player_id", "player_name"],
        columns="category",
        values="points",
        aggfunc="sum",
        fill_value=0.0,
    )
    by_category = by_category.reindex(
        columns=[category.value for category in Category], fill_value=0.0
    )
    by_category.columns.name = None

    board = by_category.reset_index()
    board["total"] = board[[category.value for category in Category]].sum(axis=1)
    matches = events.groupby("player_id")["match_id"].nunique().rename("matches")
    board = board.merge(matches, left_on="player_id", right_index=True)

    board = board.sort_values(["total", "player_name"], ascending=[False, True])
    return board[LEADERBOARD_COLUMNS].reset_index(drop=True)
