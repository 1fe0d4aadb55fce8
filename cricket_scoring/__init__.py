"""Cricket Club Scoring Engine.

Match publication for a cricket club's fantasy-style points: reconcile
scorecard names with club players, fill placeholder rows for squad members
who did not bat, bowl or field, and compute points events from the season's
scoring formula.

Example:
    >>> from cricket_scoring.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.db_path)
"""

from __future__ import annotations

__version__ = "0.1.0"
__author__ = "Cricket Scoring Team"

# Public API exports
from cricket_scoring.config import Settings, get_settings

__all__ = [
    "Settings",
    "__author__",
    "__version__",
    "get_settings",
]
