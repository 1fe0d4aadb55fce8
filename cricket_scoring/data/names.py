"""Player name normalization and splitting.

Scorecards carry free-text names ("J Smith", "SMITH, John", " john  smith ").
Players are matched on a normalized key and new players are created from the
first token and the remaining tokens of the raw name.

Example:
    >>> normalize_name("  John   SMITH ")
    'john smith'
    >>> split_name("Smith, John Paul")
    ('John Paul', 'Smith')
"""
from __future__ import annotations

import re

from cricket_scoring.types import InvalidNameFormat

_WHITESPACE = re.compile(r"\s+")


def normalize_name(value: str) -> str:
    """Case-fold, collapse internal whitespace and trim."""
    return _WHITESPACE.sub(" ", value.casefold()).strip()


def full_name(first_name: str, last_name: str | None) -> str:
    """Join first and last name the way the lookup key is built."""
    return f"{first_name} {last_name or ''}".strip()


def split_name(raw_name: str) -> tuple[str, str]:
    """Split a raw scorecard name into (first_name, last_name).

    "Last, First ..." is honoured when a comma is present; otherwise the first
    token is the first name and the remaining tokens form the last name.

    Raises:
        InvalidNameFormat: If the name has fewer than two tokens.
    """
    trimmed = raw_name.strip()
    comma_parts = [part.strip() for part in trimmed.split(",") if part.strip()]
    if len(comma_parts) >= 2:
        last_name = comma_parts[0]
        first_name = " ".join(comma_parts[1:])
        return _WHITESPACE.sub(" ", first_name), _WHITESPACE.sub(" ", last_name)

    tokens = [token for token in _WHITESPACE.split(trimmed.replace(",", " ")) if token]
    if len(tokens) < 2:
        raise InvalidNameFormat(raw_name)
    return tokens[0], " ".join(tokens[1:])
