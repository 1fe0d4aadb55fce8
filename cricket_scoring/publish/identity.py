"""Player identity resolution for raw scorecard names.

One resolver lives for one import or publish operation. On first use it
loads the club's players into a ``normalized name -> id`` map; misses
create a player (and, with a team/season scope, a squad registration) and
are written back to the map so the same name later in the operation
resolves to the same player.

Creation tolerates concurrent importers: the insert runs inside a SAVEPOINT
and a unique-constraint violation falls back to reading the row the other
writer created.

Example:
    >>> resolver = IdentityResolver(session, club_id=1, team_id=4, season_id=2)
    >>> resolver.resolve("SMITH, John") == resolver.resolve("john smith")
    True
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cricket_scoring.data.models import Player
from cricket_scoring.data.names import full_name, normalize_name, split_name
from cricket_scoring.data.repositories import SquadRepository
from cricket_scoring.logging import get_logger
from cricket_scoring.types import (
    ClubId,
    InvalidNameFormat,
    PlayerId,
    PlayerMappings,
    SeasonId,
    TeamId,
)

logger = get_logger(__name__)


@dataclass
class ResolveResult:
    """Outcome of resolving a batch of names.

    Attributes:
        mappings: Raw name -> player id for every name that resolved.
        created: Ids of players created during the batch.
        failures: Raw names that could not be split into first/last name.
    """

    mappings: PlayerMappings = field(default_factory=dict)
    created: list[PlayerId] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures


class IdentityResolver:
    """Map raw scorecard names to player ids, creating players on miss.

    Attributes:
        session: Session the lookups and inserts run in.
        club_id: Club whose players are searched and created.
        team_id: Squad scope for new players (optional).
        season_id: Squad scope for new players (optional).
    """

    def __init__(
        self,
        session: Session,
        club_id: ClubId,
        team_id: TeamId | None = None,
        season_id: SeasonId | None = None,
    ) -> None:
        self.session = session
        self.club_id = club_id
        self.team_id = team_id
        self.season_id = season_id
        self._players: dict[str, PlayerId] | None = None
        self._created: list[PlayerId] = []
        self._squads = SquadRepository(session)

    @property
    def created(self) -> list[PlayerId]:
        """Players created by this resolver so far."""
        return list(self._created)

    def _load(self) -> dict[str, PlayerId]:
        if self._players is None:
            rows = (
                self.session.query(Player.id, Player.normalized_name)
                .filter(Player.club_id == self.club_id)
                .all()
            )
            self._players = {name: player_id for player_id, name in rows}
            logger.debug(f"Loaded {len(self._players)} players for club {self.club_id}")
        return self._players

    @staticmethod
    def lookup_key(raw_name: str) -> str:
        """Normalized key a raw name is matched on.

        "Last, First" names are keyed by "first last" so both spellings of
        a player meet.
        """
        try:
            first_name, last_name = split_name(raw_name)
        except InvalidNameFormat:
            return normalize_name(raw_name)
        return normalize_name(full_name(first_name, last_name))

    def resolve(self, raw_name: str, add_to_squad: bool = True) -> PlayerId:
        """Return the player id for a raw name, creating the player if needed.

        Args:
            raw_name: Name as printed on the scorecard.
            add_to_squad: Register the player to the resolver's team/season.

        Returns:
            Existing or newly created player id.

        Raises:
            InvalidNameFormat: If the name is unknown and has fewer than two
                tokens.
        """
        players = self._load()
        key = self.lookup_key(raw_name)

        player_id = players.get(key)
        if player_id is None:
            first_name, last_name = split_name(raw_name)
            player_id = self._create(key, first_name, last_name)
            players[key] = player_id

        if add_to_squad and self.team_id is not None and self.season_id is not None:
            self._squads.add(self.team_id, self.season_id, player_id)
        return player_id

    def resolve_many(self, names: Iterable[str], add_to_squad: bool = True) -> ResolveResult:
        """Resolve every name, collecting format failures instead of raising."""
        result = ResolveResult()
        before = len(self._created)
        for raw_name in names:
            if raw_name in result.mappings:
                continue
            try:
                result.mappings[raw_name] = self.resolve(raw_name, add_to_squad=add_to_squad)
            except InvalidNameFormat:
                logger.warning(f"Skipping player with invalid name format: {raw_name!r}")
                result.failures.append(raw_name)
        result.created = self._created[before:]
        return result

    def _create(self, key: str, first_name: str, last_name: str) -> PlayerId:
        try:
            with self.session.begin_nested():
                player = Player(club_id=self.club_id, first_name=first_name, last_name=last_name)
                self.session.add(player)
        except IntegrityError:
            # Another writer created the same player after our map was loaded
            winner = (
                self.session.query(Player.id)
                .filter(Player.club_id == self.club_id, Player.normalized_name == key)
                .scalar()
            )
            if winner is None:
                raise
            logger.debug(f"Player {key!r} created concurrently, using id {winner}")
            return winner

        self._created.append(player.id)
        logger.info(f"Created player {player.full_name!r} (id={player.id})")
        return player.id
