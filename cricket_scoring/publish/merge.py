"""Merge a duplicate player into the primary record.

Duplicates appear when one person was imported under two spellings. A
merge moves everything the duplicate owns onto the primary player and
deletes the duplicate:

- cards are re-pointed; where both players already have a row of the same
  kind in a match, a derived placeholder gives way to the real row;
- squad registrations are re-pointed, dropping ones the primary already has;
- the account link and email move across when the primary has none;
- points of every published match involved are recomputed for the primary.

Example:
    >>> with session_scope() as session:
    ...     result = PlayerMerger(session).merge(primary_id=4, duplicate_id=19)
    ...     print(result.cards_moved, result.recalculated_matches)
"""
from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from cricket_scoring.config import Settings, get_settings
from cricket_scoring.data.models import PointsEvent, SquadMember
from cricket_scoring.data.repositories import (
    CARD_MODELS,
    CardRepository,
    MatchRepository,
    PlayerRepository,
)
from cricket_scoring.logging import SUCCESS, WARN, get_logger
from cricket_scoring.publish.orchestrator import PublicationOrchestrator
from cricket_scoring.types import MatchId, MergeConflict, PlayerId

logger = get_logger(__name__)


@dataclass
class MergeResult:
    """Summary of a completed merge."""

    primary_id: PlayerId
    duplicate_id: PlayerId
    cards_moved: int = 0
    derived_removed: int = 0
    squads_moved: int = 0
    squads_dropped: int = 0
    user_linked: bool = False
    recalculated_matches: list[MatchId] = field(default_factory=list)


class PlayerMerger:
    """Fold one player record into another."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.players = PlayerRepository(session)
        self.cards = CardRepository(session)
        self.matches = MatchRepository(session)

    def merge(self, primary_id: PlayerId, duplicate_id: PlayerId) -> MergeResult:
        """Move the duplicate's cards, squads and account onto the primary.

        Raises:
            PlayerNotFound: If either player does not exist.
            MergeConflict: If the players are the same, belong to different
                clubs, or are linked to two different accounts.
            NoActiveFormula: If an affected published match's season has no
                active formula to recompute with.
        """
        if primary_id == duplicate_id:
            raise MergeConflict("Cannot merge a player into itself")
        primary = self.players.get(primary_id)
        duplicate = self.players.get(duplicate_id)
        if primary.club_id != duplicate.club_id:
            raise MergeConflict("Players belong to different clubs")
        if primary.user_id and duplicate.user_id and primary.user_id != duplicate.user_id:
            raise MergeConflict(
                f"Players {primary_id} and {duplicate_id} are linked to different accounts"
            )

        result = MergeResult(primary_id=primary_id, duplicate_id=duplicate_id)
        with self.session.begin_nested():
            affected = sorted(self.cards.match_ids_for_player(duplicate_id))
            published = self.matches.published_match_ids(affected)

            result.derived_removed = self._drop_colliding_rows(primary_id, duplicate_id)
            result.cards_moved = self.cards.repoint_player(duplicate_id, primary_id)
            result.squads_moved, result.squads_dropped = self._move_squads(
                primary_id, duplicate_id
            )

            if duplicate.user_id and not primary.user_id:
                primary.user_id = duplicate.user_id
                duplicate.user_id = None
                result.user_linked = True
            if duplicate.email and not primary.email:
                primary.email = duplicate.email

            self.session.query(PointsEvent).filter(
                PointsEvent.player_id == duplicate_id
            ).delete(synchronize_session="fetch")
            self.session.delete(duplicate)
            self.session.flush()

            orchestrator = PublicationOrchestrator(self.session, self.settings)
            for match_id in published:
                orchestrator.recalculate(match_id, [primary_id])
                result.recalculated_matches.append(match_id)

        logger.info(
            f"{SUCCESS} Merged player {duplicate_id} into {primary_id}: "
            f"{result.cards_moved} cards, {result.squads_moved} squads, "
            f"{len(result.recalculated_matches)} matches recalculated"
        )
        return result

    def _drop_colliding_rows(self, primary_id: PlayerId, duplicate_id: PlayerId) -> int:
        """Remove derived rows that would leave two rows of one kind per match."""
        removed = 0
        for kind, model in CARD_MODELS.items():
            primary_rows = {
                card.match_id: card
                for card in self.session.query(model).filter(model.player_id == primary_id)
            }
            for card in self.session.query(model).filter(model.player_id == duplicate_id).all():
                existing = primary_rows.get(card.match_id)
                if existing is None:
                    continue
                if card.derived:
                    self.session.delete(card)
                elif existing.derived:
                    self.session.delete(existing)
                else:
                    logger.warning(
                        f"{WARN} Match {card.match_id}: both players have {kind.value} "
                        "rows, keeping both"
                    )
                    continue
                removed += 1
        self.session.flush()
        return removed

    def _move_squads(self, primary_id: PlayerId, duplicate_id: PlayerId) -> tuple[int, int]:
        held = {
            (member.team_id, member.season_id)
            for member in self.session.query(SquadMember).filter(
                SquadMember.player_id == primary_id
            )
        }
        moved = dropped = 0
        for member in self.session.query(SquadMember).filter(
            SquadMember.player_id == duplicate_id
        ).all():
            if (member.team_id, member.season_id) in held:
                self.session.delete(member)
                dropped += 1
            else:
                member.player_id = primary_id
                held.add((member.team_id, member.season_id))
                moved += 1
        self.session.flush()
        return moved, dropped
