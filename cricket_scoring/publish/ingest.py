"""Draft-match import from parsed scorecard JSON.

The scorecard JSON is what the document-extraction step produces from a
PDF scorecard: match details plus innings with batting and bowling lines.
It is validated with pydantic and stored as an unpublished match. Home-side
names go through the identity resolver (and into the team's squad);
opposition names are kept as raw text with no player identity.

The team and season must be named explicitly. An import never falls back to
"whichever team comes first".

Example:
    >>> scorecard = ParsedScorecard.model_validate(json.loads(raw))
    >>> with session_scope() as session:
    ...     result = ScorecardImporter(session).import_scorecard(1, 4, 2, scorecard)
    ...     print(result.match_id, result.players_created)
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from cricket_scoring.config import Settings, get_settings
from cricket_scoring.data.models import (
    BattingCard,
    BowlingCard,
    Club,
    FieldingCard,
    Innings,
    Match,
)
from cricket_scoring.data.names import normalize_name
from cricket_scoring.data.repositories import SeasonRepository, TeamRepository
from cricket_scoring.logging import SUCCESS, WARN, get_logger
from cricket_scoring.publish.identity import IdentityResolver
from cricket_scoring.publish.zero_rows import ZeroRowCompleter, ZeroRowResult
from cricket_scoring.types import (
    ClubId,
    InvalidNameFormat,
    MatchId,
    PlayerId,
    SeasonId,
    TeamId,
    TeamNotFound,
)

logger = get_logger(__name__)

Side = Literal["home", "away"]

_SIDE_WORDS = re.compile(r"\b(home|away|opposition)\b")


# =============================================================================
# Parsed scorecard schema
# =============================================================================


class _Line(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ParsedBattingLine(_Line):
    player_name: str
    position: int | None = None
    dismissal_type: str | None = None
    dismissal_text: str | None = None
    is_out: bool | None = None
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0

    @property
    def how_out(self) -> str | None:
        return self.dismissal_text or self.dismissal_type


class ParsedBowlingLine(_Line):
    player_name: str
    overs: float = 0.0
    maidens: int = 0
    runs_conceded: int = 0
    wickets: int = 0
    wides: int = 0
    no_balls: int = 0


class ParsedFieldingLine(_Line):
    player_name: str
    catches: int = 0
    stumpings: int = 0
    run_outs: int = 0
    drops: int = 0
    misfields: int = 0


class ParsedInnings(_Line):
    innings_number: int
    batting_team: str = ""
    total_runs: int = 0
    wickets: int = 0
    overs: float = 0.0
    extras: int = 0
    batting_cards: list[ParsedBattingLine] = Field(default_factory=list)
    bowling_cards: list[ParsedBowlingLine] = Field(default_factory=list)


class ParsedMatch(_Line):
    match_date: date | None = None
    opponent_name: str | None = None
    venue: str | None = None
    match_type: str | None = None
    result: str | None = None


class ParsedScorecard(_Line):
    """Scorecard as produced by the extraction step.

    ``fielding_cards`` list home fielders only.
    """

    match: ParsedMatch
    innings: list[ParsedInnings] = Field(default_factory=list)
    fielding_cards: list[ParsedFieldingLine] = Field(default_factory=list)


# =============================================================================
# Importer
# =============================================================================


@dataclass
class ImportResult:
    """Summary of an imported draft match.

    Attributes:
        match_id: Created match.
        innings_created: Innings rows inserted.
        batting_cards: Batting rows inserted from the scorecard.
        bowling_cards: Bowling rows inserted from the scorecard.
        fielding_cards: Fielding rows inserted from the scorecard.
        players_created: Players created by the identity resolver.
        invalid_names: Home-side names that could not be resolved; their
            cards are stored without a player.
        zero_rows: Derived rows added for the rest of the squad.
    """

    match_id: MatchId
    innings_created: int = 0
    batting_cards: int = 0
    bowling_cards: int = 0
    fielding_cards: int = 0
    players_created: list[PlayerId] = field(default_factory=list)
    invalid_names: list[str] = field(default_factory=list)
    zero_rows: ZeroRowResult | None = None


class ScorecardImporter:
    """Store a parsed scorecard as a draft match."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    def import_scorecard(
        self,
        club_id: ClubId,
        team_id: TeamId,
        season_id: SeasonId,
        scorecard: ParsedScorecard,
    ) -> ImportResult:
        """Create a draft match with innings and cards.

        Raises:
            TeamNotFound: If the team does not exist or is not the club's
                team for that season.
            SeasonNotFound: If the season does not exist.
        """
        season = SeasonRepository(self.session).get(season_id)
        team = TeamRepository(self.session).get(team_id)
        if team.club_id != club_id or team.season_id != season.id or season.club_id != club_id:
            raise TeamNotFound(
                f"Team {team_id} does not belong to season {season_id} of club {club_id}"
            )

        match = Match(
            club_id=club_id,
            team_id=team_id,
            season_id=season_id,
            match_date=scorecard.match.match_date,
            opponent_name=scorecard.match.opponent_name,
            venue=scorecard.match.venue,
            match_type=scorecard.match.match_type,
            result=scorecard.match.result,
            published=False,
        )
        self.session.add(match)
        self.session.flush()

        result = ImportResult(match_id=match.id)
        resolver = IdentityResolver(self.session, club_id, team_id, season_id)
        club = self.session.get(Club, club_id)
        home_names = [
            normalize_name(name)
            for name in (club.name if club else None, team.name)
            if name
        ]

        for parsed in scorecard.innings:
            side = infer_batting_side(parsed.batting_team, home_names, scorecard.match.opponent_name)
            innings = Innings(
                match_id=match.id,
                innings_number=parsed.innings_number,
                batting_side=side,
                total_runs=parsed.total_runs,
                wickets=parsed.wickets,
                overs=parsed.overs,
                extras=parsed.extras,
            )
            self.session.add(innings)
            self.session.flush()
            result.innings_created += 1

            for line in parsed.batting_cards:
                player_id = self._resolve(resolver, line.player_name, side == "home", result)
                self.session.add(
                    BattingCard(
                        match_id=match.id,
                        innings_id=innings.id,
                        player_id=player_id,
                        player_name=line.player_name.strip(),
                        position=line.position,
                        how_out=line.how_out,
                        is_out=line.is_out,
                        runs=line.runs,
                        balls=line.balls_faced,
                        fours=line.fours,
                        sixes=line.sixes,
                    )
                )
                result.batting_cards += 1

            # Bowlers belong to the side that is fielding
            for line in parsed.bowling_cards:
                player_id = self._resolve(resolver, line.player_name, side == "away", result)
                self.session.add(
                    BowlingCard(
                        match_id=match.id,
                        innings_id=innings.id,
                        player_id=player_id,
                        player_name=line.player_name.strip(),
                        overs=line.overs,
                        maidens=line.maidens,
                        runs_conceded=line.runs_conceded,
                        wickets=line.wickets,
                        wides=line.wides,
                        no_balls=line.no_balls,
                    )
                )
                result.bowling_cards += 1

        for line in scorecard.fielding_cards:
            player_id = self._resolve(resolver, line.player_name, True, result)
            self.session.add(
                FieldingCard(
                    match_id=match.id,
                    player_id=player_id,
                    player_name=line.player_name.strip(),
                    catches=line.catches,
                    stumpings=line.stumpings,
                    run_outs=line.run_outs,
                    drops=line.drops,
                    misfields=line.misfields,
                )
            )
            result.fielding_cards += 1

        self.session.flush()
        result.players_created = resolver.created
        result.zero_rows = ZeroRowCompleter(self.session, self.settings).complete(match)

        logger.info(
            f"{SUCCESS} Imported match {match.id} vs {match.opponent_name!r}: "
            f"{result.batting_cards} batting, {result.bowling_cards} bowling, "
            f"{result.fielding_cards} fielding cards, "
            f"{len(result.players_created)} new players"
        )
        if result.invalid_names:
            logger.warning(
                f"{WARN} Match {match.id}: unresolved names {', '.join(result.invalid_names)}"
            )
        return result

    @staticmethod
    def _resolve(
        resolver: IdentityResolver, raw_name: str, home: bool, result: ImportResult
    ) -> PlayerId | None:
        if not home:
            return None
        try:
            return resolver.resolve(raw_name)
        except InvalidNameFormat:
            result.invalid_names.append(raw_name)
            return None


def infer_batting_side(
    batting_team: str, home_names: list[str], opponent_name: str | None
) -> Side:
    """Work out which side batted from the scorecard's team label.

    An exact club, team or opponent name decides first, then the words
    "home", "away" or "opposition", then the longest club, team or opponent
    name found inside the label. Unrecognised labels are treated as the
    opposition so unknown names never create players.
    """
    label = normalize_name(batting_team or "")
    opponent = normalize_name(opponent_name or "")
    if label in ("home", "away"):
        return label  # type: ignore[return-value]
    if label and label == opponent:
        return "away"
    if label and label in home_names:
        return "home"
    word = _SIDE_WORDS.search(label)
    if word:
        return "home" if word.group(1) == "home" else "away"
    # Opponent first so an equal-length tie goes to the opposition
    found: list[tuple[int, Side]] = []
    if opponent and opponent in label:
        found.append((len(opponent), "away"))
    found.extend((len(name), "home") for name in home_names if name and name in label)
    if found:
        return max(found, key=lambda match: match[0])[1]
    logger.warning(f"{WARN} Could not infer batting side from {batting_team!r}, assuming away")
    return "away"
    if label and any(name in label for name in home_names):
        return "home"
    opponent = normalize_name(opponent_name or "")
    if label and opponent and opponent in label:
        return "away"
    logger.warning(f"{WARN} Could not infer batting side from {batting_team!r}, assuming away")
    return "away"
