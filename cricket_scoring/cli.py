"""CLI entrypoint using Typer.

This module defines the command-line interface for the scoring engine.
Commands are organized into subcommand groups for database, season,
formula, match, player and leaderboard operations.

Example:
    $ cricket-scoring --help
    $ cricket-scoring db init
    $ cricket-scoring match import scorecard.json --club 1 --team 4 --season 2
    $ cricket-scoring match publish 12 --map "J Smith=4" --auto-resolve
"""

from __future__ import annotations

import json
import signal
import threading
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cricket_scoring import __version__
from cricket_scoring.config import get_settings
from cricket_scoring.logging import setup_logging
from cricket_scoring.types import (
    AlreadyPublished,
    PlayerMappings,
    ScoringEngineError,
)

# Initialize console for rich output
console = Console()

# Create main app
app = typer.Typer(
    name="cricket-scoring",
    help="Cricket club match publication and scoring CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Create subcommand groups
db_app = typer.Typer(
    name="db",
    help="Database management commands",
    no_args_is_help=True,
)
season_app = typer.Typer(
    name="season",
    help="Season commands",
    no_args_is_help=True,
)
formula_app = typer.Typer(
    name="formula",
    help="Scoring formula commands",
    no_args_is_help=True,
)
match_app = typer.Typer(
    name="match",
    help="Match import, publication and points commands",
    no_args_is_help=True,
)
players_app = typer.Typer(
    name="players",
    help="Player maintenance commands",
    no_args_is_help=True,
)

# Register subcommand groups
app.add_typer(db_app, name="db")
app.add_typer(season_app, name="season")
app.add_typer(formula_app, name="formula")
app.add_typer(match_app, name="match")
app.add_typer(players_app, name="players")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]cricket-scoring[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-V",
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """Cricket club match publication and scoring CLI.

    Import scorecards, publish matches into points events and inspect the
    season leaderboard.
    """
    settings = get_settings()
    log_level = "DEBUG" if verbose else settings.log_level
    setup_logging(level=log_level, log_dir=settings.log_dir_obj)


def _fail(exc: ScoringEngineError) -> NoReturn:
    """Print a scoring error and exit non-zero."""
    if isinstance(exc, AlreadyPublished):
        console.print(f"[yellow]{escape(str(exc))}[/yellow]")
        raise typer.Exit(2)
    console.print(f"[red]Error: {escape(str(exc))}. Nothing was changed.[/red]")
    raise typer.Exit(1)


def _ready_database() -> None:
    from cricket_scoring.data import init_db

    get_settings().ensure_directories()
    init_db()


# =============================================================================
# Database Commands
# =============================================================================


@db_app.command("init")
def db_init() -> None:
    """Create all tables (safe to run repeatedly)."""
    _ready_database()
    console.print(f"[green]Database ready:[/green] {get_settings().sqlalchemy_url}")


@db_app.command("status")
def db_status() -> None:
    """Show row counts for clubs, players, matches and points events."""
    from sqlalchemy import func

    from cricket_scoring.data import (
        Club,
        Match,
        Player,
        PointsEvent,
        Season,
        session_scope,
    )

    settings = get_settings()
    if settings.database_url is None and not settings.db_path_obj.exists():
        console.print(
            Panel(
                f"[bold]Database:[/bold] {settings.db_path}\n"
                "[yellow]Database not found. Run 'db init' first.[/yellow]",
                title="Database Status",
            )
        )
        return

    _ready_database()
    with session_scope() as session:
        table = Table(title="Database Status")
        table.add_column("Entity", style="cyan")
        table.add_column("Count", justify="right")

        for label, column in (
            ("Clubs", Club.id),
            ("Seasons", Season.id),
            ("Players", Player.id),
            ("Matches", Match.id),
            ("Points events", PointsEvent.id),
        ):
            table.add_row(label, str(session.query(func.count(column)).scalar() or 0))
        published = (
            session.query(func.count(Match.id)).filter(Match.published.is_(True)).scalar() or 0
        )
        table.add_row("Published matches", str(published))

        console.print(table)


# =============================================================================
# Season Commands
# =============================================================================


@season_app.command("activate")
def season_activate(
    season_id: Annotated[int, typer.Argument(help="Season to make active")],
) -> None:
    """Make a season the club's only active season."""
    from cricket_scoring.data import SeasonRepository, session_scope

    _ready_database()
    try:
        with session_scope() as session:
            season = SeasonRepository(session).activate(season_id)
            name = season.name
    except ScoringEngineError as exc:
        _fail(exc)
    console.print(f"[green]Season {name!r} is now active[/green]")


# =============================================================================
# Formula Commands
# =============================================================================


@formula_app.command("show")
def formula_show(
    season_id: Annotated[int, typer.Argument(help="Season whose formula to show")],
) -> None:
    """Show the season's active scoring formula."""
    from cricket_scoring.data import FormulaStore, session_scope

    _ready_database()
    try:
        with session_scope() as session:
            active = FormulaStore(session).get_active_formula(season_id)
    except ScoringEngineError as exc:
        _fail(exc)

    table = Table(title=f"{active.name} (v{active.version})")
    table.add_column("Section", style="cyan")
    table.add_column("Rule")
    table.add_column("Points", justify="right")
    for section, rules in active.formula.model_dump().items():
        for rule, value in rules.items():
            table.add_row(section, rule, "-" if value is None else f"{value:g}")
    console.print(table)


@formula_app.command("set")
def formula_set(
    season_id: Annotated[int, typer.Argument(help="Season to configure")],
    file: Annotated[
        Path | None,
        typer.Option(
            "--file",
            "-f",
            help="Formula JSON file (defaults to the club standard formula)",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    name: Annotated[
        str,
        typer.Option("--name", "-n", help="Label for this formula version"),
    ] = "Standard",
) -> None:
    """Save a new active formula version for the season."""
    from cricket_scoring.data import FormulaStore, session_scope
    from cricket_scoring.scoring import DEFAULT_FORMULA, ScoringFormula

    _ready_database()
    try:
        formula = (
            ScoringFormula.from_json(json.loads(file.read_text()))
            if file is not None
            else DEFAULT_FORMULA
        )
        with session_scope() as session:
            row = FormulaStore(session).save_formula(season_id, name, formula)
            version = row.version
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error: {file} is not valid JSON: {exc}[/red]")
        raise typer.Exit(1) from exc
    except ScoringEngineError as exc:
        _fail(exc)
    console.print(f"[green]Saved formula {name!r} v{version} for season {season_id}[/green]")


# =============================================================================
# Match Commands
# =============================================================================


def _parse_mappings(values: list[str] | None) -> PlayerMappings:
    """Parse repeated "Raw Name=player_id" options."""
    mappings: PlayerMappings = {}
    for value in values or []:
        raw_name, sep, player_id = value.rpartition("=")
        if not sep or not raw_name.strip() or not player_id.strip().isdigit():
            raise typer.BadParameter(f"Expected 'Name=player_id', got {value!r}")
        mappings[raw_name.strip()] = int(player_id)
    return mappings


@match_app.command("import")
def match_import(
    file: Annotated[
        Path,
        typer.Argument(help="Parsed scorecard JSON", exists=True, dir_okay=False),
    ],
    club: Annotated[int, typer.Option("--club", help="Club id")],
    team: Annotated[int, typer.Option("--team", help="Team id")],
    season: Annotated[int, typer.Option("--season", help="Season id")],
) -> None:
    """Import a parsed scorecard as a draft match."""
    from pydantic import ValidationError

    from cricket_scoring.data import session_scope
    from cricket_scoring.publish import ParsedScorecard, ScorecardImporter

    _ready_database()
    try:
        scorecard = ParsedScorecard.model_validate_json(file.read_text())
    except ValidationError as exc:
        console.print(f"[red]Error: invalid scorecard: {exc}[/red]")
        raise typer.Exit(1) from exc

    try:
        with session_scope() as session:
            result = ScorecardImporter(session).import_scorecard(club, team, season, scorecard)
    except ScoringEngineError as exc:
        _fail(exc)

    zero_rows = result.zero_rows.total_inserted if result.zero_rows else 0
    console.print(
        Panel(
            f"[bold]Match:[/bold] {result.match_id}\n"
            f"Innings: {result.innings_created}\n"
            f"Cards: {result.batting_cards} batting, {result.bowling_cards} bowling, "
            f"{result.fielding_cards} fielding\n"
            f"New players: {len(result.players_created)}\n"
            f"Derived rows: {zero_rows}",
            title="Import Complete",
        )
    )
    if result.invalid_names:
        console.print(f"[yellow]Unresolved names: {', '.join(result.invalid_names)}[/yellow]")


@match_app.command("publish")
def match_publish(
    match_id: Annotated[int, typer.Argument(help="Match to publish")],
    mappings: Annotated[
        list[str] | None,
        typer.Option("--map", "-m", help="Resolve a scorecard name: 'Name=player_id'"),
    ] = None,
    squad: Annotated[
        list[int] | None,
        typer.Option("--squad", "-s", help="Squad player id (defaults to registered squad)"),
    ] = None,
    auto_resolve: Annotated[
        bool,
        typer.Option("--auto-resolve", help="Create players for unmapped home names"),
    ] = False,
) -> None:
    """Publish a match and compute its points events."""
    from cricket_scoring.data import session_scope
    from cricket_scoring.publish import PublicationOrchestrator

    player_mappings = _parse_mappings(mappings)
    _ready_database()
    try:
        with session_scope() as session:
            result = PublicationOrchestrator(session).publish(
                match_id, player_mappings, squad, auto_resolve=auto_resolve
            )
            names = _player_names(session, result.player_points)
    except ScoringEngineError as exc:
        _fail(exc)

    console.print(
        f"[green]Published match {match_id}[/green] with formula v{result.formula_version}: "
        f"{result.events_created} events"
    )
    _print_points(f"Match {match_id} Points", result.player_points, names)
    if result.unresolved:
        console.print(
            f"[yellow]Cards without a player: {', '.join(result.unresolved)}[/yellow]"
        )
    for kind, error in result.zero_row_errors.items():
        console.print(f"[yellow]No derived {kind} rows added: {escape(error)}[/yellow]")


@match_app.command("recalculate")
def match_recalculate(
    match_id: Annotated[int, typer.Argument(help="Published match")],
    players: Annotated[
        list[int] | None,
        typer.Option("--player", "-p", help="Restrict to player id"),
    ] = None,
) -> None:
    """Recompute a published match's points with the current formula."""
    from cricket_scoring.data import session_scope
    from cricket_scoring.publish import PublicationOrchestrator

    _ready_database()
    try:
        with session_scope() as session:
            result = PublicationOrchestrator(session).recalculate(match_id, players)
    except ScoringEngineError as exc:
        _fail(exc)
    console.print(
        f"[green]Recalculated match {match_id}[/green]: {result.events_deleted} events "
        f"replaced by {result.events_created} (formula v{result.formula_version})"
    )


@match_app.command("backfill")
def match_backfill(
    club: Annotated[int, typer.Option("--club", help="Club id")],
) -> None:
    """Insert derived rows for every match of the club. Ctrl-C stops cleanly."""
    from cricket_scoring.data import session_scope
    from cricket_scoring.publish import BackfillStatus, ZeroRowBackfill

    _ready_database()
    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda *_: cancel.set())
    try:
        with session_scope() as session:
            report = ZeroRowBackfill(session).run(club, cancel_event=cancel)
    finally:
        signal.signal(signal.SIGINT, previous)

    status_color = {
        BackfillStatus.COMPLETED: "green",
        BackfillStatus.COMPLETED_WITH_ERRORS: "yellow",
        BackfillStatus.CANCELLED: "yellow",
    }.get(report.status, "white")

    console.print(f"\n[{status_color}]Status: {report.status.value}[/{status_color}]")
    console.print(f"Matches processed: {report.processed}")
    console.print(f"Rows inserted: {report.rows_inserted}")
    console.print(f"Duration: {report.duration_seconds:.1f}s")

    failures = [outcome for outcome in report.outcomes if not outcome.success]
    if failures:
        console.print(f"\n[red]Errors ({len(failures)}):[/red]")
        for outcome in failures[:10]:
            console.print(f"  - match {outcome.match_id}: {outcome.error}")
        if len(failures) > 10:
            console.print(f"  ... and {len(failures) - 10} more")


# =============================================================================
# Player Commands
# =============================================================================


@players_app.command("merge")
def players_merge(
    primary: Annotated[int, typer.Argument(help="Player id to keep")],
    duplicate: Annotated[int, typer.Argument(help="Player id to fold in and delete")],
) -> None:
    """Merge a duplicate player into the primary record."""
    from cricket_scoring.data import session_scope
    from cricket_scoring.publish import PlayerMerger

    _ready_database()
    try:
        with session_scope() as session:
            result = PlayerMerger(session).merge(primary, duplicate)
    except ScoringEngineError as exc:
        _fail(exc)
    console.print(
        f"[green]Merged player {duplicate} into {primary}[/green]: "
        f"{result.cards_moved} cards, {result.squads_moved} squads moved, "
        f"{len(result.recalculated_matches)} matches recalculated"
    )


# =============================================================================
# Leaderboard
# =============================================================================


@app.command("leaderboard")
def leaderboard(
    season_id: Annotated[int, typer.Argument(help="Season to rank")],
    top: Annotated[
        int,
        typer.Option("--top", "-n", help="Number of players to show"),
    ] = 20,
) -> None:
    """Show the season leaderboard over published matches."""
    from cricket_scoring.data import session_scope
    from cricket_scoring.scoring import season_leaderboard

    _ready_database()
    with session_scope() as session:
        board = season_leaderboard(session, season_id)

    if board.empty:
        console.print("[yellow]No published points for this season yet.[/yellow]")
        return

    table = Table(title=f"Season {season_id} Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("Player", style="cyan")
    table.add_column("Matches", justify="right")
    table.add_column("Batting", justify="right")
    table.add_column("Bowling", justify="right")
    table.add_column("Fielding", justify="right")
    table.add_column("Total", justify="right", style="bold green")
    for rank, row in enumerate(board.head(top).itertuples(index=False), start=1):
        table.add_row(
            str(rank),
            row.player_name,
            str(row.matches),
            f"{row.batting:g}",
            f"{row.bowling:g}",
            f"{row.fielding:g}",
            f"{row.total:g}",
        )
    console.print(table)


def _player_names(session: Any, player_ids: Any) -> dict[int, str]:
    from cricket_scoring.data import Player

    ids = list(player_ids)
    if not ids:
        return {}
    return {
        player.id: player.full_name
        for player in session.query(Player).filter(Player.id.in_(ids))
    }


def _print_points(title: str, player_points: dict[int, float], names: dict[int, str]) -> None:
    if not player_points:
        return
    table = Table(title=title)
    table.add_column("Player", style="cyan")
    table.add_column("Points", justify="right")
    for player_id, points in sorted(player_points.items(), key=lambda item: -item[1]):
        table.add_row(names.get(player_id, str(player_id)), f"{points:g}")
    console.print(table)


if __name__ == "__main__":
    app()
