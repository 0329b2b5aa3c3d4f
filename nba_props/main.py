#!/usr/bin/env python3
"""
NBA Props - Batch Refresh Entry Point.

Scores NBA player props for a slate of games and stores the output:
1. Acquires props, game logs and defense ranks once per game
2. Ranks standard props with the calibrated model (EdgeBoard)
3. Validates alternate lines with five historical signals (Parlay Stack)
4. Assembles LOCK / SAFE / VALUE slips across games

Usage:
    nba-props refresh                       # Discover and refresh all games
    nba-props refresh --event-id abc123     # Refresh specific games
    nba-props refresh --engines stack       # Parlay Stack only
    nba-props events                        # List upcoming event ids
    nba-props health                        # Data source health
    nba-props calibrate --input picks.csv   # Fit the EdgeBoard temperature
"""

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.table import Table

from nba_props.data.sources.base import ConfigurationError
from nba_props.scheduler.orchestrator import ALL_ENGINES, BatchResult, GameStatus

console = Console()

STATUS_STYLES = {
    GameStatus.OK: "green",
    GameStatus.EMPTY: "yellow",
    GameStatus.FAILED: "red",
    GameStatus.SKIPPED: "dim",
}


def configure_logging(settings, debug: bool = False) -> None:
    """stderr sink at the configured level plus a rotating file sink."""
    level = "DEBUG" if debug or settings.debug else settings.log_level.upper()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        log_file = Path(settings.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
    else:
        log_file = settings.logs_dir / "nba_props.log"
    logger.add(log_file, level="DEBUG", rotation="10 MB", retention="7 days", enqueue=True)


def render_batch(batch: BatchResult) -> None:
    """Print per-game results and the slips."""
    table = Table(
        title="Batch Refresh",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Event", style="white", no_wrap=True)
    table.add_column("Matchup", style="white")
    table.add_column("Status", justify="center")
    table.add_column("Health", justify="center")
    table.add_column("EdgeBoard", justify="right")
    table.add_column("Stack", justify="right")
    table.add_column("Tries", justify="right", style="dim")

    if not batch.games:
        table.add_row("[dim]No games processed[/dim]", "", "", "", "", "", "")
    for game in batch.games:
        style = STATUS_STYLES[game.status]
        matchup = f"{game.away_team} @ {game.home_team}" if game.home_team else ""
        table.add_row(
            game.event_id[:16],
            matchup,
            f"[{style}]{game.status.value}[/{style}]",
            game.health.overall.value if game.health else "-",
            str(game.edge_count),
            str(game.stack_count),
            str(game.attempts),
        )
    console.print(table)

    for slip in batch.slips:
        slip_table = Table(
            title=f"{slip.name} ({slip.combined_odds_display}) - {slip.subtitle}",
            show_header=True,
            header_style="bold magenta",
            border_style="dim",
        )
        slip_table.add_column("Player", style="white")
        slip_table.add_column("Pick")
        slip_table.add_column("Odds", justify="right")
        slip_table.add_column("L10", justify="right")
        slip_table.add_column("Edge", justify="right", style="green")
        slip_table.add_column("Book", style="dim")
        for leg in slip.legs:
            slip_table.add_row(
                leg.player_name,
                f"{leg.side.value} {leg.line} {leg.stat_type.label}",
                f"{leg.odds:+d}",
                f"{leg.directional_l10_pct}%",
                f"{leg.parlay_edge:+.1%}",
                leg.bookmaker or "",
            )
        console.print(slip_table)

    summary = batch.summary()
    console.print(
        f"[bold]{summary['games']}[/bold] games: "
        f"[green]{summary['ok']} ok[/green], [yellow]{summary['empty']} empty[/yellow], "
        f"[red]{summary['failed']} failed[/red], {summary['skipped']} skipped | "
        f"circuit {'[red]open[/red]' if batch.circuit_broken else 'closed'} | "
        f"{batch.heal_passes} heal passes | {batch.elapsed_seconds:.1f}s"
    )


def render_events(events: list[dict]) -> None:
    table = Table(title="Upcoming Events", header_style="bold cyan", border_style="dim")
    table.add_column("Event ID", style="white", no_wrap=True)
    table.add_column("Away")
    table.add_column("Home")
    table.add_column("Tip-off", style="dim")
    for event in events:
        table.add_row(
            event.get("id", ""),
            event.get("away_team", ""),
            event.get("home_team", ""),
            event.get("commence_time", ""),
        )
    console.print(table)


def render_health(health) -> None:
    table = Table(title=f"Data Sources ({health.status})", header_style="bold cyan", border_style="dim")
    table.add_column("Source", style="white")
    table.add_column("Status", justify="center")
    table.add_column("Failures", justify="right")
    table.add_column("Last error", style="dim")
    for name, source in health.sources.items():
        table.add_row(
            name,
            source.status.value,
            str(source.consecutive_failures),
            source.error_message or "",
        )
    console.print(table)
    credits = health.odds_credits
    if credits.get("remaining") is not None:
        console.print(f"[dim]Odds API credits: {credits['remaining']} remaining, {credits['used']} used[/dim]")


def render_calibration(calibrator) -> None:
    metrics = calibrator.last_metrics
    table = Table(title="Temperature Calibration", header_style="bold cyan", border_style="dim")
    table.add_column("Metric", style="white")
    table.add_column("Value", justify="right")
    table.add_row("Temperature", f"{calibrator.temperature:.3f}")
    table.add_row("Samples", str(metrics.n_samples))
    table.add_row("ECE", f"{metrics.ece:.4f}")
    table.add_row("MCE", f"{metrics.mce:.4f}")
    table.add_row("Brier", f"{metrics.brier_score:.4f}")
    table.add_row("Log loss", f"{metrics.log_loss:.4f}")
    console.print(table)
    if not metrics.is_well_calibrated:
        console.print("[yellow]ECE above 0.05 after fitting; check the graded sample[/yellow]")


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    from nba_props.config.settings import get_settings
    from nba_props.scheduler.jobs import run_calibration, run_discover, run_health_check, run_refresh

    settings = get_settings()
    configure_logging(settings, debug=args.debug)

    try:
        if args.command == "events":
            render_events(await run_discover(settings))
        elif args.command == "health":
            render_health(await run_health_check(settings))
        elif args.command == "calibrate":
            render_calibration(run_calibration(settings, args.input, args.output))
        else:
            batch = await run_refresh(
                settings,
                event_ids=args.event_id,
                engines=args.engines,
                store_results=not args.no_store,
            )
            render_batch(batch)
        return 0
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nba-props",
        description="NBA Props - player prop scoring and parlay assembly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    nba-props refresh                     Refresh every upcoming game
    nba-props refresh --event-id ID       Refresh one game
    nba-props refresh --engines edge      EdgeBoard only
    nba-props refresh --no-store          Print results without storing
    nba-props events                      List upcoming events
    nba-props calibrate --input picks.csv Fit the EdgeBoard temperature
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    refresh = subparsers.add_parser("refresh", help="Refresh props for a batch of games")
    refresh.add_argument(
        "--event-id",
        action="append",
        default=None,
        help="Event id to refresh (repeatable); all upcoming games when omitted",
    )
    refresh.add_argument(
        "--engines",
        nargs="+",
        choices=list(ALL_ENGINES),
        default=list(ALL_ENGINES),
        help="Engines to run",
    )
    refresh.add_argument("--no-store", action="store_true", help="Do not write results")
    refresh.add_argument(
        "--debug", action="store_true", default=argparse.SUPPRESS, help="Enable debug logging"
    )

    subparsers.add_parser("events", help="List upcoming event ids")
    subparsers.add_parser("health", help="Show data source health")

    calibrate = subparsers.add_parser("calibrate", help="Fit the EdgeBoard temperature on graded picks")
    calibrate.add_argument(
        "--input", required=True, help="CSV of graded picks with probability and hit columns"
    )
    calibrate.add_argument(
        "--output", default=None, help="Calibrator file; EDGE_CALIBRATOR_PATH or data/ when omitted"
    )

    parser.set_defaults(command="refresh", event_id=None, engines=list(ALL_ENGINES), no_store=False)
    return parser


def main() -> None:
    """Main entry point for CLI."""
    args = build_parser().parse_args()
    exit_code = asyncio.run(main_async(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
