"""
Job entry points invoked once per CLI run.

Each job performs a specific task:
- discover_events: list upcoming games from the odds provider
- refresh_games: run a batch through the orchestrator
- health_check: report data source health
- calibrate_from_file: fit the EdgeBoard temperature on graded picks
- run_refresh: build everything from settings, refresh, and clean up
"""
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Union

import polars as pl
from loguru import logger

from nba_props.betting.calibration import TemperatureCalibrator
from nba_props.data.pipeline import DataPipeline
from nba_props.database.store import ResultStore

from .orchestrator import ALL_ENGINES, BatchOrchestrator, BatchResult

logger = logger.bind(component="jobs")


async def discover_events(pipeline: DataPipeline) -> list[dict]:
    """
    Upcoming events, sorted by tip-off.

    Returns:
        Event dicts with id, home_team, away_team and commence_time
    """
    events = await pipeline.get_events()
    events = [event for event in events if event.get("id")]
    events.sort(key=lambda event: event.get("commence_time") or "")
    logger.info(f"Discovered {len(events)} events")
    return events


async def refresh_games(
    pipeline: DataPipeline,
    orchestrator: BatchOrchestrator,
    event_ids: Optional[Sequence[str]] = None,
    engines: Iterable[str] = ALL_ENGINES,
) -> BatchResult:
    """
    Refresh a batch of games.

    Args:
        pipeline: DataPipeline used for event discovery
        orchestrator: BatchOrchestrator that processes the games
        event_ids: Games to refresh; discovered when omitted
        engines: Subset of ("edge", "stack")

    Returns:
        BatchResult with per-game results and slips
    """
    if not event_ids:
        event_ids = [event["id"] for event in await discover_events(pipeline)]
    if not event_ids:
        logger.warning("No games to refresh")
        return BatchResult()
    return await orchestrator.run_batch(list(event_ids), engines)


async def health_check(pipeline: DataPipeline) -> Any:
    """
    Health of every data source and the cache.

    Returns:
        PipelineHealth with a status per source
    """
    health = await pipeline.health_check()
    for name, source in health.sources.items():
        if source.status.value not in ("healthy", "disabled"):
            logger.warning(f"Data source {name} is {source.status.value}: {source.error_message}")
    logger.debug(f"Health check: {health.status}")
    return health


GRADED_PICK_COLUMNS = ("probability", "hit")


def calibrate_from_file(
    samples_path: Union[str, Path],
    output_path: Union[str, Path],
) -> TemperatureCalibrator:
    """
    Fit the EdgeBoard temperature on graded picks and save the calibrator.

    Args:
        samples_path: CSV with one row per graded pick: ``probability`` (raw
            model probability of the picked side) and ``hit`` (1 or 0)
        output_path: Where the joblib calibrator is written

    Returns:
        The fitted calibrator, with ``last_metrics`` populated
    """
    picks = pl.read_csv(samples_path)
    missing = [column for column in GRADED_PICK_COLUMNS if column not in picks.columns]
    if missing:
        raise ValueError(f"{samples_path} is missing columns: {', '.join(missing)}")

    picks = picks.select(list(GRADED_PICK_COLUMNS)).drop_nulls()
    logger.info(f"Fitting temperature on {picks.height} graded picks from {samples_path}")
    calibrator = TemperatureCalibrator().fit(
        picks["probability"].cast(pl.Float64).to_numpy(),
        picks["hit"].cast(pl.Float64).to_numpy(),
    )
    calibrator.save(output_path)
    return calibrator


async def run_refresh(
    settings,
    event_ids: Optional[Sequence[str]] = None,
    engines: Iterable[str] = ALL_ENGINES,
    store_results: bool = True,
) -> BatchResult:
    """Build the pipeline, engines and store from settings and refresh."""
    pipeline = DataPipeline.from_settings(settings)
    store = ResultStore.from_settings(settings) if store_results else None
    orchestrator = BatchOrchestrator.from_settings(settings, pipeline, store)
    try:
        return await refresh_games(pipeline, orchestrator, event_ids, engines)
    finally:
        await pipeline.close()


async def run_discover(settings) -> list[dict]:
    pipeline = DataPipeline.from_settings(settings)
    try:
        return await discover_events(pipeline)
    finally:
        await pipeline.close()


async def run_health_check(settings) -> Any:
    pipeline = DataPipeline.from_settings(settings)
    try:
        return await health_check(pipeline)
    finally:
        await pipeline.close()


def run_calibration(
    settings,
    samples_path: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
) -> TemperatureCalibrator:
    """Fit and save to ``output_path``, else the configured calibrator path."""
    output = output_path or settings.edge_board.calibrator_path or settings.data_dir / "calibrator.joblib"
    return calibrate_from_file(samples_path, output)
