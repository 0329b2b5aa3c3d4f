"""
Batch orchestration.

Provides the batch orchestrator and the job entry points the CLI runs:
- One acquisition per game, both engines concurrently
- Circuit breaker and multi-pass self-heal
- Slip assembly and result storage

Example:
    >>> from nba_props.scheduler import BatchOrchestrator
    >>>
    >>> orchestrator = BatchOrchestrator.from_settings(settings, pipeline, store)
    >>> batch = asyncio.run(orchestrator.run_batch(event_ids))
    >>> batch.summary()
"""

from .orchestrator import (
    ALL_ENGINES,
    EDGE,
    STACK,
    BatchOrchestrator,
    BatchResult,
    GameResult,
    GameStatus,
)
from .jobs import (
    discover_events,
    health_check,
    refresh_games,
    run_discover,
    run_health_check,
    run_refresh,
)

__all__ = [
    "ALL_ENGINES",
    "EDGE",
    "STACK",
    "BatchOrchestrator",
    "BatchResult",
    "GameResult",
    "GameStatus",
    "discover_events",
    "health_check",
    "refresh_games",
    "run_discover",
    "run_health_check",
    "run_refresh",
]
