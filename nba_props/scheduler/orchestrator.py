"""
Batch orchestrator for refreshing a slate of games.

Handles:
- One acquisition per game, then EdgeBoard and Parlay Stack concurrently
- A circuit breaker that skips the rest of the batch after consecutive
  critical, empty games
- Multi-pass self-heal of empty, failed and skipped games within the
  invocation's time budget
- Slip assembly from the cross-game leg pool and storage of the output
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

from loguru import logger

from nba_props.betting.edge_board import EdgeBoardEngine, EdgeBoardResult
from nba_props.betting.parlay_stack import ParlayLeg, ParlayStackEngine, ParlayStackResult
from nba_props.betting.slip_builder import ParlaySlip, build_slips
from nba_props.config.settings import OrchestratorSettings
from nba_props.data.models import DataHealth, SharedData
from nba_props.data.sources.base import ConfigurationError
from nba_props.database.store import BATCHES, GAMES, LATEST, SLIPS, ResultStore

EDGE = "edge"
STACK = "stack"
ALL_ENGINES = (EDGE, STACK)


class GameStatus(str, Enum):
    """Outcome of processing one game."""

    OK = "ok"
    EMPTY = "empty"  # Engines ran but produced nothing
    FAILED = "failed"  # Acquisition or every engine raised
    SKIPPED = "skipped"  # Circuit breaker open


@dataclass
class GameResult:
    """Per-game output plus diagnostics."""

    event_id: str
    status: GameStatus
    edge: Optional[EdgeBoardResult] = None
    stack: Optional[ParlayStackResult] = None
    health: Optional[DataHealth] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    game_time: Optional[datetime] = None
    errors: dict[str, str] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    attempts: int = 1

    @property
    def edge_count(self) -> int:
        return len(self.edge.results) if self.edge else 0

    @property
    def stack_count(self) -> int:
        return len(self.stack.legs) if self.stack else 0

    @property
    def result_count(self) -> int:
        return self.edge_count + self.stack_count

    @property
    def legs(self) -> list[ParlayLeg]:
        return list(self.stack.legs) if self.stack else []

    @property
    def is_critical_empty(self) -> bool:
        """Counts toward the circuit breaker: critical (or no) data and no results."""
        if self.status is GameStatus.SKIPPED or self.result_count > 0:
            return False
        return self.health is None or self.health.is_critical

    @property
    def needs_retry(self) -> bool:
        return self.status in (GameStatus.EMPTY, GameStatus.FAILED, GameStatus.SKIPPED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "status": self.status.value,
            "teams": {"home": self.home_team, "away": self.away_team},
            "game_time": self.game_time.isoformat() if self.game_time else None,
            "edge_board": self.edge.to_dict() if self.edge else None,
            "parlay_stack": self.stack.to_dict() if self.stack else None,
            "health": self.health.to_dict() if self.health else None,
            "diagnostics": {
                "edge_results": self.edge_count,
                "stack_legs": self.stack_count,
                "errors": dict(self.errors),
                "elapsed_seconds": round(self.elapsed_seconds, 2),
                "attempts": self.attempts,
            },
        }


@dataclass
class BatchResult:
    """Outcome of one batch invocation."""

    games: list[GameResult] = field(default_factory=list)
    slips: list[ParlaySlip] = field(default_factory=list)
    circuit_broken: bool = False
    heal_passes: int = 0
    heal_aborted: bool = False
    started_at: datetime = field(default_factory=datetime.now)
    elapsed_seconds: float = 0.0

    def count(self, status: GameStatus) -> int:
        return sum(1 for game in self.games if game.status is status)

    @property
    def legs(self) -> list[ParlayLeg]:
        return [leg for game in self.games for leg in game.legs]

    def summary(self) -> dict[str, Any]:
        return {
            "games": len(self.games),
            **{status.value: self.count(status) for status in GameStatus},
            "edge_results": sum(game.edge_count for game in self.games),
            "stack_legs": sum(game.stack_count for game in self.games),
            "slips": [slip.name for slip in self.slips],
            "circuit_broken": self.circuit_broken,
            "heal_passes": self.heal_passes,
            "heal_aborted": self.heal_aborted,
            "started_at": self.started_at.isoformat(),
            "elapsed_seconds": round(self.elapsed_seconds, 2),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary(),
            "games": [
                {"event_id": game.event_id, "status": game.status.value, "results": game.result_count}
                for game in self.games
            ],
        }


class BatchOrchestrator:
    """
    Runs acquisition and both engines across a batch of games.

    Example:
        >>> orchestrator = BatchOrchestrator(pipeline, edge_engine, stack_engine, store)
        >>> batch = await orchestrator.run_batch(["e1", "e2", "e3"])
        >>> batch.summary()["ok"]
        3
    """

    def __init__(
        self,
        pipeline,
        edge_engine: Optional[EdgeBoardEngine] = None,
        stack_engine: Optional[ParlayStackEngine] = None,
        store: Optional[ResultStore] = None,
        settings: Optional[OrchestratorSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.pipeline = pipeline
        self.edge_engine = edge_engine
        self.stack_engine = stack_engine
        self.store = store
        self.settings = settings or OrchestratorSettings()
        self._clock = clock
        self._sleep = sleep
        self.logger = logger.bind(component="orchestrator")

    @classmethod
    def from_settings(cls, settings, pipeline, store: Optional[ResultStore] = None) -> "BatchOrchestrator":
        return cls(
            pipeline,
            edge_engine=EdgeBoardEngine.from_settings(settings, pipeline.inference),
            stack_engine=ParlayStackEngine.from_settings(settings),
            store=store,
            settings=settings.orchestrator,
        )

    # ------------------------------------------------------------------
    # Single game
    # ------------------------------------------------------------------

    async def run_pipelines(
        self, shared: SharedData, engines: Iterable[str] = ALL_ENGINES
    ) -> tuple[Optional[EdgeBoardResult], Optional[ParlayStackResult], dict[str, str]]:
        """Run the requested engines concurrently on one game's shared data."""
        engines = set(engines)
        errors: dict[str, str] = {}

        async def _guarded(name: str, coro):
            try:
                return await coro
            except Exception as e:
                self.logger.error(f"Event {shared.event_id}: {name} engine failed: {e}")
                errors[name] = str(e)
                return None

        tasks = []
        if EDGE in engines and self.edge_engine is not None:
            tasks.append(_guarded(EDGE, self.edge_engine.run(shared)))
        else:
            tasks.append(_noop())
        if STACK in engines and self.stack_engine is not None:
            tasks.append(_guarded(STACK, self.stack_engine.run(shared)))
        else:
            tasks.append(_noop())

        edge, stack = await asyncio.gather(*tasks)
        return edge, stack, errors

    async def process_game(self, event_id: str, engines: Iterable[str] = ALL_ENGINES) -> GameResult:
        """
        Acquire once, then score with both engines.

        ConfigurationError propagates; any other acquisition failure
        becomes a FAILED result.
        """
        started = self._clock()
        try:
            shared = await self.pipeline.fetch_shared_game_data(event_id)
        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.error(f"Event {event_id}: acquisition failed: {e}")
            return GameResult(
                event_id=event_id,
                status=GameStatus.FAILED,
                errors={"acquisition": str(e)},
                elapsed_seconds=self._clock() - started,
            )

        edge, stack, errors = await self.run_pipelines(shared, engines)
        result = GameResult(
            event_id=event_id,
            status=GameStatus.OK,
            edge=edge,
            stack=stack,
            health=shared.health,
            home_team=shared.home_team,
            away_team=shared.away_team,
            game_time=shared.game_time,
            errors=errors,
        )
        if result.result_count == 0:
            result.status = GameStatus.FAILED if errors else GameStatus.EMPTY
        result.elapsed_seconds = self._clock() - started

        self.logger.info(
            f"Event {event_id}: {result.status.value} "
            f"(EB={result.edge_count}, PS={result.stack_count}, "
            f"{result.elapsed_seconds:.1f}s)"
        )
        return result

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def run_batch(
        self,
        event_ids: Sequence[str],
        engines: Iterable[str] = ALL_ENGINES,
    ) -> BatchResult:
        """Process games in order, heal what failed, build slips and store."""
        engines = tuple(engines)
        started = self._clock()
        batch = BatchResult()
        threshold = self.settings.circuit_breaker_threshold
        consecutive = 0

        self.logger.info(f"Batch of {len(event_ids)} games (engines: {', '.join(engines)})")

        for event_id in event_ids:
            if batch.circuit_broken:
                batch.games.append(GameResult(event_id=event_id, status=GameStatus.SKIPPED))
                continue

            result = await self.process_game(event_id, engines)
            batch.games.append(result)

            consecutive = consecutive + 1 if result.is_critical_empty else 0
            if consecutive >= threshold:
                batch.circuit_broken = True
                self.logger.error(
                    f"Circuit breaker open after {consecutive} consecutive critical games; "
                    f"skipping the remaining {len(event_ids) - len(batch.games)}"
                )

        batch.heal_passes, batch.heal_aborted = await self._self_heal(
            batch.games, engines, batch.circuit_broken, started
        )

        batch.slips = build_slips(batch.legs, self.settings.slip_size)
        batch.elapsed_seconds = self._clock() - started

        self.logger.info(
            f"Batch done in {batch.elapsed_seconds:.1f}s: "
            f"{batch.count(GameStatus.OK)} ok, {batch.count(GameStatus.EMPTY)} empty, "
            f"{batch.count(GameStatus.FAILED)} failed, {batch.count(GameStatus.SKIPPED)} skipped, "
            f"{len(batch.slips)} slips"
        )

        if self.store is not None:
            self.store_batch(batch)
        return batch

    def _remaining(self, started: float) -> float:
        """Budget left for new work after the safety margin."""
        elapsed = self._clock() - started
        return self.settings.time_budget_seconds - elapsed - self.settings.safety_margin_seconds

    async def _self_heal(
        self,
        games: list[GameResult],
        engines: Sequence[str],
        circuit_broken: bool,
        started: float,
    ) -> tuple[int, bool]:
        """
        Retry games that ended empty, failed or skipped.

        Returns the number of passes run and whether healing was aborted
        because the first retried game after a breaker trip was still down.
        """
        passes = 0
        trial_done = False

        for pass_number in range(1, self.settings.max_heal_passes + 1):
            pending = [i for i, game in enumerate(games) if game.needs_retry]
            if not pending:
                break
            if self._remaining(started) <= 0:
                self.logger.warning("Time budget exhausted, no further self-heal passes")
                break

            passes = pass_number
            self.logger.info(f"Self-heal pass {pass_number}: retrying {len(pending)} games")

            for index in pending:
                if self._remaining(started) <= 0:
                    self.logger.warning("Time budget exhausted during self-heal")
                    return passes, False

                is_trial = circuit_broken and not trial_done
                if is_trial:
                    cooldown = self.settings.heal_cooldown_seconds
                    self.logger.info(f"Cooling down {cooldown:.0f}s before retrying the first game")
                    await self._sleep(cooldown)
                    trial_done = True

                previous = games[index]
                retried = await self.process_game(previous.event_id, engines)
                retried.attempts = previous.attempts + 1
                games[index] = retried

                if is_trial and retried.needs_retry:
                    self.logger.error(
                        f"Trial game {retried.event_id} still {retried.status.value}; dependency still down, "
                        f"abandoning self-heal"
                    )
                    return passes, True

            healed = sum(1 for i in pending if not games[i].needs_retry)
            self.logger.info(f"Self-heal pass {pass_number}: {healed}/{len(pending)} recovered")

        return passes, False

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def store_batch(self, batch: BatchResult) -> None:
        for game in batch.games:
            # A skipped game never overwrites earlier output for that event
            if game.status is GameStatus.SKIPPED and self.store.get(GAMES, game.event_id):
                continue
            self.store.put(GAMES, game.event_id, game.to_dict())
        self.store.put(
            SLIPS,
            LATEST,
            {
                "slips": [slip.to_dict() for slip in batch.slips],
                "leg_pool": len(batch.legs),
                "created_at": datetime.now().isoformat(),
            },
        )
        self.store.put(BATCHES, LATEST, batch.to_dict())


async def _noop() -> None:
    return None
