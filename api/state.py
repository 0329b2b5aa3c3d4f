"""
Application state management for FastAPI.

Holds shared state across the application:
- Settings
- The result store written by batch refreshes

The API never runs the pipeline itself; it only reads what the last batch
stored.
"""

import logging
from typing import Any, Optional

from nba_props.database.store import BATCHES, LATEST, ResultStore

logger = logging.getLogger(__name__)


class AppState:
    """
    Centralized application state.

    A store can be injected (tests); otherwise one is opened from settings
    on startup.
    """

    def __init__(self, store: Optional[ResultStore] = None, settings: Any = None):
        self.settings = settings
        self.store = store
        self._initialized = False
        self._init_error: Optional[str] = None

    async def initialize(self) -> None:
        """Open the result store."""
        try:
            if self.settings is None:
                from nba_props.config.settings import get_settings

                self.settings = get_settings()
            if self.store is None:
                self.store = ResultStore.from_settings(self.settings)
            self._initialized = True
            logger.info(f"Result store ready: {self.store.database_url}")
        except Exception as e:
            self._init_error = str(e)
            logger.error(f"Failed to open result store: {e}")

    async def shutdown(self) -> None:
        if self.store is not None:
            self.store.engine.dispose()
        self._initialized = False

    @property
    def last_batch(self) -> Optional[dict]:
        if self.store is None:
            return None
        return self.store.get(BATCHES, LATEST)

    def get_health_status(self) -> dict:
        """Get health status of all components."""
        batch = self.last_batch
        status = {
            "initialized": self._initialized,
            "settings": self.settings is not None,
            "store": self.store is not None,
            "last_batch": batch.get("summary") if batch else None,
        }
        if self._init_error:
            status["init_error"] = self._init_error
        return status
