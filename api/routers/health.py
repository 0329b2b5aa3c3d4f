"""Health check endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Health of the API and a summary of the last stored batch.

    "degraded" when the store is unavailable or the last batch tripped the
    circuit breaker.
    """
    app_state = request.app.state.app_state
    components = app_state.get_health_status()

    last_batch = components.get("last_batch") or {}
    is_healthy = components.get("initialized", False) and not last_batch.get("circuit_broken", False)

    return {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": datetime.now().isoformat(),
        "components": components,
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, Any]:
    """Returns 200 if the service is alive (even if not fully ready)."""
    return {
        "alive": True,
        "timestamp": datetime.now().isoformat(),
    }
