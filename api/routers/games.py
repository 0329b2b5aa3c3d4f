"""Games endpoints - stored per-game results."""

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from nba_props.database.store import GAMES

router = APIRouter()


class GameSummary(BaseModel):
    """One stored game, without its full result lists."""

    event_id: str
    status: str
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    game_time: Optional[str] = None
    health: Optional[str] = None
    edge_results: int = 0
    stack_legs: int = 0


class GamesListResponse(BaseModel):
    count: int
    games: list[GameSummary]


def _summarize(doc: dict[str, Any]) -> GameSummary:
    teams = doc.get("teams") or {}
    diagnostics = doc.get("diagnostics") or {}
    health = doc.get("health") or {}
    return GameSummary(
        event_id=doc["event_id"],
        status=doc.get("status", "unknown"),
        home_team=teams.get("home"),
        away_team=teams.get("away"),
        game_time=doc.get("game_time"),
        health=health.get("overall"),
        edge_results=diagnostics.get("edge_results", 0),
        stack_legs=diagnostics.get("stack_legs", 0),
    )


@router.get("/games", response_model=GamesListResponse)
async def list_games(
    request: Request,
    status: Optional[str] = Query(None, description="Filter by status (ok, empty, failed, skipped)"),
    limit: int = Query(50, ge=1, le=200),
) -> GamesListResponse:
    """Stored games, most recently refreshed first."""
    store = request.app.state.app_state.store
    docs = store.list(GAMES) if store is not None else []
    games = [_summarize(doc) for doc in docs if status is None or doc.get("status") == status]
    games = games[:limit]
    return GamesListResponse(count=len(games), games=games)


@router.get("/games/{event_id}")
async def get_game(request: Request, event_id: str) -> dict[str, Any]:
    """Full stored result for one game: EdgeBoard, Parlay Stack and health."""
    store = request.app.state.app_state.store
    doc = store.get(GAMES, event_id) if store is not None else None
    if doc is None:
        raise HTTPException(status_code=404, detail=f"No stored result for event {event_id}")
    return doc
