"""Slip endpoints - the latest assembled parlay slips."""

from typing import Any, Optional

from fastapi import APIRouter, Query, Request

from nba_props.database.store import LATEST, SLIPS

router = APIRouter()


@router.get("/slips")
async def get_slips(
    request: Request,
    name: Optional[str] = Query(None, description="LOCK, SAFE or VALUE"),
) -> dict[str, Any]:
    """
    Slips from the most recent batch.

    An empty list is a valid answer: it means no policy could fill a slip.
    """
    store = request.app.state.app_state.store
    doc = (store.get(SLIPS, LATEST) if store is not None else None) or {}
    slips = doc.get("slips", [])
    if name:
        slips = [slip for slip in slips if slip.get("name") == name.upper()]
    return {
        "count": len(slips),
        "slips": slips,
        "created_at": doc.get("created_at"),
    }
