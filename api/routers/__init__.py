"""API routers for NBA Props."""

from . import games, health, slips

__all__ = [
    "games",
    "health",
    "slips",
]
