"""
FastAPI application for NBA Props API.

Read-only REST API over the stored batch output:
- Health check endpoints
- Per-game EdgeBoard results and Parlay Stack legs
- The latest parlay slips

Run with:
    uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import games, health, slips
from api.state import AppState

logger = logging.getLogger(__name__)


def create_app(state: Optional[AppState] = None) -> FastAPI:
    """Build the application, optionally around a prepared state."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting NBA Props API...")
        app_state = state or AppState()
        await app_state.initialize()
        app.state.app_state = app_state

        yield

        logger.info("Shutting down NBA Props API...")
        await app_state.shutdown()

    app = FastAPI(
        title="NBA Props API",
        description="Scored NBA player props, validated parlay legs and slips",
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(games.router, prefix="/api", tags=["Games"])
    app.include_router(slips.router, prefix="/api", tags=["Slips"])

    @app.get("/")
    async def root():
        """Root endpoint pointing at the API documentation."""
        return {
            "name": "NBA Props API",
            "version": "0.1.0",
            "docs": "/api/docs",
            "health": "/api/health",
        }

    return app


app = create_app()
