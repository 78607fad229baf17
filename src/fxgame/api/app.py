"""FastAPI application factory for the game API and event WebSocket."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from fxgame.api.routes import api, ws


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the game API application.

    Args:
        lifespan: Optional async context manager for startup/shutdown.
                  main.py uses it to start and stop the GameSession.

    Returns:
        FastAPI app with JSON routes under /api and the /ws event stream.
        Route handlers read the session from app.state.session.
    """
    app = FastAPI(
        title="FX Prediction Game",
        lifespan=lifespan,
    )
    app.state.hub = ws.EventHub()
    app.include_router(api.router, prefix="/api")
    app.include_router(ws.router)
    return app
