"""Entry point for the FX prediction game.

Builds a GameSession from settings and either serves it through the game
API (default) or runs it headless until SIGINT/SIGTERM. When the API is
enabled, the session and uvicorn share one asyncio event loop and the
session is started and stopped by FastAPI's lifespan.
"""

import asyncio
import signal
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from fxgame.api.app import create_app
from fxgame.config import AppSettings
from fxgame.logging import get_logger, setup_logging
from fxgame.session import GameSession


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the session on startup, wire the WebSocket hub, stop it on shutdown."""
    logger = get_logger("fxgame.main")
    session: GameSession = app.state.session

    await session.start()
    app.state.hub.attach(session)
    logger.info("lifespan_started", mode=session.feed.mode.value)

    yield

    await app.state.hub.stop()
    await session.stop()
    logger.info("fx_game_stopped")


async def _run_headless(session: GameSession) -> None:
    """Run the session without a web server until a shutdown signal arrives."""
    logger = get_logger("fxgame.main")
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)

    await session.start()
    try:
        await stop_event.wait()
    finally:
        await session.stop()
        logger.info("fx_game_stopped")


async def run() -> None:
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("fxgame.main")

    session = GameSession(settings)

    if settings.server.enabled:
        app = create_app(lifespan=lifespan)
        app.state.session = session

        logger.info(
            "starting_with_api",
            host=settings.server.host,
            port=settings.server.port,
            mode=settings.feed.mode,
        )
        config = uvicorn.Config(
            app,
            host=settings.server.host,
            port=settings.server.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        logger.info("starting_headless", mode=settings.feed.mode)
        await _run_headless(session)


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
