"""
Starlette-based web server for tabkeeper.

The host environment (browser bridge) talks to the auto-save coordinator
through these endpoints:
- /messages: tab messages (<ns>.init, <ns>.save)
- /external: external control (enableAutoSave, isAutoSaveEnabled)
- /events/*: tab lifecycle events
- /refresh, /pending, /outbox: maintenance and inspection
"""

import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from tabkeeper.adapters import build_default_collaborators
from tabkeeper.autosave import AutoSaveCoordinator, Collaborators
from tabkeeper.autosave.fetch import HttpFetcher
from tabkeeper.config import CONFIG
from tabkeeper.logger import get_logger, setup_logging
from tabkeeper.routes.autosave_routes import (
    get_outbox,
    get_pending,
    post_external,
    post_lifecycle_event,
    post_loaded,
    post_message,
    post_refresh,
    post_replaced,
)

logger = get_logger(__name__)


def create_app(collaborators: Optional[Collaborators] = None) -> Starlette:
    """
    Build the application. The coordinator is created on startup and
    stopped on shutdown.

    Args:
        collaborators: Overrides the default in-memory/local collaborators.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Application startup - initializing auto-save coordinator")
        coordinator = AutoSaveCoordinator(
            collaborators or build_default_collaborators(CONFIG),
            fetcher_factory=lambda: HttpFetcher(timeout=CONFIG.fetch_timeout),
            artifact_dir=CONFIG.artifacts_dir,
            closed_marker_ttl=CONFIG.closed_marker_ttl,
        )
        await coordinator.start()
        app.state.coordinator = coordinator
        try:
            yield
        finally:
            logger.info("Application shutdown - stopping auto-save coordinator")
            await coordinator.stop()
            app.state.coordinator = None

    return Starlette(
        routes=[
            Route("/messages", post_message, methods=["POST"]),
            Route("/external", post_external, methods=["POST"]),
            Route("/events/replaced", post_replaced, methods=["POST"]),
            Route("/events/loaded", post_loaded, methods=["POST"]),
            Route("/events/{event}", post_lifecycle_event, methods=["POST"]),
            Route("/refresh", post_refresh, methods=["POST"]),
            Route("/pending", get_pending, methods=["GET"]),
            Route("/outbox", get_outbox, methods=["GET"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["*"],
                allow_headers=["*"],
            )
        ],
        lifespan=lifespan,
    )


app = create_app()


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the app with uvicorn."""
    import uvicorn

    host = host or CONFIG.host
    port = port or CONFIG.port
    logger.info(f"Starting tabkeeper server on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=CONFIG.log_level.lower())


if __name__ == "__main__":
    if "--debug" in sys.argv:
        os.environ["LOG_LEVEL"] = "DEBUG"
        CONFIG.reload()
    setup_logging(level=CONFIG.log_level, log_file=CONFIG.log_file)
    run()
