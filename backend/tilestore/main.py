"""FastAPI application entrypoint and configuration.

This module provides the application factory that builds the SQLite blob
store, sets up CORS middleware, includes the tile and layer routers, maps
blob store errors onto HTTP responses and exposes a health check endpoint.

Example:
    The application can be run with uvicorn:
        $ uvicorn tilestore.main:app --reload

    Or built against a custom storage directory:
        >>> from tilestore.core.config import Settings
        >>> from tilestore.main import create_app
        >>> app = create_app(Settings(storage_dir=Path("/var/cache/tiles")))
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import fastapi
from fastapi import responses
from fastapi.middleware import cors

from tilestore.api import layers, tiles
from tilestore.core import config, errors, logging_setup
from tilestore.services import blobstore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


def _status_for(exc: errors.TileStoreError) -> int:
    """HTTP status code reported for a blob store error."""
    if isinstance(exc, errors.TargetExistsError):
        return 409
    if isinstance(exc, errors.NotImplementedOperationError):
        return 501
    return 500


def create_app(settings: config.Settings | None = None) -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Builds the blob store for the configured storage directory and keeps it
    on ``app.state.blob_store``; its connections are closed when the
    application shuts down.

    Args:
        settings: Settings to use instead of the cached environment settings.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = settings or config.get_settings()
    logging_setup.setup_logging(settings.log_level)
    store = blobstore.get_blob_store(settings)

    @contextlib.asynccontextmanager
    async def lifespan(_app: fastapi.FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            store.destroy()

    app = fastapi.FastAPI(title="Tile Store", version="0.1.0", lifespan=lifespan)
    app.state.blob_store = store

    app.include_router(tiles.router)
    app.include_router(layers.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(errors.TileStoreError)
    async def store_error(
        _request: fastapi.Request,
        exc: errors.TileStoreError,
    ) -> responses.JSONResponse:
        """Report blob store failures with a JSON detail message."""
        return responses.JSONResponse(
            status_code=_status_for(exc),
            content={"detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
