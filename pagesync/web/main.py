"""FastAPI application receiving Gitea push webhooks.

Provides:
- ``POST /webhook``: single-repository sync for the pushed repository
- ``GET /status``: the most recent reconciliation report
- ``GET /health``: liveness check
"""

from __future__ import annotations

from fastapi import FastAPI

from pagesync import __version__
from pagesync.config import SyncConfig
from pagesync.sync.engine import SyncEngine
from pagesync.web.routers import webhook


def create_app(config: SyncConfig, engine: SyncEngine | None = None) -> FastAPI:
    """Build the application around an engine (created from ``config`` if omitted)."""
    app = FastAPI(
        title="pagesync",
        description="Deploys the pages branch of pushed repositories.",
        version=__version__,
    )
    app.state.engine = engine or SyncEngine(config)
    app.state.token = config.require_token()

    app.include_router(webhook.router)

    @app.get("/health", tags=["meta"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
