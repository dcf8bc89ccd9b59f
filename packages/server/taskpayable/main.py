"""
TaskPayable API Server

Entry point for the FastAPI application hosting the authorization engine.
"""

import structlog
from fastapi import FastAPI

from taskpayable.core.config import get_settings
from taskpayable.core.errors import install_error_handlers
from taskpayable.core.logging import configure_logging

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="TaskPayable",
        description="Multi-tenant task and invoicing platform.",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    # Every engine error renders as {"error": {...}}
    install_error_handlers(app)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        log.info("taskpayable.starting", debug=settings.debug)

    return app


app = create_app()
