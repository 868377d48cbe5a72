"""FastAPI application exposing the reporter's operator endpoints"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .api.routes import router, set_reporter
from .reporter import ErrorReporter
from .utils.config import AppConfig, load_config
from .utils.logger import setup_from_config

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the operator app

    The reporter is created and started in the lifespan and exposed through
    /health and /failures.

    Args:
        config: Configuration (default: load_config())

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        app_config = config or load_config()
        setup_from_config(app_config.logging)

        reporter = ErrorReporter(app_config)
        app.state.reporter = reporter
        set_reporter(reporter)

        try:
            await reporter.start()
        except Exception as e:
            logger.error(f"❌ Failed to start error reporter: {e}", exc_info=True)
            raise

        yield

        await reporter.stop()
        set_reporter(None)

    app = FastAPI(
        title="Error Relay",
        description="Error capture pipeline operator endpoints",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": "Error Relay",
            "version": __version__,
            "docs": "/docs",
        }

    return app
