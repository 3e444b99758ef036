"""
Richest - Main Application Entry Point

FastAPI application exposing the ``/run`` WebSocket that executes test
snippets against a per-connection browser session.
"""

from contextlib import asynccontextmanager
from typing import Any, cast

import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from richest import __version__
from richest.config import settings
from richest.core.sessions import registry

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(settings.LOG_FILE)
        if settings.LOG_FILE
        else logging.NullHandler(),
    ],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager - handles startup and shutdown events.
    """
    # Startup
    logger.info("🚀 Richest runner starting up...")
    logger.info(f"📁 Scratch directory: {settings.scratch_dir}")
    logger.info(
        f"🔧 Browser: {settings.BROWSER_TYPE} "
        f"({'headless' if settings.BROWSER_HEADLESS else 'headed'})"
    )

    yield

    # Shutdown
    logger.info("🛑 Richest runner shutting down...")

    # Close browsers of connections still open (important for `--reload`)
    try:
        await registry.shutdown(timeout_seconds=5.0)
    except Exception as e:
        logger.warning("Session shutdown encountered an error: %s", e)


# Initialize FastAPI application
app = FastAPI(
    title="Richest",
    description="Remote runner for browser test snippets",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Configure CORS for local development
if settings.APP_DEBUG:
    app.add_middleware(
        cast(Any, CORSMiddleware),
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info(f"🔓 CORS enabled for origins: {settings.CORS_ORIGINS}")


# ============================================================================
# Routes
# ============================================================================

from richest.api.routes import health  # noqa: E402
from richest.websocket import router as run_router  # noqa: E402

app.include_router(health.router, tags=["health"])
app.include_router(run_router, tags=["run"])


def run() -> None:
    """Serve the application with uvicorn."""
    logger.info(f"Server is running on port {settings.PORT}")
    uvicorn.run(
        app,
        host=settings.APP_HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
