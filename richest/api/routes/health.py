"""
Health check endpoints.
"""

from typing import Any

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from richest import __version__
from richest.core.sessions import registry

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def ping() -> str:
    """Liveness probe used by the dashboard."""
    return "Pong!"


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        dict: Service status, version and the number of open sessions
    """
    return {
        "status": "healthy",
        "service": "richest",
        "version": __version__,
        "active_sessions": len(registry),
    }
