"""
Health Router.

Public, unauthenticated endpoint for health checks, suitable for container
liveness checks and uptime monitors. It reports the database connectivity status so a
broken store shows up as ``degraded`` rather than a hard failure, along with
basic CPU and memory usage of the host.
"""

from datetime import datetime, timezone
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Request

from core.logging_config import get_logger

logger = get_logger(__name__)

health_router = APIRouter(tags=["Health"])


def get_system_stats() -> Dict[str, Any]:
    """Current CPU and memory usage"""
    try:
        memory = psutil.virtual_memory()
        return {
            "cpu_percent": psutil.cpu_percent(interval=None),
            "cpu_count": psutil.cpu_count(),
            "memory_percent": memory.percent,
            "memory_available_bytes": memory.available,
        }
    except Exception as e:
        logger.warning(f"Failed to collect system stats: {e}")
        return {}


@health_router.get("/healthcheck")
async def health_check(request: Request) -> Dict[str, Any]:
    """Basic health check endpoint (no authentication required)"""
    logger.debug("Health check requested")

    database_info = await request.app.state.database.health_check()
    status = "healthy" if database_info["connection_healthy"] else "degraded"

    return {
        "success": True,
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": request.app.version,
        "environment": request.app.state.settings.environment,
        "database": database_info,
        "system": get_system_stats(),
    }
