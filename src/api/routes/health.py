"""
Health check endpoints.

Provides endpoints for monitoring application health and status.
"""

from typing import Any, Dict

from fastapi import APIRouter

from config.settings import get_settings
from services.filter_store import FilterStoreError, get_filter_state_service


router = APIRouter(tags=["Health"])

SERVICE_NAME = "search-scope-api"


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
    }


@router.get("/health/detailed")
def detailed_health_check() -> Dict[str, Any]:
    """
    Health with dependency status.

    Checks:
    - Configuration loaded
    - Filter state storage backend
    """
    settings = get_settings()

    store_status: Dict[str, Any]
    try:
        store_status = {"status": "ok", **get_filter_state_service().get_stats()}
    except FilterStoreError as e:
        store_status = {"status": "error", "error": str(e)}

    return {
        "status": "healthy" if store_status["status"] == "ok" else "degraded",
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "checks": {
            "config": "ok",
            "scoping_enabled": settings.enabled,
            "filter_store": store_status,
        },
    }


@router.get("/ready")
def readiness_check() -> Dict[str, str]:
    """
    Kubernetes-style readiness probe.

    Not ready while an explicitly requested storage backend is unreachable.
    """
    try:
        get_filter_state_service()
    except FilterStoreError:
        return {"status": "not_ready", "reason": "filter_store_unavailable"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Kubernetes-style liveness probe."""
    return {"status": "alive"}
