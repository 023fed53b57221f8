"""Liveness, readiness and component health."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter()


def _app_state(request: Request) -> Any:
    # Health must answer before startup finishes, so skip the initialized check
    return request.app.state.app_state


def _stamp() -> str:
    return datetime.now().isoformat()


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Component report plus the current betting window.

    "degraded" means startup failed or the Sleeper circuit is open; lines and
    settlement are unavailable until it recovers.
    """
    app_state = _app_state(request)
    components = app_state.get_health_status()
    sleeper_status = (components.get("sleeper") or {}).get("status")
    degraded = not components.get("initialized") or sleeper_status == "unhealthy"

    window = app_state.lock_window
    return {
        "status": "degraded" if degraded else "healthy",
        "timestamp": _stamp(),
        "betting": window.status() if window is not None else None,
        "components": components,
    }


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict[str, Any]:
    """Ready once every component has been built."""
    return {"ready": _app_state(request).is_initialized, "timestamp": _stamp()}


@router.get("/health/live")
async def liveness_check() -> dict[str, Any]:
    return {"alive": True, "timestamp": _stamp()}
