"""
Health Check Endpoints
"""

from typing import Any, Dict

from fastapi import APIRouter, Request, Response

from ... import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Returns 200 if the service is running."""
    return {"status": "healthy", "version": __version__}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, Any]:
    """Returns 200 when the database answers a trivial query."""
    checks = {}
    try:
        await request.app.state.db.fetchrow("SELECT 1 AS ok")
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)[:100]}"
        response.status_code = 503

    pool = getattr(request.app.state, "worker_pool", None)
    if pool is not None:
        checks["workers"] = "running" if pool.running else "stopped"

    return {
        "status": "ready" if response.status_code != 503 else "not_ready",
        "checks": checks,
    }
