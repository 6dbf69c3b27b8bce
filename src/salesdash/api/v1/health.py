"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). Readiness checks
the database connection and reports the deal cache status.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.salesdash.config import get_settings
from src.salesdash.core.database import get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: database connectivity plus cache status.

    A stale or failed cache does not make the service unready; queries keep
    serving the last committed snapshot.
    """
    checks: dict = {"database": "ok"}
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    refresher = getattr(request.app.state, "cache_refresher", None)
    if refresher is not None and checks["database"] == "ok":
        cache_status = await refresher.get_status()
        checks["cache"] = cache_status.status.value
        checks["cache_stale"] = cache_status.is_stale

    healthy = checks["database"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "degraded", "checks": checks},
    )
