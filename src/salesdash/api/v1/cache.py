"""Deal cache endpoints: status query and manual refresh."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from src.salesdash.cache.schemas import CacheStatus, RefreshResult

router = APIRouter(prefix="/cache", tags=["cache"])


def _get_cache_refresher(request: Request) -> Any:
    """Retrieve CacheRefresher from app.state, 503 if not available."""
    refresher = getattr(request.app.state, "cache_refresher", None)
    if refresher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deal cache not initialized",
        )
    return refresher


@router.get("/status", response_model=CacheStatus)
async def get_cache_status(request: Request) -> CacheStatus:
    """Current sync status, staleness and record count."""
    refresher = _get_cache_refresher(request)
    return await refresher.get_status()


@router.post("/refresh", response_model=RefreshResult)
async def refresh_cache(request: Request) -> RefreshResult:
    """Run a refresh now.

    A call made while another refresh is running returns success=false
    without side effects.
    """
    refresher = _get_cache_refresher(request)
    return await refresher.refresh()
