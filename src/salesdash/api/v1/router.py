"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.salesdash.api.v1 import cache, dashboard, health, org, reference

router = APIRouter(prefix="/api/v1")

router.include_router(health.router)
router.include_router(cache.router)
router.include_router(dashboard.router)
router.include_router(org.router)
router.include_router(reference.router)
