"""FastAPI application factory for the sales dashboard backend."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from src.salesdash.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.salesdash.api.v1.router import router as v1_router
from src.salesdash.cache.reference import ReferenceData
from src.salesdash.cache.refresh import CacheRefresher, RefreshLock
from src.salesdash.cache.store import DealCacheStore
from src.salesdash.config import get_settings
from src.salesdash.core.database import close_db, get_session, init_db
from src.salesdash.core.monitoring import MetricsMiddleware, get_metrics_response
from src.salesdash.crm.pipedrive import PipedriveSource
from src.salesdash.metrics.service import MetricsService
from src.salesdash.org.repository import OrgRepository


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB and services, warm the cache, stop loops on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    if not settings.PIPEDRIVE_API_TOKEN:
        log.warning("pipedrive.token_missing")

    source = PipedriveSource(
        api_token=settings.PIPEDRIVE_API_TOKEN,
        base_url=settings.PIPEDRIVE_BASE_URL,
        timeout=settings.PIPEDRIVE_TIMEOUT_SECONDS,
    )
    store = DealCacheStore(get_session)
    reference = ReferenceData(source, settings)
    org_repository = OrgRepository(get_session)
    refresher = CacheRefresher(source, store, settings, lock=RefreshLock())

    app.state.deal_source = source
    app.state.deal_cache_store = store
    app.state.reference_data = reference
    app.state.org_repository = org_repository
    app.state.cache_refresher = refresher
    app.state.metrics_service = MetricsService(
        store, reference, org_repository, settings, source=source
    )

    # A failed warm-up must not keep the API down; status reports the error.
    if settings.CACHE_WARM_ON_STARTUP:
        try:
            result = await refresher.ensure_warm()
            if result is not None:
                log.info("cache.warmup_complete", success=result.success, message=result.message)
        except Exception:
            log.warning("cache.warmup_failed", exc_info=True)

    if settings.CACHE_AUTO_REFRESH:
        refresher.start_auto_refresh()

    log.info("app.started", environment=settings.ENVIRONMENT.value)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    await refresher.stop_auto_refresh()
    await source.aclose()
    await close_db()
    log.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Sales Dashboard API",
        version="0.1.0",
        description="Pipedrive deal cache and sales analytics",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
