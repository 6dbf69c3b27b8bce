"""Dashboard aggregation endpoints.

Every endpoint takes the same filter query parameters
(start_date, end_date, deal_type, countries, origins, team_id, person_id;
list parameters comma-separated) and returns one view computed from the
cached snapshot.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError

from src.salesdash.metrics.filters import DealFilter
from src.salesdash.metrics.schemas import (
    ConversionFunnel,
    DashboardSummary,
    DealTypeStats,
    DirectMeetings,
    DistributionSlice,
    LossReasons,
    MonthlyRevenue,
    ProductStat,
    QuarterlyComparison,
    RankingEntry,
    RegionBreakdown,
    RegionSalesCycle,
    RegionTopOrigins,
    TeamsView,
    WeeklyClosureRate,
    WeeklyCount,
    WeeklyValue,
)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _get_metrics_service(request: Request) -> Any:
    """Retrieve MetricsService from app.state, 503 if not available."""
    service = getattr(request.app.state, "metrics_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Metrics service not initialized",
        )
    return service


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def get_deal_filter(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    deal_type: str | None = Query(None),
    countries: str | None = Query(None, description="Comma-separated country codes"),
    origins: str | None = Query(None, description="Comma-separated origin codes"),
    team_id: int | None = Query(None),
    person_id: int | None = Query(None, description="Upstream user id"),
) -> DealFilter:
    try:
        return DealFilter(
            start_date=start_date,
            end_date=end_date,
            deal_type=deal_type,
            countries=_split(countries),
            origins=_split(origins),
            team_id=team_id,
            person_id=person_id,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc


# ── Headline / time series ───────────────────────────────────────────────────


@router.get("/summary", response_model=DashboardSummary)
async def get_summary(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).summary(filters)


@router.get("/revenue-history", response_model=list[WeeklyValue])
async def get_revenue_history(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).revenue_history(filters)


@router.get("/meetings-history", response_model=list[WeeklyCount])
async def get_meetings_history(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).meetings_history(filters)


@router.get("/closure-rate-history", response_model=list[WeeklyClosureRate])
async def get_closure_rate_history(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).closure_rate_history(filters)


@router.get("/monthly-revenue-by-type", response_model=list[MonthlyRevenue])
async def get_monthly_revenue_by_type(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).monthly_revenue_by_type(filters)


@router.get("/nc-meetings-weekly", response_model=list[WeeklyCount])
async def get_nc_meetings_weekly(
    request: Request,
    weeks: int = Query(10, ge=1, le=104),
    filters: DealFilter = Depends(get_deal_filter),
):
    """New-customer meetings for the last `weeks` weeks (date range ignored)."""
    return await _get_metrics_service(request).nc_meetings_last_weeks(filters, weeks=weeks)


# ── Regional ─────────────────────────────────────────────────────────────────


@router.get("/regional", response_model=list[RegionBreakdown])
async def get_regional(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).regional_breakdown(filters)


@router.get("/quarterly-region-comparison", response_model=QuarterlyComparison)
async def get_quarterly_region_comparison(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).quarterly_region_comparison(filters)


@router.get("/top-origins-by-region", response_model=list[RegionTopOrigins])
async def get_top_origins_by_region(
    request: Request,
    limit: int = Query(5, ge=1, le=50),
    filters: DealFilter = Depends(get_deal_filter),
):
    return await _get_metrics_service(request).top_origins_by_region(filters, limit=limit)


@router.get("/sales-cycle-by-region", response_model=list[RegionSalesCycle])
async def get_sales_cycle_by_region(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).sales_cycle_by_region(filters)


# ── Funnel / rankings / distributions ────────────────────────────────────────


@router.get("/conversion-funnel", response_model=ConversionFunnel)
async def get_conversion_funnel(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).conversion_funnel(filters)


@router.get("/rankings/users", response_model=list[RankingEntry])
async def get_user_ranking(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    filters: DealFilter = Depends(get_deal_filter),
):
    return await _get_metrics_service(request).user_ranking(filters, limit=limit)


@router.get("/rankings/teams", response_model=list[RankingEntry])
async def get_team_ranking(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).team_ranking(filters)


@router.get("/rankings/sources", response_model=list[RankingEntry])
async def get_source_ranking(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).source_ranking(filters)


@router.get("/source-distribution", response_model=list[DistributionSlice])
async def get_source_distribution(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).source_distribution(filters)


@router.get("/company-size-distribution", response_model=list[DistributionSlice])
async def get_company_size_distribution(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).company_size_distribution(filters)


@router.get("/deal-type-stats", response_model=list[DealTypeStats])
async def get_deal_type_stats(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).deal_type_stats(filters)


# ── Teams / direct / losses / products ───────────────────────────────────────


@router.get("/teams", response_model=TeamsView)
async def get_teams_view(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).teams_view(filters)


@router.get("/direct-meetings", response_model=DirectMeetings)
async def get_direct_meetings(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).direct_meetings(filters)


@router.get("/loss-reasons", response_model=LossReasons)
async def get_loss_reasons(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    return await _get_metrics_service(request).loss_reasons(filters)


@router.get("/product-stats", response_model=list[ProductStat])
async def get_product_stats(request: Request, filters: DealFilter = Depends(get_deal_filter)):
    """Product mix of won deals; calls upstream for up to the configured number of deals."""
    return await _get_metrics_service(request).product_stats(filters)
