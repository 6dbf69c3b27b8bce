"""MetricsService -- binds the cached snapshot, reference data and org
mapping to the pure view functions.

Every call reads the latest committed snapshot, so queries running during a
refresh see the previous snapshot until the replace transaction commits.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from src.salesdash.cache.reference import ReferenceData
from src.salesdash.cache.schemas import Deal
from src.salesdash.cache.store import DealCacheStore
from src.salesdash.config import Settings
from src.salesdash.crm.adapter import DealSource
from src.salesdash.metrics import direct, funnel, history, losses, products, rankings, regional, summary, teams
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import DealFilter, resolve_owner_ids
from src.salesdash.org.repository import OrgRepository
from src.salesdash.org.resolver import build_user_team_index, resolve_team_user_ids

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetricsService:
    """Dashboard aggregation entry point.

    Args:
        store: Deal cache store (read only here).
        reference: Upstream users and option labels.
        org_repository: Teams and people.
        settings: Pipeline/stage configuration.
        source: Upstream source, needed only for product enrichment.
        clock: Current aware UTC datetime.
    """

    def __init__(
        self,
        store: DealCacheStore,
        reference: ReferenceData,
        org_repository: OrgRepository,
        settings: Settings,
        source: DealSource | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._reference = reference
        self._org = org_repository
        self._settings = settings
        self._source = source
        self._clock = clock

    async def build_context(self, filters: DealFilter) -> MetricsContext:
        """Resolve labels, team membership and the owner restriction for filters."""
        users = await self._reference.users()
        team_list = await self._org.list_teams()
        people = await self._org.list_people()

        team_user_ids = None
        if filters.team_id is not None:
            team_user_ids = resolve_team_user_ids(filters.team_id, people, users)
            logger.debug("metrics.team_resolved", team_id=filters.team_id, users=len(team_user_ids))

        return MetricsContext.from_settings(
            self._settings,
            user_names=await self._reference.user_names(),
            country_labels=await self._reference.country_labels(),
            origin_labels=await self._reference.origin_labels(),
            employee_count_labels=await self._reference.employee_count_labels(),
            user_teams=build_user_team_index(team_list, people, users),
            allowed_user_ids=resolve_owner_ids(filters, team_user_ids),
            now=self._clock(),
        )

    async def _prepare(self, filters: DealFilter) -> tuple[list[Deal], MetricsContext]:
        deals = await self._store.load_deals()
        ctx = await self.build_context(filters)
        return deals, ctx

    async def _run(self, name: str, view: Callable[..., Any], filters: DealFilter, **kwargs: Any) -> Any:
        started = time.perf_counter()
        deals, ctx = await self._prepare(filters)
        result = view(deals, filters, ctx, **kwargs)
        logger.debug(
            "metrics.view_computed",
            view=name,
            deals=len(deals),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return result

    # ── Views ───────────────────────────────────────────────────────────────

    async def summary(self, filters: DealFilter):
        return await self._run("summary", summary.dashboard_summary, filters)

    async def revenue_history(self, filters: DealFilter):
        return await self._run("revenue_history", history.revenue_history, filters)

    async def meetings_history(self, filters: DealFilter):
        return await self._run("meetings_history", history.meetings_history, filters)

    async def closure_rate_history(self, filters: DealFilter):
        return await self._run("closure_rate_history", history.closure_rate_history, filters)

    async def monthly_revenue_by_type(self, filters: DealFilter):
        return await self._run("monthly_revenue_by_type", history.monthly_revenue_by_type, filters)

    async def nc_meetings_last_weeks(self, filters: DealFilter, weeks: int = 10):
        return await self._run("nc_meetings_last_weeks", history.nc_meetings_last_weeks, filters, weeks=weeks)

    async def regional_breakdown(self, filters: DealFilter):
        return await self._run("regional_breakdown", regional.regional_breakdown, filters)

    async def quarterly_region_comparison(self, filters: DealFilter):
        return await self._run("quarterly_region_comparison", regional.quarterly_region_comparison, filters)

    async def top_origins_by_region(self, filters: DealFilter, limit: int = 5):
        return await self._run("top_origins_by_region", regional.top_origins_by_region, filters, limit=limit)

    async def sales_cycle_by_region(self, filters: DealFilter):
        return await self._run("sales_cycle_by_region", regional.sales_cycle_by_region, filters)

    async def conversion_funnel(self, filters: DealFilter):
        return await self._run("conversion_funnel", funnel.conversion_funnel, filters)

    async def user_ranking(self, filters: DealFilter, limit: int | None = 10):
        return await self._run("user_ranking", rankings.user_ranking, filters, limit=limit)

    async def team_ranking(self, filters: DealFilter):
        return await self._run("team_ranking", rankings.team_ranking, filters)

    async def source_ranking(self, filters: DealFilter):
        return await self._run("source_ranking", rankings.source_ranking, filters)

    async def source_distribution(self, filters: DealFilter):
        return await self._run("source_distribution", rankings.source_distribution, filters)

    async def company_size_distribution(self, filters: DealFilter):
        return await self._run("company_size_distribution", rankings.company_size_distribution, filters)

    async def deal_type_stats(self, filters: DealFilter):
        return await self._run("deal_type_stats", rankings.deal_type_stats, filters)

    async def teams_view(self, filters: DealFilter):
        return await self._run("teams_view", teams.teams_view, filters)

    async def direct_meetings(self, filters: DealFilter):
        return await self._run("direct_meetings", direct.direct_meetings, filters)

    async def loss_reasons(self, filters: DealFilter):
        return await self._run("loss_reasons", losses.loss_reasons, filters)

    async def product_stats(self, filters: DealFilter):
        if self._source is None:
            raise RuntimeError("product enrichment requires an upstream source")
        deals, ctx = await self._prepare(filters)
        return await products.product_stats(
            deals,
            filters,
            ctx,
            self._source.list_deal_products,
            limit=self._settings.PRODUCT_ENRICHMENT_LIMIT,
            concurrency=self._settings.PRODUCT_FETCH_CONCURRENCY,
        )
