"""Tests for MetricsService wiring: snapshot + reference data + org mapping."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from src.salesdash.cache.reference import ReferenceData
from src.salesdash.cache.schemas import Deal, DealStatus
from src.salesdash.cache.store import DealCacheStore
from src.salesdash.metrics.filters import DealFilter
from src.salesdash.metrics.service import MetricsService
from src.salesdash.org.repository import OrgRepository
from src.salesdash.org.schemas import PersonCreate, TeamCreate
from tests.conftest import FakeDealSource

NOW = datetime(2024, 1, 31, 12, tzinfo=timezone.utc)
JANUARY = DealFilter(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))


def _won(deal_id: int, user_id: int, value: float) -> Deal:
    return Deal(
        id=deal_id,
        value=value,
        status=DealStatus.WON,
        pipeline_id=1,
        stage_id=4,
        user_id=user_id,
        add_time=datetime(2024, 1, 2, tzinfo=timezone.utc),
        won_time=datetime(2024, 1, 10, tzinfo=timezone.utc),
        deal_type="13",
        country="267",
        origin="15",
        sales_cycle_days=8,
    )


@pytest.fixture
async def service(session_factory, settings):
    store = DealCacheStore(session_factory)
    await store.replace_all([_won(1, 7, 1000), _won(2, 8, 500), _won(3, 9, 250)])

    org = OrgRepository(session_factory)
    sales = await org.create_team(TeamCreate(name="sales", display_name="Sales"))
    await org.create_person(PersonCreate(name="Ana Gomez", team_id=sales.id))
    await org.create_person(PersonCreate(name="Luis", team_id=sales.id, pipedrive_user_id=8))

    source = FakeDealSource(
        users=[{"id": 7, "name": "Ana Gomez"}, {"id": 8, "name": "Luis Perez"}, {"id": 9, "name": "Eva"}],
        products={1: [{"name": "Plan A", "quantity": 1, "sum": 1000}]},
    )
    return MetricsService(
        store=store,
        reference=ReferenceData(source, settings),
        org_repository=org,
        settings=settings,
        source=source,
        clock=lambda: NOW,
    )


class TestMetricsService:
    async def test_summary_reads_snapshot(self, service):
        summary = await service.summary(JANUARY)

        assert summary.total_revenue == 1750
        assert summary.logos_won == 3

    async def test_team_filter_resolves_members(self, service, session_factory):
        team = (await OrgRepository(session_factory).list_teams())[0]

        summary = await service.summary(JANUARY.model_copy(update={"team_id": team.id}))

        assert summary.total_revenue == 1500

    async def test_unknown_team_matches_nothing(self, service):
        summary = await service.summary(JANUARY.model_copy(update={"team_id": 999}))
        assert summary.total_revenue == 0

    async def test_person_filter(self, service):
        summary = await service.summary(JANUARY.model_copy(update={"person_id": 9}))
        assert summary.total_revenue == 250

    async def test_rankings_use_upstream_names_and_teams(self, service):
        users = await service.user_ranking(JANUARY)
        teams = await service.team_ranking(JANUARY)

        assert [e.name for e in users] == ["Ana Gomez", "Luis Perez", "Eva"]
        assert [(e.name, e.value) for e in teams] == [("Sales", 1500)]

    async def test_teams_view_groups_members(self, service):
        view = await service.teams_view(JANUARY)

        names = {t.team_name: len(t.members) for t in view.teams}
        assert names == {"Sales": 2, "Sin equipo": 1}

    async def test_nc_meetings_window_uses_clock(self, service):
        weeks = await service.nc_meetings_last_weeks(DealFilter(), weeks=2)
        assert [w.week for w in weeks] == ["2024-W04", "2024-W05"]

    async def test_product_stats(self, service):
        stats = await service.product_stats(JANUARY)
        assert [(p.name, p.revenue) for p in stats] == [("Plan A", 1000)]

    async def test_product_stats_without_source(self, service, session_factory, settings):
        bare = MetricsService(
            store=DealCacheStore(session_factory),
            reference=ReferenceData(FakeDealSource(), settings),
            org_repository=OrgRepository(session_factory),
            settings=settings,
        )
        with pytest.raises(RuntimeError):
            await bare.product_stats(JANUARY)
