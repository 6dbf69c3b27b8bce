"""Shared test fixtures.

Provides:
- In-memory SQLite (aiosqlite) engine with all salesdash tables
- session_factory matching the application's get_session() contract
- FakeDealSource: scripted paginated upstream with failure/gating hooks
- settings: Settings with small, test-friendly values
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

import src.salesdash.cache.models  # noqa: F401
import src.salesdash.org.models  # noqa: F401
from src.salesdash.config import Settings
from src.salesdash.core.database import Base
from src.salesdash.crm.adapter import DealPage, DealSource


class FakeDealSource(DealSource):
    """Scripted DealSource.

    Args:
        deals_by_pipeline: Raw deal dicts returned per pipeline id.
        fail_with: Exception raised by every page fetch when set.
        gate: When set, page fetches wait on this event before returning.
    """

    def __init__(
        self,
        deals_by_pipeline: dict[int, list[dict[str, Any]]] | None = None,
        users: list[dict[str, Any]] | None = None,
        fields: list[dict[str, Any]] | None = None,
        products: dict[int, list[dict[str, Any]]] | None = None,
        fail_with: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.deals_by_pipeline = deals_by_pipeline or {}
        self.users = users or []
        self.fields = fields or []
        self.products = products or {}
        self.fail_with = fail_with
        self.gate = gate
        self.page_calls: list[tuple[int, int, int]] = []

    async def fetch_deals_page(self, pipeline_id: int, start: int, limit: int) -> DealPage:
        self.page_calls.append((pipeline_id, start, limit))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        records = self.deals_by_pipeline.get(pipeline_id, [])
        page = records[start : start + limit]
        more = start + limit < len(records)
        return DealPage(items=page, more_items=more, next_start=start + limit if more else None)

    async def list_users(self) -> list[dict[str, Any]]:
        return self.users

    async def list_deal_fields(self) -> list[dict[str, Any]]:
        return self.fields

    async def list_deal_products(self, deal_id: int) -> list[dict[str, Any]]:
        return self.products.get(deal_id, [])


@pytest.fixture
def settings() -> Settings:
    """Settings with two sync pipelines and a small insert batch."""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        PIPEDRIVE_API_TOKEN="test-token",
        SYNC_PIPELINE_IDS=[1, 2],
        METRICS_PIPELINE_ID=1,
        PIPEDRIVE_PAGE_SIZE=2,
        CACHE_INSERT_BATCH_SIZE=2,
        CACHE_TTL_SECONDS=600,
    )


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory with the same contract as core.database.get_session."""

    async def _factory() -> AsyncGenerator[AsyncSession, None]:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    return _factory
