"""Tests for CacheRefresher: refresh cycle, locking, status and warmup."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from src.salesdash.cache.refresh import ALREADY_REFRESHING, CacheRefresher, RefreshLock
from src.salesdash.cache.schemas import RefreshResult, SyncStatus
from src.salesdash.cache.store import DealCacheStore
from tests.conftest import FakeDealSource

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _raw(deal_id: int, pipeline_id: int = 1, **overrides) -> dict:
    raw = {
        "id": deal_id,
        "title": f"Deal {deal_id}",
        "value": 1000,
        "status": "open",
        "stage_id": 2,
        "pipeline_id": pipeline_id,
        "user_id": {"id": 7, "name": "Ana"},
        "add_time": "2024-05-01 10:00:00",
    }
    raw.update(overrides)
    return raw


class _Clock:
    """Mutable pinned clock."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _make_refresher(source, session_factory, settings, clock=None, lock=None) -> CacheRefresher:
    return CacheRefresher(
        source=source,
        store=DealCacheStore(session_factory),
        settings=settings,
        lock=lock,
        clock=clock or _Clock(),
    )


class TestRefresh:
    async def test_refresh_merges_pipelines_and_dedupes(self, session_factory, settings):
        source = FakeDealSource(
            deals_by_pipeline={
                1: [_raw(1), _raw(2), _raw(3)],
                2: [_raw(3, pipeline_id=2), _raw(4, pipeline_id=2)],
            }
        )
        refresher = _make_refresher(source, session_factory, settings)

        result = await refresher.refresh()

        assert result.success is True
        assert result.total_records == 4
        assert result.message == "Cache refreshed with 4 deals"
        deals = await DealCacheStore(session_factory).load_deals()
        assert [d.id for d in deals] == [1, 2, 3, 4]
        # Page size 2 -> pipeline 1 needs two pages, pipeline 2 one.
        assert sorted(call[:2] for call in source.page_calls) == [(1, 0), (1, 2), (2, 0)]

    async def test_success_metadata(self, session_factory, settings):
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1)]})
        refresher = _make_refresher(source, session_factory, settings)

        await refresher.refresh()

        status = await refresher.get_status()
        assert status.status == SyncStatus.SUCCESS
        assert status.total_records == 1
        assert status.last_sync_at == T0
        assert status.is_stale is False
        assert status.is_refreshing is False
        assert status.error is None

    async def test_empty_upstream_is_a_successful_sync(self, session_factory, settings):
        refresher = _make_refresher(FakeDealSource(), session_factory, settings)

        result = await refresher.refresh()

        assert result.success is True
        assert result.total_records == 0
        assert (await refresher.get_status()).status == SyncStatus.SUCCESS

    async def test_malformed_records_are_skipped(self, session_factory, settings):
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1), _raw(2, status="archived")]})
        refresher = _make_refresher(source, session_factory, settings)

        result = await refresher.refresh()

        assert result.success is True
        assert result.total_records == 1
        assert result.skipped_records == 1
        assert "1 malformed records skipped" in result.message


class TestRefreshFailure:
    async def test_upstream_failure_keeps_previous_snapshot(self, session_factory, settings):
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1), _raw(2)]})
        refresher = _make_refresher(source, session_factory, settings)
        await refresher.refresh()

        source.fail_with = RuntimeError("upstream down")
        result = await refresher.refresh()

        assert result.success is False
        assert result.message == "Refresh failed: upstream down"
        deals = await DealCacheStore(session_factory).load_deals()
        assert [d.id for d in deals] == [1, 2]

        status = await refresher.get_status()
        assert status.status == SyncStatus.ERROR
        assert status.error == "upstream down"
        # last_sync_at still points at the last good sync
        assert status.last_sync_at == T0

    async def test_lock_released_after_failure(self, session_factory, settings):
        source = FakeDealSource(fail_with=RuntimeError("boom"))
        refresher = _make_refresher(source, session_factory, settings)

        await refresher.refresh()
        assert refresher.is_refreshing is False

        source.fail_with = None
        source.deals_by_pipeline = {1: [_raw(1)]}
        result = await refresher.refresh()
        assert result.success is True


class TestMutualExclusion:
    async def test_concurrent_refresh_is_rejected(self, session_factory, settings):
        gate = asyncio.Event()
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1)]}, gate=gate)
        refresher = _make_refresher(source, session_factory, settings)

        first = asyncio.create_task(refresher.refresh())
        while not source.page_calls:
            await asyncio.sleep(0.01)

        assert (await refresher.get_status()).is_refreshing is True
        second = await refresher.refresh()
        assert second.success is False
        assert second.message == ALREADY_REFRESHING

        gate.set()
        result = await first
        assert result.success is True
        assert (await refresher.get_status()).is_refreshing is False

    async def test_shared_lock_spans_refreshers(self, session_factory, settings):
        lock = RefreshLock()
        assert lock.try_acquire() is True
        refresher = _make_refresher(FakeDealSource(), session_factory, settings, lock=lock)

        result = await refresher.refresh()

        assert result.message == ALREADY_REFRESHING
        lock.release()
        assert (await refresher.refresh()).success is True


class TestStatus:
    async def test_never_synced(self, session_factory, settings):
        refresher = _make_refresher(FakeDealSource(), session_factory, settings)

        status = await refresher.get_status()

        assert status.status == SyncStatus.NEVER_SYNCED
        assert status.total_records == 0
        assert status.is_stale is True
        assert status.last_sync_at is None

    async def test_orphaned_in_progress_reported_stale(self, session_factory, settings):
        """A sync left in_progress by a dead process is not reported as running."""
        store = DealCacheStore(session_factory)
        await store.upsert_metadata(
            settings.CACHE_KEY,
            last_sync_status="in_progress",
            last_sync_at=T0 - timedelta(days=1),
            total_records=12,
        )
        refresher = _make_refresher(FakeDealSource(), session_factory, settings)

        status = await refresher.get_status()

        assert status.status == SyncStatus.STALE
        assert status.is_stale is True
        assert status.is_refreshing is False
        assert status.total_records == 12

    async def test_ttl_staleness(self, session_factory, settings):
        clock = _Clock()
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1)]})
        refresher = _make_refresher(source, session_factory, settings, clock=clock)
        await refresher.refresh()

        clock.now = T0 + timedelta(seconds=settings.CACHE_TTL_SECONDS)
        assert (await refresher.get_status()).is_stale is False

        clock.now = T0 + timedelta(seconds=settings.CACHE_TTL_SECONDS + 1)
        assert (await refresher.get_status()).is_stale is True


class TestWarmup:
    async def test_empty_cache_blocks_on_refresh(self, session_factory, settings):
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1)]})
        refresher = _make_refresher(source, session_factory, settings)

        result = await refresher.ensure_warm()

        assert result is not None
        assert result.success is True
        assert await DealCacheStore(session_factory).count() == 1

    async def test_stale_cache_refreshes_in_background(self, session_factory, settings):
        clock = _Clock()
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1)]})
        refresher = _make_refresher(source, session_factory, settings, clock=clock)
        await refresher.refresh()
        clock.now = T0 + timedelta(hours=1)
        refresher.trigger_background_refresh = MagicMock()

        result = await refresher.ensure_warm()

        assert result is None
        refresher.trigger_background_refresh.assert_called_once()

    async def test_fresh_cache_does_nothing(self, session_factory, settings):
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1)]})
        refresher = _make_refresher(source, session_factory, settings)
        await refresher.refresh()
        refresher.trigger_background_refresh = MagicMock()

        assert await refresher.ensure_warm() is None
        refresher.trigger_background_refresh.assert_not_called()

    async def test_background_refresh_completes(self, session_factory, settings):
        source = FakeDealSource(deals_by_pipeline={1: [_raw(1), _raw(2)]})
        refresher = _make_refresher(source, session_factory, settings)

        result = await refresher.trigger_background_refresh()

        assert result.success is True
        assert await DealCacheStore(session_factory).count() == 2


class TestAutoRefresh:
    async def test_loop_refreshes_until_stopped(self, session_factory, settings):
        refresher = _make_refresher(FakeDealSource(), session_factory, settings)
        ran = asyncio.Event()

        async def fake_refresh():
            ran.set()
            return RefreshResult(success=True, message="ok")

        refresher.refresh = fake_refresh

        task = refresher.start_auto_refresh(interval=0.01)
        assert refresher.start_auto_refresh(interval=0.01) is task

        await asyncio.wait_for(ran.wait(), timeout=2)
        await refresher.stop_auto_refresh()

        assert task.done()

    async def test_loop_skips_while_locked(self, session_factory, settings):
        lock = RefreshLock()
        lock.try_acquire()
        refresher = _make_refresher(FakeDealSource(), session_factory, settings, lock=lock)
        refresher.refresh = AsyncMock()

        refresher.start_auto_refresh(interval=0.01)
        await asyncio.sleep(0.05)
        await refresher.stop_auto_refresh()

        refresher.refresh.assert_not_called()

    async def test_slow_refresh_does_not_delay_next_tick(self, session_factory, settings):
        refresher = _make_refresher(FakeDealSource(), session_factory, settings)
        gate = asyncio.Event()
        calls = 0

        async def slow_refresh():
            nonlocal calls
            calls += 1
            await gate.wait()
            return RefreshResult(success=True, message="ok")

        refresher.refresh = slow_refresh

        refresher.start_auto_refresh(interval=0.01)
        await asyncio.sleep(0.1)
        gate.set()
        await refresher.stop_auto_refresh()

        assert calls >= 2
