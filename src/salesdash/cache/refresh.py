"""Cache refresh state machine.

One refresh cycle: acquire the refresh lock -> mark metadata in_progress ->
fetch every sync pipeline in parallel -> dedupe by deal id -> normalize ->
atomically replace the snapshot -> mark metadata success (or error) ->
release the lock. The lock is an injected object so independent refreshers
(tests, multiple caches) never share state; it is process-local only.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from src.salesdash.cache.normalizer import CustomFieldKeys, dedupe_raw_deals, normalize_deals
from src.salesdash.cache.schemas import CacheStatus, RefreshResult, SyncStatus
from src.salesdash.cache.store import DealCacheStore
from src.salesdash.config import Settings
from src.salesdash.core.monitoring import (
    cache_records,
    cache_refresh_duration_seconds,
    cache_refresh_total,
)
from src.salesdash.crm.adapter import DealSource

logger = structlog.get_logger(__name__)

ALREADY_REFRESHING = "Refresh already in progress"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshLock:
    """In-process mutual exclusion flag for cache refreshes.

    try_acquire() is synchronous, so the flag is set before the caller
    reaches its first await and a second caller on the same event loop
    always observes it.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def locked(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False


class CacheRefresher:
    """Owns the refresh protocol for one deal cache.

    Args:
        source: Upstream deal source.
        store: Deal cache store (snapshot + metadata).
        settings: Application settings (pipelines, TTL, batch size, field keys).
        lock: Refresh lock; a fresh one is created when omitted.
        clock: Returns the current aware UTC datetime (tests pin it).
    """

    def __init__(
        self,
        source: DealSource,
        store: DealCacheStore,
        settings: Settings,
        lock: RefreshLock | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._store = store
        self._settings = settings
        self._lock = lock or RefreshLock()
        self._clock = clock
        self._field_keys = CustomFieldKeys.from_settings(settings)
        self._auto_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def cache_key(self) -> str:
        return self._settings.CACHE_KEY

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self._settings.CACHE_TTL_SECONDS)

    @property
    def is_refreshing(self) -> bool:
        return self._lock.locked

    # ── Refresh ─────────────────────────────────────────────────────────────

    async def refresh(self) -> RefreshResult:
        """Run one sync cycle, or reject immediately if one is already running."""
        if not self._lock.try_acquire():
            cache_refresh_total.labels(outcome="rejected").inc()
            logger.info("cache.refresh_rejected", cache_key=self.cache_key)
            return RefreshResult(success=False, message=ALREADY_REFRESHING)

        started = time.perf_counter()
        try:
            logger.info(
                "cache.refresh_started",
                cache_key=self.cache_key,
                pipelines=self._settings.SYNC_PIPELINE_IDS,
            )
            await self._store.upsert_metadata(
                self.cache_key,
                last_sync_status=SyncStatus.IN_PROGRESS.value,
                last_sync_error=None,
            )

            batches = await asyncio.gather(
                *(
                    self._source.fetch_all_deals(
                        pipeline_id,
                        page_size=self._settings.PIPEDRIVE_PAGE_SIZE,
                        max_offset=self._settings.PIPEDRIVE_MAX_OFFSET,
                    )
                    for pipeline_id in self._settings.SYNC_PIPELINE_IDS
                )
            )
            raw_deals = dedupe_raw_deals(batches)
            deals, skipped = normalize_deals(raw_deals, self._field_keys)
            total = await self._store.replace_all(
                deals, batch_size=self._settings.CACHE_INSERT_BATCH_SIZE
            )

            duration_ms = int((time.perf_counter() - started) * 1000)
            await self._store.upsert_metadata(
                self.cache_key,
                last_sync_at=self._clock(),
                last_sync_status=SyncStatus.SUCCESS.value,
                last_sync_error=None,
                total_records=total,
                sync_duration_ms=duration_ms,
            )
        except Exception as exc:
            duration_ms = int((time.perf_counter() - started) * 1000)
            logger.error(
                "cache.refresh_failed",
                cache_key=self.cache_key,
                error=str(exc),
                duration_ms=duration_ms,
                exc_info=True,
            )
            cache_refresh_total.labels(outcome="error").inc()
            try:
                await self._store.upsert_metadata(
                    self.cache_key,
                    last_sync_status=SyncStatus.ERROR.value,
                    last_sync_error=str(exc) or exc.__class__.__name__,
                    sync_duration_ms=duration_ms,
                )
            except Exception:
                logger.error("cache.metadata_update_failed", cache_key=self.cache_key, exc_info=True)
            return RefreshResult(
                success=False,
                message=f"Refresh failed: {exc}",
                duration_ms=duration_ms,
            )
        finally:
            self._lock.release()

        cache_refresh_total.labels(outcome="success").inc()
        cache_refresh_duration_seconds.observe(duration_ms / 1000)
        cache_records.set(total)
        logger.info(
            "cache.refresh_complete",
            cache_key=self.cache_key,
            total_records=total,
            fetched=len(raw_deals),
            skipped=skipped,
            duration_ms=duration_ms,
        )

        message = f"Cache refreshed with {total} deals"
        if skipped:
            message += f" ({skipped} malformed records skipped)"
        return RefreshResult(
            success=True,
            message=message,
            total_records=total,
            skipped_records=skipped,
            duration_ms=duration_ms,
        )

    # ── Status ──────────────────────────────────────────────────────────────

    async def get_status(self) -> CacheStatus:
        """Report cache status, reinterpreting an orphaned in_progress as stale."""
        refreshing = self._lock.locked
        meta = await self._store.get_metadata(self.cache_key)
        if meta is None:
            return CacheStatus(
                status=SyncStatus.NEVER_SYNCED,
                total_records=0,
                is_stale=True,
                is_refreshing=refreshing,
            )

        status = SyncStatus(meta.last_sync_status)
        if status == SyncStatus.IN_PROGRESS and not refreshing:
            # The process that started this sync died before finishing it.
            return CacheStatus(
                status=SyncStatus.STALE,
                last_sync_at=meta.last_sync_at,
                total_records=meta.total_records or 0,
                error=meta.last_sync_error,
                sync_duration_ms=meta.sync_duration_ms,
                is_stale=True,
                is_refreshing=False,
            )

        is_stale = meta.last_sync_at is None or self._clock() - meta.last_sync_at > self.ttl
        return CacheStatus(
            status=status,
            last_sync_at=meta.last_sync_at,
            total_records=meta.total_records or 0,
            error=meta.last_sync_error,
            sync_duration_ms=meta.sync_duration_ms,
            is_stale=is_stale,
            is_refreshing=refreshing,
        )

    # ── Startup / background triggers ───────────────────────────────────────

    async def ensure_warm(self) -> RefreshResult | None:
        """Make sure the cache has data after process start.

        Blocks on a refresh when the cache was never filled; schedules a
        background refresh when it is merely stale.

        Returns:
            The RefreshResult of a blocking refresh, None otherwise.
        """
        status = await self.get_status()
        if status.status == SyncStatus.NEVER_SYNCED or status.total_records == 0:
            logger.info("cache.warming_blocking", status=status.status.value)
            return await self.refresh()

        if status.is_stale and not status.is_refreshing:
            logger.info("cache.warming_background", last_sync_at=status.last_sync_at)
            self.trigger_background_refresh()
        return None

    def trigger_background_refresh(self) -> asyncio.Task:
        """Start a refresh without awaiting it."""
        task = asyncio.create_task(self.refresh(), name=f"cache_refresh_{self.cache_key}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def start_auto_refresh(self, interval: float | None = None) -> asyncio.Task:
        """Trigger background refreshes every interval seconds (default: cache TTL)."""
        if self._auto_task is not None and not self._auto_task.done():
            return self._auto_task

        sleep = interval if interval is not None else self._settings.CACHE_TTL_SECONDS

        async def _loop() -> None:
            while True:
                try:
                    await asyncio.sleep(sleep)
                    if self._lock.locked:
                        logger.debug("cache.auto_refresh_skipped", cache_key=self.cache_key)
                        continue
                    self.trigger_background_refresh()
                except asyncio.CancelledError:
                    logger.info("cache.auto_refresh_cancelled", cache_key=self.cache_key)
                    break
                except Exception:
                    logger.warning("cache.auto_refresh_error", cache_key=self.cache_key, exc_info=True)

        self._auto_task = asyncio.create_task(_loop(), name=f"cache_auto_refresh_{self.cache_key}")
        logger.info("cache.auto_refresh_started", cache_key=self.cache_key, interval=sleep)
        return self._auto_task

    async def stop_auto_refresh(self) -> None:
        """Cancel the auto-refresh loop and any background refresh still running."""
        tasks = list(self._background)
        if self._auto_task is not None:
            tasks.append(self._auto_task)
            self._auto_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
