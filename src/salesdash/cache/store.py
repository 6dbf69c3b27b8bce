"""Deal cache store -- full-replace snapshot table plus sync metadata.

Provides DealCacheStore with the session_factory callable pattern. The
delete-all + batched insert in replace_all runs inside one transaction, so
readers see either the previous snapshot or the new one, never a mix.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Sequence
from typing import Any

import structlog
from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.salesdash.cache.models import CacheMetadataModel, DealCacheModel
from src.salesdash.cache.schemas import Deal, ensure_utc
from src.salesdash.core.database import open_session

logger = structlog.get_logger(__name__)

_METADATA_FIELDS = frozenset(
    {
        "last_sync_at",
        "last_sync_status",
        "last_sync_error",
        "total_records",
        "sync_duration_ms",
    }
)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _deal_to_row(deal: Deal) -> dict[str, Any]:
    row = deal.model_dump()
    row["status"] = deal.status.value
    return row


def _model_to_deal(model: DealCacheModel) -> Deal:
    return Deal(
        id=model.id,
        title=model.title,
        value=float(model.value or 0),
        currency=model.currency,
        status=model.status,
        stage_id=model.stage_id,
        pipeline_id=model.pipeline_id,
        user_id=model.user_id,
        creator_user_id=model.creator_user_id,
        person_id=model.person_id,
        org_id=model.org_id,
        add_time=model.add_time,
        won_time=model.won_time,
        lost_time=model.lost_time,
        lost_reason=model.lost_reason,
        deal_type=model.deal_type,
        country=model.country,
        origin=model.origin,
        employee_count=model.employee_count,
        sales_cycle_days=model.sales_cycle_days,
    )


# ── Store ───────────────────────────────────────────────────────────────────


class DealCacheStore:
    """Async access to the deal cache table and its metadata row.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Deals ───────────────────────────────────────────────────────────────

    async def replace_all(self, deals: Sequence[Deal], batch_size: int = 100) -> int:
        """Atomically replace the cached snapshot with deals.

        Any exception rolls the whole transaction back, leaving the
        previous rows untouched.

        Returns:
            Number of rows written.
        """
        async with open_session(self._session_factory) as session:
            async with session.begin():
                await session.execute(delete(DealCacheModel))
                for offset in range(0, len(deals), batch_size):
                    await self._insert_batch(session, deals[offset : offset + batch_size])
            logger.info("cache.snapshot_replaced", records=len(deals))
            return len(deals)

    async def _insert_batch(self, session: AsyncSession, batch: Sequence[Deal]) -> None:
        await session.execute(insert(DealCacheModel), [_deal_to_row(deal) for deal in batch])

    async def load_deals(self) -> list[Deal]:
        """Return the latest committed snapshot."""
        async with open_session(self._session_factory) as session:
            result = await session.execute(select(DealCacheModel).order_by(DealCacheModel.id))
            return [_model_to_deal(m) for m in result.scalars().all()]

    async def count(self) -> int:
        async with open_session(self._session_factory) as session:
            result = await session.execute(select(func.count()).select_from(DealCacheModel))
            return int(result.scalar_one())

    # ── Metadata ────────────────────────────────────────────────────────────

    async def get_metadata(self, cache_key: str) -> CacheMetadataModel | None:
        """Fetch the metadata row for cache_key (None before the first sync)."""
        async with open_session(self._session_factory) as session:
            model = await session.get(CacheMetadataModel, cache_key)
            if model is not None:
                model.last_sync_at = ensure_utc(model.last_sync_at)
            return model

    async def upsert_metadata(self, cache_key: str, **fields: Any) -> None:
        """Insert or update the metadata row for cache_key.

        Only the given fields are written; the rest keep their stored values.
        """
        unknown = set(fields) - _METADATA_FIELDS
        if unknown:
            raise ValueError(f"unknown metadata fields: {sorted(unknown)}")

        async with open_session(self._session_factory) as session:
            model = await session.get(CacheMetadataModel, cache_key)
            if model is None:
                model = CacheMetadataModel(
                    cache_key=cache_key,
                    last_sync_status="never_synced",
                    total_records=0,
                )
                session.add(model)
            for name, value in fields.items():
                setattr(model, name, value)
            await session.commit()
