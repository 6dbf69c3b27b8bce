"""Product mix of won deals, enriched from the upstream deal-products call.

Product lines are not part of the cached snapshot, so each pass fetches
them for at most `limit` won deals (most recently won first) with bounded
concurrency to stay under the upstream rate limit.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import DateBasis, DealFilter, select_deals
from src.salesdash.metrics.numbers import round_money
from src.salesdash.metrics.schemas import ProductStat

logger = structlog.get_logger(__name__)

FetchProducts = Callable[[int], Awaitable[list[dict[str, Any]]]]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _line_revenue(item: dict[str, Any]) -> float:
    if item.get("sum") is not None:
        return float(item["sum"])
    return float(item.get("item_price") or 0) * float(item.get("quantity") or 0)


async def product_stats(
    deals: Sequence[Deal],
    filters: DealFilter,
    ctx: MetricsContext,
    fetch_products: FetchProducts,
    limit: int = 100,
    concurrency: int = 5,
) -> list[ProductStat]:
    """Quantity and revenue per product across won deals in range."""
    won = select_deals(deals, filters, ctx, DateBasis.WON)
    won.sort(key=lambda d: d.won_time or _EPOCH, reverse=True)
    sample = won[:limit]
    if len(won) > limit:
        logger.info("products.enrichment_capped", won=len(won), limit=limit)

    semaphore = asyncio.Semaphore(concurrency)

    async def _fetch(deal: Deal) -> list[dict[str, Any]]:
        async with semaphore:
            try:
                return await fetch_products(deal.id)
            except Exception:
                logger.warning("products.fetch_failed", deal_id=deal.id, exc_info=True)
                return []

    line_items = await asyncio.gather(*(_fetch(deal) for deal in sample))

    stats: dict[str, dict[str, Any]] = {}
    for items in line_items:
        seen_in_deal: set[str] = set()
        for item in items:
            name = item.get("name") or f"Product {item.get('product_id')}"
            row = stats.setdefault(
                name,
                {"product_id": item.get("product_id"), "quantity": 0.0, "revenue": 0.0, "deals": 0},
            )
            row["quantity"] += float(item.get("quantity") or 0)
            row["revenue"] += _line_revenue(item)
            if name not in seen_in_deal:
                row["deals"] += 1
                seen_in_deal.add(name)

    result = [
        ProductStat(
            product_id=row["product_id"],
            name=name,
            quantity=row["quantity"],
            revenue=round_money(row["revenue"]),
            deals=row["deals"],
        )
        for name, row in stats.items()
    ]
    result.sort(key=lambda p: (-stats[p.name]["revenue"], p.name))
    return result
