"""Deal source abstract base class -- the interface the cache refresher consumes.

The upstream CRM is treated as a black-box paginated data source. Concrete
sources (Pipedrive today) implement the page/user/field/product calls; the
page walk in fetch_all_deals is shared.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class DealPage(BaseModel):
    """One page of raw deal records from the upstream source."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    more_items: bool = False
    next_start: int | None = None


class DealSource(ABC):
    """Abstract interface for the upstream CRM.

    Methods:
        fetch_deals_page: One page of raw deals for a pipeline.
        list_users: Upstream users (id, name, active_flag, ...).
        list_deal_fields: Custom-field definitions with option id -> label lists.
        list_deal_products: Product line items attached to one deal.
    """

    @abstractmethod
    async def fetch_deals_page(self, pipeline_id: int, start: int, limit: int) -> DealPage:
        """Fetch one page of raw deal records for a pipeline."""
        ...

    @abstractmethod
    async def list_users(self) -> list[dict[str, Any]]:
        """List upstream users."""
        ...

    @abstractmethod
    async def list_deal_fields(self) -> list[dict[str, Any]]:
        """List deal field definitions including option lists."""
        ...

    @abstractmethod
    async def list_deal_products(self, deal_id: int) -> list[dict[str, Any]]:
        """List the products attached to a deal."""
        ...

    async def fetch_all_deals(
        self,
        pipeline_id: int,
        page_size: int = 500,
        max_offset: int = 100_000,
    ) -> list[dict[str, Any]]:
        """Walk every page of a pipeline until the source reports no more items.

        Stops early once the offset reaches max_offset so a misbehaving
        pagination cursor cannot loop forever.
        """
        deals: list[dict[str, Any]] = []
        start = 0
        while True:
            page = await self.fetch_deals_page(pipeline_id, start, page_size)
            deals.extend(page.items)
            if not page.more_items:
                break
            start = page.next_start if page.next_start is not None else start + page_size
            if start >= max_offset:
                logger.warning(
                    "crm.pagination_cap_reached",
                    pipeline_id=pipeline_id,
                    start=start,
                    fetched=len(deals),
                )
                break

        logger.info("crm.pipeline_fetched", pipeline_id=pipeline_id, deals=len(deals))
        return deals
