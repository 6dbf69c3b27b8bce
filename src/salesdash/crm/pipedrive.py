"""Pipedrive deal source over the v1 REST API.

Key implementation details:
- httpx.AsyncClient with the api_token passed as a query parameter
- Transport errors, 429 and 5xx responses are retried with tenacity
  exponential backoff; anything else surfaces as UpstreamError
- Deals are listed per pipeline with offset pagination
  (additional_data.pagination.more_items_in_collection / next_start)
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.salesdash.crm.adapter import DealPage, DealSource

logger = structlog.get_logger(__name__)


class UpstreamError(Exception):
    """Pipedrive returned an error that retrying will not fix."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryableUpstreamError(UpstreamError):
    """Rate limit or server-side failure; safe to retry."""


class PipedriveSource(DealSource):
    """Pipedrive implementation of DealSource.

    Args:
        api_token: Pipedrive API token.
        base_url: API root, e.g. https://api.pipedrive.com/v1.
        timeout: Per-request timeout in seconds.
        client: Optional pre-built httpx client (tests inject a MockTransport).
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.pipedrive.com/v1",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_token = api_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TransportError, RetryableUpstreamError)),
        reraise=True,
    )
    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET a Pipedrive endpoint and return the decoded body."""
        query = {"api_token": self._api_token, **(params or {})}
        response = await self._client.get(path, params=query)

        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(
                "pipedrive.retryable_status",
                path=path,
                status_code=response.status_code,
            )
            raise RetryableUpstreamError(
                f"Pipedrive {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise UpstreamError(
                f"Pipedrive {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        body = response.json()
        if not body.get("success", False):
            raise UpstreamError(f"Pipedrive {path} failed: {body.get('error', 'unknown error')}")
        return body

    async def fetch_deals_page(self, pipeline_id: int, start: int, limit: int) -> DealPage:
        body = await self._get(
            "/deals",
            {
                "pipeline_id": pipeline_id,
                "status": "all_not_deleted",
                "start": start,
                "limit": limit,
            },
        )
        items = [
            deal for deal in (body.get("data") or []) if deal.get("pipeline_id") == pipeline_id
        ]
        pagination = (body.get("additional_data") or {}).get("pagination") or {}

        logger.debug(
            "pipedrive.page_fetched",
            pipeline_id=pipeline_id,
            start=start,
            items=len(items),
        )
        return DealPage(
            items=items,
            more_items=bool(pagination.get("more_items_in_collection", False)),
            next_start=pagination.get("next_start"),
        )

    async def list_users(self) -> list[dict[str, Any]]:
        body = await self._get("/users")
        return body.get("data") or []

    async def list_deal_fields(self) -> list[dict[str, Any]]:
        fields: list[dict[str, Any]] = []
        start = 0
        while True:
            body = await self._get("/dealFields", {"start": start, "limit": 500})
            fields.extend(body.get("data") or [])
            pagination = (body.get("additional_data") or {}).get("pagination") or {}
            if not pagination.get("more_items_in_collection"):
                break
            start = pagination.get("next_start", start + 500)
        return fields

    async def list_deal_products(self, deal_id: int) -> list[dict[str, Any]]:
        body = await self._get(f"/deals/{deal_id}/products")
        return body.get("data") or []
