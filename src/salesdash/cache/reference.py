"""Upstream reference data (users, custom-field option labels) with a TTL cache.

Reference lookups never fail an aggregation: if the upstream call errors,
the previous value (or the static option tables / an empty user list) is
used and the failure is logged.
"""

from __future__ import annotations

import time
from typing import Any

import structlog

from src.salesdash.config import Settings
from src.salesdash.crm.adapter import DealSource
from src.salesdash.crm.field_mapping import (
    COUNTRY_OPTIONS,
    ORIGIN_OPTIONS,
    parse_field_options,
)

logger = structlog.get_logger(__name__)


class ReferenceData:
    """TTL-cached upstream users and field options.

    Args:
        source: Upstream deal source.
        settings: Application settings (field keys, REFERENCE_TTL_SECONDS).
    """

    def __init__(self, source: DealSource, settings: Settings) -> None:
        self._source = source
        self._settings = settings
        self._ttl = settings.REFERENCE_TTL_SECONDS
        self._users: list[dict[str, Any]] | None = None
        self._users_at = 0.0
        self._options: dict[str, dict[str, str]] | None = None
        self._options_at = 0.0

    def _fresh(self, fetched_at: float) -> bool:
        return time.monotonic() - fetched_at < self._ttl

    # ── Users ───────────────────────────────────────────────────────────────

    async def users(self) -> list[dict[str, Any]]:
        if self._users is not None and self._fresh(self._users_at):
            return self._users
        try:
            self._users = await self._source.list_users()
            self._users_at = time.monotonic()
        except Exception:
            logger.warning("reference.users_fetch_failed", exc_info=True)
            if self._users is None:
                return []
        return self._users

    async def active_users(self) -> list[dict[str, Any]]:
        return [u for u in await self.users() if u.get("active_flag", True)]

    async def user_names(self) -> dict[int, str]:
        return {int(u["id"]): u.get("name") or f"User {u['id']}" for u in await self.users() if "id" in u}

    # ── Field options ───────────────────────────────────────────────────────

    async def _field_options(self) -> dict[str, dict[str, str]]:
        if self._options is not None and self._fresh(self._options_at):
            return self._options
        try:
            self._options = parse_field_options(await self._source.list_deal_fields())
            self._options_at = time.monotonic()
        except Exception:
            logger.warning("reference.fields_fetch_failed", exc_info=True)
            if self._options is None:
                return {}
        return self._options

    async def country_labels(self) -> dict[str, str]:
        options = await self._field_options()
        return {**COUNTRY_OPTIONS, **options.get(self._settings.COUNTRY_FIELD_KEY, {})}

    async def origin_labels(self) -> dict[str, str]:
        options = await self._field_options()
        return {**ORIGIN_OPTIONS, **options.get(self._settings.ORIGIN_FIELD_KEY, {})}

    async def employee_count_labels(self) -> dict[str, str]:
        if not self._settings.EMPLOYEE_COUNT_FIELD_KEY:
            return {}
        options = await self._field_options()
        return options.get(self._settings.EMPLOYEE_COUNT_FIELD_KEY, {})

    def invalidate(self) -> None:
        self._users = None
        self._options = None
