"""Pydantic schemas for the deal cache.

Defines:
- DealStatus / SyncStatus enums
- Deal: the flat, typed deal record shared by the store and the metrics engine
- CacheStatus: status query result
- RefreshResult: outcome of one refresh attempt
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Enums ───────────────────────────────────────────────────────────────────


class DealStatus(str, Enum):
    """Upstream deal lifecycle: created open, terminal won or lost."""

    OPEN = "open"
    WON = "won"
    LOST = "lost"


class SyncStatus(str, Enum):
    """Cache sync status as reported by the status query."""

    NEVER_SYNCED = "never_synced"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"
    STALE = "stale"


# ── Deal Record ─────────────────────────────────────────────────────────────


class Deal(BaseModel):
    """Flat deal record as stored in the cache."""

    id: int
    title: str | None = None
    value: float = 0.0
    currency: str | None = None
    status: DealStatus = DealStatus.OPEN
    stage_id: int | None = None
    pipeline_id: int | None = None
    user_id: int | None = None
    creator_user_id: int | None = None
    person_id: int | None = None
    org_id: int | None = None
    add_time: datetime | None = None
    won_time: datetime | None = None
    lost_time: datetime | None = None
    lost_reason: str | None = None
    deal_type: str | None = None
    country: str | None = None
    origin: str | None = None
    employee_count: str | None = None
    sales_cycle_days: int | None = None

    model_config = {"from_attributes": True}

    @field_validator("add_time", "won_time", "lost_time")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @property
    def is_won(self) -> bool:
        return self.status == DealStatus.WON

    @property
    def is_lost(self) -> bool:
        return self.status == DealStatus.LOST

    @property
    def is_open(self) -> bool:
        return self.status == DealStatus.OPEN


# ── Status / Refresh Results ────────────────────────────────────────────────


class CacheStatus(BaseModel):
    """Current state of the deal cache."""

    status: SyncStatus
    last_sync_at: datetime | None = None
    total_records: int = 0
    error: str | None = None
    sync_duration_ms: int | None = None
    is_stale: bool = True
    is_refreshing: bool = False


class RefreshResult(BaseModel):
    """Outcome of a refresh attempt."""

    success: bool
    message: str
    total_records: int | None = None
    skipped_records: int = Field(default=0, ge=0)
    duration_ms: int | None = None
