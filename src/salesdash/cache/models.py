"""Deal cache persistence models.

Two SQLAlchemy models:
- DealCacheModel: one row per upstream deal id, fully replaced on every sync
- CacheMetadataModel: one row per cache key tracking sync status/timestamp/duration/error
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.salesdash.core.database import Base


class DealCacheModel(Base):
    """Flattened upstream deal.

    Categorical custom fields (deal_type, country, origin, employee_count)
    hold upstream option codes; labels are resolved at aggregation time.
    """

    __tablename__ = "deal_cache"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    value: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), default=0)
    currency: Mapped[str | None] = mapped_column(String(10), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    stage_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pipeline_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    creator_user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    person_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    org_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    add_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    won_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    lost_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    lost_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    deal_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str | None] = mapped_column(String(50), nullable=True)
    origin: Mapped[str | None] = mapped_column(String(50), nullable=True)
    employee_count: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sales_cycle_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cached_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class CacheMetadataModel(Base):
    """Sync bookkeeping for a named cache (one row per cache_key)."""

    __tablename__ = "cache_metadata"

    cache_key: Mapped[str] = mapped_column(String(100), primary_key=True)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_sync_status: Mapped[str] = mapped_column(String(20), nullable=False, default="never_synced")
    last_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sync_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )
