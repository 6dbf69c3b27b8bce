"""Shared deal filter: one predicate builder used by every metric view.

Clauses run in a fixed order and short-circuit on the first failure:
pipeline, deal type, country, origin, owner, date range. The date clause
depends on the metric (DateBasis); views that need several date windows
select with DateBasis.ANY and test each checkpoint with DateRange.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from src.salesdash.cache.schemas import Deal

DealPredicate = Callable[[Deal], bool]


class DateBasis(str, Enum):
    """Which timestamp the date-range clause checks."""

    ANY = "any"  # no date clause
    CREATED = "created"  # add_time
    WON = "won"  # won deals by won_time
    MIXED = "mixed"  # won_time if won, else add_time


class DealFilter(BaseModel):
    """Dashboard filter shared by every aggregation query."""

    start_date: date | None = None
    end_date: date | None = None
    deal_type: str | None = None
    countries: list[str] = Field(default_factory=list)
    origins: list[str] = Field(default_factory=list)
    team_id: int | None = None
    person_id: int | None = None

    @model_validator(mode="after")
    def _check_range(self) -> DealFilter:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


@dataclass(frozen=True)
class DateRange:
    """Inclusive whole-day range in UTC; either end may be open."""

    start: datetime | None = None
    end: datetime | None = None  # exclusive: midnight after end_date

    @classmethod
    def from_filter(cls, filters: DealFilter) -> DateRange:
        start = end = None
        if filters.start_date is not None:
            start = datetime.combine(filters.start_date, time.min, tzinfo=timezone.utc)
        if filters.end_date is not None:
            end = datetime.combine(filters.end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        return cls(start=start, end=end)

    @property
    def bounded(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, moment: datetime | None) -> bool:
        """True if moment is inside the range.

        An unbounded range accepts everything, a bounded one rejects a
        missing timestamp.
        """
        if not self.bounded:
            return True
        if moment is None:
            return False
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True


# ── Checkpoint helpers ──────────────────────────────────────────────────────


def created_in(deal: Deal, rng: DateRange) -> bool:
    return rng.contains(deal.add_time)


def won_in(deal: Deal, rng: DateRange) -> bool:
    return deal.is_won and rng.contains(deal.won_time)


def lost_in(deal: Deal, rng: DateRange) -> bool:
    """Lost deals by lost_time, falling back to add_time when upstream omitted it."""
    if not deal.is_lost:
        return False
    return rng.contains(deal.lost_time if deal.lost_time is not None else deal.add_time)


def mixed_in(deal: Deal, rng: DateRange) -> bool:
    return rng.contains(deal.won_time if deal.is_won else deal.add_time)


_DATE_CLAUSES: dict[DateBasis, Callable[[Deal, DateRange], bool]] = {
    DateBasis.CREATED: created_in,
    DateBasis.WON: won_in,
    DateBasis.MIXED: mixed_in,
}


# ── Owner resolution ────────────────────────────────────────────────────────


def resolve_owner_ids(filters: DealFilter, team_user_ids: set[int] | None) -> set[int] | None:
    """Owner restriction for a filter.

    person_id wins over team_id; a team that resolves to nobody yields an
    empty set (no deal matches) rather than no restriction.
    """
    if filters.person_id is not None:
        return {filters.person_id}
    if filters.team_id is not None:
        return set(team_user_ids or ())
    return None


# ── Predicate builder ───────────────────────────────────────────────────────


def build_deal_predicate(
    filters: DealFilter,
    *,
    pipeline_id: int | None,
    allowed_user_ids: set[int] | None = None,
    basis: DateBasis = DateBasis.ANY,
) -> DealPredicate:
    """Compile a filter into a single predicate.

    Args:
        filters: Dashboard filter.
        pipeline_id: Designated metrics pipeline; None disables the clause.
        allowed_user_ids: Resolved owner restriction (see resolve_owner_ids).
        basis: Which timestamp the date clause checks.
    """
    countries = frozenset(filters.countries)
    origins = frozenset(filters.origins)
    deal_type = filters.deal_type
    rng = DateRange.from_filter(filters)
    date_clause = _DATE_CLAUSES.get(basis)

    def predicate(deal: Deal) -> bool:
        if pipeline_id is not None and deal.pipeline_id != pipeline_id:
            return False
        if deal_type is not None and deal.deal_type != deal_type:
            return False
        if countries and deal.country not in countries:
            return False
        if origins and deal.origin not in origins:
            return False
        if allowed_user_ids is not None and deal.user_id not in allowed_user_ids:
            return False
        if date_clause is not None and not date_clause(deal, rng):
            return False
        return True

    return predicate


def select_deals(
    deals: Iterable[Deal],
    filters: DealFilter,
    ctx,
    basis: DateBasis = DateBasis.ANY,
) -> list[Deal]:
    """Deals of the metrics pipeline passing the filter for ctx."""
    predicate = build_deal_predicate(
        filters,
        pipeline_id=ctx.pipeline_id,
        allowed_user_ids=ctx.allowed_user_ids,
        basis=basis,
    )
    return [deal for deal in deals if predicate(deal)]
