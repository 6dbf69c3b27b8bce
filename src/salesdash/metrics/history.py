"""Weekly and monthly time series."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import (
    DateBasis,
    DateRange,
    DealFilter,
    lost_in,
    select_deals,
    won_in,
)
from src.salesdash.metrics.numbers import percentage, round_money
from src.salesdash.metrics.periods import last_week_keys, month_key, week_key
from src.salesdash.metrics.schemas import (
    MonthlyRevenue,
    WeeklyClosureRate,
    WeeklyCount,
    WeeklyValue,
)


def revenue_history(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> list[WeeklyValue]:
    """Won value per week of won_time."""
    totals: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for deal in select_deals(deals, filters, ctx, DateBasis.WON):
        if deal.won_time is None:
            continue
        key = week_key(deal.won_time)
        totals[key] += deal.value
        counts[key] += 1
    return [WeeklyValue(week=k, value=round_money(totals[k]), count=counts[k]) for k in sorted(totals)]


def meetings_history(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> list[WeeklyCount]:
    """New-customer deals created per week of add_time."""
    counts: dict[str, int] = defaultdict(int)
    for deal in select_deals(deals, filters, ctx, DateBasis.CREATED):
        if deal.add_time is None or not ctx.is_new_customer(deal):
            continue
        counts[week_key(deal.add_time)] += 1
    return [WeeklyCount(week=k, count=counts[k]) for k in sorted(counts)]


def closure_rate_history(
    deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext
) -> list[WeeklyClosureRate]:
    """New-customer closure rate per week the deal was closed."""
    rng = DateRange.from_filter(filters)
    won: dict[str, int] = defaultdict(int)
    lost: dict[str, int] = defaultdict(int)
    for deal in select_deals(deals, filters, ctx):
        if not ctx.is_new_customer(deal):
            continue
        if won_in(deal, rng) and deal.won_time is not None:
            won[week_key(deal.won_time)] += 1
        elif lost_in(deal, rng):
            closed_at = deal.lost_time or deal.add_time
            if closed_at is not None:
                lost[week_key(closed_at)] += 1
    weeks = sorted(set(won) | set(lost))
    return [
        WeeklyClosureRate(
            week=k,
            won=won[k],
            lost=lost[k],
            closure_rate=percentage(won[k], won[k] + lost[k], digits=1),
        )
        for k in weeks
    ]


def monthly_revenue_by_type(
    deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext
) -> list[MonthlyRevenue]:
    """Won value per month split into new customer / upselling / other."""
    buckets: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for deal in select_deals(deals, filters, ctx, DateBasis.WON):
        if deal.won_time is None:
            continue
        if ctx.is_new_customer(deal):
            kind = "new_customer"
        elif ctx.is_upselling(deal):
            kind = "upselling"
        else:
            kind = "other"
        buckets[month_key(deal.won_time)][kind] += deal.value

    result = []
    for month in sorted(buckets):
        row = buckets[month]
        result.append(
            MonthlyRevenue(
                month=month,
                new_customer=round_money(row["new_customer"]),
                upselling=round_money(row["upselling"]),
                other=round_money(row["other"]),
                total=round_money(sum(row.values())),
            )
        )
    return result


def nc_meetings_last_weeks(
    deals: Sequence[Deal],
    filters: DealFilter,
    ctx: MetricsContext,
    weeks: int = 10,
) -> list[WeeklyCount]:
    """New-customer meetings in the last `weeks` weeks ending now, zero-filled.

    The window is relative to ctx.now; the filter's own date range is ignored.
    """
    keys = last_week_keys(ctx.now, weeks)
    counts = dict.fromkeys(keys, 0)
    undated = filters.model_copy(update={"start_date": None, "end_date": None})
    for deal in select_deals(deals, undated, ctx):
        if deal.add_time is None or not ctx.is_new_customer(deal):
            continue
        key = week_key(deal.add_time)
        if key in counts:
            counts[key] += 1
    return [WeeklyCount(week=k, count=counts[k]) for k in keys]
