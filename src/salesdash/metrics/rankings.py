"""Rankings and distributions over won / created deals."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Sequence

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import (
    DateBasis,
    DateRange,
    DealFilter,
    created_in,
    lost_in,
    select_deals,
    won_in,
)
from src.salesdash.metrics.numbers import percentage, round_money
from src.salesdash.metrics.schemas import DealTypeStats, DistributionSlice, RankingEntry

NO_TYPE = "Sin Tipo"


def _rank(
    deals: Sequence[Deal],
    group_of: Callable[[Deal], str | None],
    name_of: Callable[[str], str],
    drop_zero: bool = False,
    limit: int | None = None,
) -> list[RankingEntry]:
    values: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for deal in deals:
        key = group_of(deal)
        if key is None:
            continue
        values[key] += deal.value
        counts[key] += 1

    entries = [
        RankingEntry(key=key, name=name_of(key), value=round_money(value), count=counts[key])
        for key, value in values.items()
        if not (drop_zero and value == 0)
    ]
    entries.sort(key=lambda e: (-values[e.key], e.name))
    return entries[:limit] if limit is not None else entries


def user_ranking(
    deals: Sequence[Deal],
    filters: DealFilter,
    ctx: MetricsContext,
    limit: int | None = 10,
) -> list[RankingEntry]:
    """Won value per deal owner, highest first."""
    won = select_deals(deals, filters, ctx, DateBasis.WON)
    return _rank(
        won,
        lambda d: str(d.user_id) if d.user_id is not None else None,
        lambda key: ctx.user_name(int(key)),
        limit=limit,
    )


def team_ranking(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> list[RankingEntry]:
    """Won value per team of the deal owner; owners without a team are left out."""
    won = select_deals(deals, filters, ctx, DateBasis.WON)
    names = {str(team.id): team.display_name for team in ctx.user_teams.values()}

    def team_of(deal: Deal) -> str | None:
        team = ctx.user_teams.get(deal.user_id) if deal.user_id is not None else None
        return str(team.id) if team is not None else None

    return _rank(won, team_of, lambda key: names[key], drop_zero=True)


def source_ranking(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> list[RankingEntry]:
    """Won value per origin."""
    won = select_deals(deals, filters, ctx, DateBasis.WON)
    return _rank(won, lambda d: d.origin or "", lambda key: ctx.origin_label(key or None))


def _distribution(
    deals: Sequence[Deal],
    key_of: Callable[[Deal], str | None],
    name_of: Callable[[str | None], str],
) -> list[DistributionSlice]:
    counts: dict[str | None, int] = defaultdict(int)
    for deal in deals:
        counts[key_of(deal)] += 1
    total = sum(counts.values())
    slices = [
        DistributionSlice(
            key=key or "",
            name=name_of(key),
            count=count,
            percentage=percentage(count, total),
        )
        for key, count in counts.items()
    ]
    slices.sort(key=lambda s: (-s.count, s.name))
    return slices


def source_distribution(
    deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext
) -> list[DistributionSlice]:
    """New-customer deals created in range, per origin."""
    created = [
        d for d in select_deals(deals, filters, ctx, DateBasis.CREATED) if ctx.is_new_customer(d)
    ]
    return _distribution(created, lambda d: d.origin, ctx.origin_label)


def company_size_distribution(
    deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext
) -> list[DistributionSlice]:
    """New-customer deals created in range, per employee-count bucket."""
    created = [
        d for d in select_deals(deals, filters, ctx, DateBasis.CREATED) if ctx.is_new_customer(d)
    ]
    return _distribution(created, lambda d: d.employee_count, ctx.employee_count_label)


def deal_type_stats(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> list[DealTypeStats]:
    """Created / won / lost / revenue per deal type (New Customer, Upselling, Sin Tipo)."""
    rng = DateRange.from_filter(filters)
    order = [ctx.new_customer_type, ctx.upselling_type, None]
    labels = {ctx.new_customer_type: "New Customer", ctx.upselling_type: "Upselling", None: NO_TYPE}
    stats = {
        code: DealTypeStats(
            deal_type=code or "",
            label=labels[code],
        )
        for code in order
    }
    revenue: dict[str | None, float] = defaultdict(float)

    for deal in select_deals(deals, filters, ctx):
        code = deal.deal_type if deal.deal_type in stats else None
        row = stats[code]
        if created_in(deal, rng):
            row.deals += 1
        if won_in(deal, rng):
            row.won += 1
            revenue[code] += deal.value
        elif lost_in(deal, rng):
            row.lost += 1

    for code, row in stats.items():
        row.revenue = round_money(revenue[code])
    return [stats[code] for code in order]
