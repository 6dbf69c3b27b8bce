"""Regional views: region x origin checkpoint table, quarterly comparison,
top origins and sales cycle per region.

Checkpoints per (region, origin) cell:
- meeting: new-customer deal created in range
- proposal: meeting deal that reached a proposal-or-later stage (or won)
- closing: deal won in range, any type, so region closings add up to the
  global won revenue for the same filter
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import DateBasis, DateRange, DealFilter, created_in, select_deals, won_in
from src.salesdash.metrics.numbers import round_half_up, round_money, safe_div
from src.salesdash.metrics.periods import quarter_key
from src.salesdash.metrics.regions import REGIONS
from src.salesdash.metrics.schemas import (
    OriginValue,
    QuarterlyComparison,
    QuarterValue,
    RegionalCell,
    RegionBreakdown,
    RegionQuarterSeries,
    RegionSalesCycle,
    RegionTopOrigins,
)


@dataclass
class _Cell:
    meetings: int = 0
    meetings_value: float = 0.0
    proposals: int = 0
    proposals_value: float = 0.0
    closings: int = 0
    closings_value: float = 0.0

    @property
    def empty(self) -> bool:
        return not (self.meetings or self.proposals or self.closings)

    def add(self, other: _Cell) -> None:
        self.meetings += other.meetings
        self.meetings_value += other.meetings_value
        self.proposals += other.proposals
        self.proposals_value += other.proposals_value
        self.closings += other.closings
        self.closings_value += other.closings_value

    def export(self, origin: str) -> RegionalCell:
        return RegionalCell(
            origin=origin,
            meetings=self.meetings,
            meetings_value=round_money(self.meetings_value),
            proposals=self.proposals,
            proposals_value=round_money(self.proposals_value),
            closings=self.closings,
            closings_value=round_money(self.closings_value),
        )


def regional_breakdown(
    deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext
) -> list[RegionBreakdown]:
    """Per-region origin rows, regions ordered by closing value."""
    rng = DateRange.from_filter(filters)
    cells: dict[str, dict[str, _Cell]] = defaultdict(lambda: defaultdict(_Cell))

    for deal in select_deals(deals, filters, ctx):
        created = created_in(deal, rng)
        meeting = created and ctx.is_new_customer(deal)
        proposal = meeting and ctx.reached_proposal(deal)
        closing = won_in(deal, rng)
        if not (meeting or proposal or closing):
            continue

        cell = cells[ctx.region_of(deal)][ctx.origin_label(deal.origin)]
        if meeting:
            cell.meetings += 1
            cell.meetings_value += deal.value
        if proposal:
            cell.proposals += 1
            cell.proposals_value += deal.value
        if closing:
            cell.closings += 1
            cell.closings_value += deal.value

    result: list[tuple[float, RegionBreakdown]] = []
    for region in REGIONS:
        rows = {origin: cell for origin, cell in cells.get(region, {}).items() if not cell.empty}
        if not rows:
            continue
        total = _Cell()
        for cell in rows.values():
            total.add(cell)
        ordered = sorted(rows.items(), key=lambda item: item[1].closings_value, reverse=True)
        result.append(
            (
                total.closings_value,
                RegionBreakdown(
                    region=region,
                    rows=[cell.export(origin) for origin, cell in ordered],
                    total=total.export("Total"),
                ),
            )
        )

    result.sort(key=lambda item: item[0], reverse=True)
    return [breakdown for _, breakdown in result]


def quarterly_region_comparison(
    deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext
) -> QuarterlyComparison:
    """Won revenue and count per region per quarter of won_time."""
    revenue: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    quarters: set[str] = set()

    for deal in select_deals(deals, filters, ctx, DateBasis.WON):
        if deal.won_time is None:
            continue
        quarter = quarter_key(deal.won_time)
        region = ctx.region_of(deal)
        quarters.add(quarter)
        revenue[region][quarter] += deal.value
        counts[region][quarter] += 1

    ordered_quarters = sorted(quarters)
    return QuarterlyComparison(
        quarters=ordered_quarters,
        regions=[
            RegionQuarterSeries(
                region=region,
                data=[
                    QuarterValue(
                        quarter=q,
                        revenue=round_money(revenue[region][q]),
                        deals=counts[region][q],
                    )
                    for q in ordered_quarters
                ],
            )
            for region in REGIONS
            if region in revenue
        ],
    )


def top_origins_by_region(
    deals: Sequence[Deal],
    filters: DealFilter,
    ctx: MetricsContext,
    limit: int = 5,
) -> list[RegionTopOrigins]:
    """The `limit` origins with the highest won value in each region."""
    values: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for deal in select_deals(deals, filters, ctx, DateBasis.WON):
        region = ctx.region_of(deal)
        origin = ctx.origin_label(deal.origin)
        values[region][origin] += deal.value
        counts[region][origin] += 1

    result = []
    for region in REGIONS:
        if region not in values:
            continue
        ranked = sorted(values[region].items(), key=lambda item: item[1], reverse=True)[:limit]
        result.append(
            RegionTopOrigins(
                region=region,
                origins=[
                    OriginValue(origin=o, value=round_money(v), count=counts[region][o])
                    for o, v in ranked
                ],
            )
        )
    return result


def sales_cycle_by_region(
    deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext
) -> list[RegionSalesCycle]:
    """Average sales cycle of won new-customer deals per region."""
    totals: dict[str, int] = defaultdict(int)
    counts: dict[str, int] = defaultdict(int)
    for deal in select_deals(deals, filters, ctx, DateBasis.WON):
        if not ctx.is_new_customer(deal) or deal.sales_cycle_days is None:
            continue
        region = ctx.region_of(deal)
        totals[region] += deal.sales_cycle_days
        counts[region] += 1

    return [
        RegionSalesCycle(
            region=region,
            avg_sales_cycle=int(round_half_up(safe_div(totals[region], counts[region]))),
            deals=counts[region],
        )
        for region in REGIONS
        if counts[region]
    ]
