"""Dashboard headline numbers."""

from __future__ import annotations

from collections.abc import Sequence

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import DateRange, DealFilter, created_in, lost_in, select_deals, won_in
from src.salesdash.metrics.numbers import percentage, round_half_up, round_money, safe_div
from src.salesdash.metrics.schemas import DashboardSummary


def average_sales_cycle(deals: Sequence[Deal]) -> tuple[int, int]:
    """(sum of cycle days, number of deals with a defined cycle)."""
    cycles = [d.sales_cycle_days for d in deals if d.sales_cycle_days is not None]
    return sum(cycles), len(cycles)


def dashboard_summary(
    deals: Sequence[Deal],
    filters: DealFilter,
    ctx: MetricsContext,
) -> DashboardSummary:
    """Revenue, logos, meetings, closure rate, ticket and cycle for the filter.

    - revenue: every won deal with won_time in range, any deal type
    - logos / avg ticket / sales cycle: won new-customer deals
    - meetings: new-customer deals created in range
    - closure rate: new-customer won / (won + lost) closed in range
    """
    base = select_deals(deals, filters, ctx)
    rng = DateRange.from_filter(filters)

    won = [d for d in base if won_in(d, rng)]
    nc_won = [d for d in won if ctx.is_new_customer(d)]
    upsell_won = [d for d in won if ctx.is_upselling(d)]
    nc_created = [d for d in base if ctx.is_new_customer(d) and created_in(d, rng)]
    nc_lost = [d for d in base if ctx.is_new_customer(d) and lost_in(d, rng)]

    revenue = sum(d.value for d in won)
    nc_revenue = sum(d.value for d in nc_won)
    cycle_total, cycle_count = average_sales_cycle(nc_won)

    return DashboardSummary(
        total_revenue=round_money(revenue),
        won_deals=len(won),
        logos_won=len(nc_won),
        meetings=len(nc_created),
        lost_deals=len(nc_lost),
        closure_rate=percentage(len(nc_won), len(nc_won) + len(nc_lost), digits=1),
        avg_ticket=round_money(safe_div(nc_revenue, len(nc_won))),
        avg_sales_cycle=int(round_half_up(safe_div(cycle_total, cycle_count))),
        new_customer_revenue=round_money(nc_revenue),
        new_customer_count=len(nc_won),
        upselling_revenue=round_money(sum(d.value for d in upsell_won)),
        upselling_count=len(upsell_won),
        total_deals=len(base),
        open_deals=sum(1 for d in base if d.is_open),
    )
