"""Direct meetings: deals sourced by the direct inbound/outbound origins.

Unlike the other views this one spans every cached pipeline; the origin
set replaces the user's origin filter and the deal-type clause is dropped.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import DateBasis, DealFilter, build_deal_predicate
from src.salesdash.metrics.numbers import round_money, safe_div
from src.salesdash.metrics.periods import week_key
from src.salesdash.metrics.schemas import DirectMeetings, DirectTotals, NamedTotal, WeeklyValue


def _named_totals(counts: dict[str, int], values: dict[str, float]) -> list[NamedTotal]:
    rows = [NamedTotal(name=k, meetings=counts[k], value=round_money(values[k])) for k in counts]
    rows.sort(key=lambda r: (-r.meetings, -values[r.name], r.name))
    return rows


def direct_meetings(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> DirectMeetings:
    narrowed = filters.model_copy(
        update={"origins": sorted(ctx.direct_origin_codes), "deal_type": None}
    )
    predicate = build_deal_predicate(
        narrowed,
        pipeline_id=None,
        allowed_user_ids=ctx.allowed_user_ids,
        basis=DateBasis.CREATED,
    )

    week_counts: dict[str, int] = defaultdict(int)
    week_values: dict[str, float] = defaultdict(float)
    person_counts: dict[str, int] = defaultdict(int)
    person_values: dict[str, float] = defaultdict(float)
    region_counts: dict[str, int] = defaultdict(int)
    region_values: dict[str, float] = defaultdict(float)
    total_value = 0.0
    total = 0

    for deal in deals:
        if not predicate(deal):
            continue
        total += 1
        total_value += deal.value
        if deal.add_time is not None:
            week = week_key(deal.add_time)
            week_counts[week] += 1
            week_values[week] += deal.value
        person = ctx.user_name(deal.user_id)
        person_counts[person] += 1
        person_values[person] += deal.value
        region = ctx.region_of(deal)
        region_counts[region] += 1
        region_values[region] += deal.value

    return DirectMeetings(
        weekly=[
            WeeklyValue(week=k, count=week_counts[k], value=round_money(week_values[k]))
            for k in sorted(week_counts)
        ],
        by_person=_named_totals(person_counts, person_values),
        by_region=_named_totals(region_counts, region_values),
        totals=DirectTotals(
            meetings=total,
            value=round_money(total_value),
            avg_ticket=round_money(safe_div(total_value, total)),
        ),
    )
