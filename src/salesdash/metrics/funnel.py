"""Meetings -> proposals -> closings conversion funnel."""

from __future__ import annotations

from collections.abc import Sequence

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import DateBasis, DealFilter, select_deals
from src.salesdash.metrics.numbers import percentage, round_money
from src.salesdash.metrics.schemas import ConversionFunnel, FunnelStage


def conversion_funnel(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> ConversionFunnel:
    """Funnel over new-customer deals created in range.

    Each stage is a subset of the previous one, so counts never increase
    down the funnel.
    """
    meetings = [
        d for d in select_deals(deals, filters, ctx, DateBasis.CREATED) if ctx.is_new_customer(d)
    ]
    proposals = [d for d in meetings if ctx.reached_proposal(d)]
    closings = [d for d in proposals if d.is_won]

    steps = [("Meetings", meetings), ("Proposals", proposals), ("Closings", closings)]
    first = len(meetings)
    stages = []
    for index, (name, members) in enumerate(steps):
        conversion = None
        if index + 1 < len(steps):
            conversion = percentage(len(steps[index + 1][1]), len(members))
        stages.append(
            FunnelStage(
                name=name,
                count=len(members),
                value=round_money(sum(d.value for d in members)),
                percentage=percentage(len(members), first),
                conversion_to_next=conversion,
            )
        )
    return ConversionFunnel(stages=stages)
