"""Loss reasons from the upstream lost_reason field of lost new-customer deals."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import DateRange, DealFilter, lost_in, select_deals
from src.salesdash.metrics.numbers import percentage
from src.salesdash.metrics.schemas import LossReason, LossReasons

UNSPECIFIED_REASON = "Unspecified"


def loss_reasons(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> LossReasons:
    rng = DateRange.from_filter(filters)
    counts: Counter[str] = Counter()
    for deal in select_deals(deals, filters, ctx):
        if ctx.is_new_customer(deal) and lost_in(deal, rng):
            reason = (deal.lost_reason or "").strip() or UNSPECIFIED_REASON
            counts[reason] += 1

    total = sum(counts.values())
    reasons = [
        LossReason(reason=reason, count=count, percentage=percentage(count, total))
        for reason, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]
    return LossReasons(total_lost=total, reasons=reasons)
