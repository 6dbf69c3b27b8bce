"""Per-executive and per-team performance view.

Raw counters (won/closed, cycle sum/count, values) are accumulated per
executive and summed for team and global roll-ups; rates and averages are
derived only when a row is exported, so a team's closure rate is its
members' combined won / combined closed, not an average of percentages.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, fields

from src.salesdash.cache.schemas import Deal
from src.salesdash.metrics.context import MetricsContext
from src.salesdash.metrics.filters import DateRange, DealFilter, created_in, lost_in, select_deals, won_in
from src.salesdash.metrics.numbers import percentage, round_half_up, round_money, safe_div
from src.salesdash.metrics.schemas import ExecutiveMetrics, PerformanceMetrics, TeamMetrics, TeamsView

UNASSIGNED_TEAM = "Sin equipo"


@dataclass
class _Tally:
    revenue: float = 0.0
    won_deals: int = 0
    nc_won: int = 0
    nc_lost: int = 0
    cycle_total: int = 0
    cycle_count: int = 0
    created: int = 0
    funnel_actual: float = 0.0
    current_sprint: float = 0.0
    demo_count: int = 0
    demo_value: float = 0.0
    proposal_count: int = 0
    proposal_value: float = 0.0
    won_count: int = 0
    won_value: float = 0.0

    @property
    def active(self) -> bool:
        return any(getattr(self, f.name) for f in fields(self))

    def merge(self, other: _Tally) -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def export(self) -> dict:
        return dict(
            revenue=round_money(self.revenue),
            won_deals=self.won_deals,
            closure_rate=percentage(self.nc_won, self.nc_won + self.nc_lost, digits=1),
            avg_ticket=round_money(safe_div(self.revenue, self.won_deals)),
            avg_sales_cycle=int(round_half_up(safe_div(self.cycle_total, self.cycle_count))),
            opportunities_created=self.created,
            funnel_actual=round_money(self.funnel_actual),
            current_sprint_value=round_money(self.current_sprint),
            demo_count=self.demo_count,
            demo_value=round_money(self.demo_value),
            proposal_count=self.proposal_count,
            proposal_value=round_money(self.proposal_value),
            won_count=self.won_count,
            won_value=round_money(self.won_value),
            demo_percentage=percentage(self.demo_count, self.created),
            proposal_percentage=percentage(self.proposal_count, self.created),
            won_percentage=percentage(self.won_count, self.created),
        )


def _tally_deal(tally: _Tally, deal: Deal, rng: DateRange, ctx: MetricsContext) -> None:
    new_customer = ctx.is_new_customer(deal)

    if won_in(deal, rng):
        tally.revenue += deal.value
        tally.won_deals += 1
        if new_customer:
            tally.nc_won += 1
            if deal.sales_cycle_days is not None:
                tally.cycle_total += deal.sales_cycle_days
                tally.cycle_count += 1
    elif new_customer and lost_in(deal, rng):
        tally.nc_lost += 1

    if new_customer and created_in(deal, rng):
        tally.created += 1
        if ctx.reached_demo(deal):
            tally.demo_count += 1
            tally.demo_value += deal.value
        if ctx.reached_proposal(deal):
            tally.proposal_count += 1
            tally.proposal_value += deal.value
        if deal.is_won:
            tally.won_count += 1
            tally.won_value += deal.value

    # Current pipeline snapshot, independent of the date range.
    if deal.is_open:
        if deal.stage_id in ctx.stages.funnel_actual_stage_ids:
            tally.funnel_actual += deal.value
        if deal.stage_id == ctx.stages.current_sprint_stage_id:
            tally.current_sprint += deal.value


def teams_view(deals: Sequence[Deal], filters: DealFilter, ctx: MetricsContext) -> TeamsView:
    """Executives with any activity for the filter, their teams and a global roll-up."""
    rng = DateRange.from_filter(filters)
    tallies: dict[int, _Tally] = defaultdict(_Tally)
    for deal in select_deals(deals, filters, ctx):
        if deal.user_id is None:
            continue
        _tally_deal(tallies[deal.user_id], deal, rng, ctx)

    executives: list[tuple[_Tally, ExecutiveMetrics]] = []
    for user_id, tally in tallies.items():
        if not tally.active:
            continue
        team = ctx.user_teams.get(user_id)
        executives.append(
            (
                tally,
                ExecutiveMetrics(
                    user_id=user_id,
                    name=ctx.user_name(user_id),
                    team_id=team.id if team else None,
                    team_name=team.display_name if team else None,
                    **tally.export(),
                ),
            )
        )
    executives.sort(key=lambda item: (-item[0].revenue, item[1].name))

    team_tallies: dict[int | None, _Tally] = defaultdict(_Tally)
    team_members: dict[int | None, list[ExecutiveMetrics]] = defaultdict(list)
    team_names: dict[int | None, str] = {None: UNASSIGNED_TEAM}
    overall = _Tally()
    for tally, executive in executives:
        team_tallies[executive.team_id].merge(tally)
        team_members[executive.team_id].append(executive)
        if executive.team_id is not None:
            team_names[executive.team_id] = executive.team_name or str(executive.team_id)
        overall.merge(tally)

    teams = [
        TeamMetrics(
            team_id=team_id,
            team_name=team_names[team_id],
            members=team_members[team_id],
            **tally.export(),
        )
        for team_id, tally in sorted(team_tallies.items(), key=lambda item: -item[1].revenue)
    ]

    return TeamsView(
        executives=[executive for _, executive in executives],
        teams=teams,
        global_metrics=PerformanceMetrics(**overall.export()),
    )
