"""Result models for every dashboard view.

Money fields are whole currency units (rounded on the way out), rates are
percentages (closure rate one decimal, everything else integer).
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# ── Summary ─────────────────────────────────────────────────────────────────


class DashboardSummary(BaseModel):
    total_revenue: int = 0
    won_deals: int = 0
    logos_won: int = 0
    meetings: int = 0
    lost_deals: int = 0
    closure_rate: float = 0.0
    avg_ticket: int = 0
    avg_sales_cycle: int = 0
    new_customer_revenue: int = 0
    new_customer_count: int = 0
    upselling_revenue: int = 0
    upselling_count: int = 0
    total_deals: int = 0
    open_deals: int = 0


# ── Time series ─────────────────────────────────────────────────────────────


class WeeklyValue(BaseModel):
    week: str
    value: int = 0
    count: int = 0


class WeeklyCount(BaseModel):
    week: str
    count: int = 0


class WeeklyClosureRate(BaseModel):
    week: str
    won: int = 0
    lost: int = 0
    closure_rate: float = 0.0


class MonthlyRevenue(BaseModel):
    month: str
    new_customer: int = 0
    upselling: int = 0
    other: int = 0
    total: int = 0


# ── Regional ────────────────────────────────────────────────────────────────


class RegionalCell(BaseModel):
    origin: str
    meetings: int = 0
    meetings_value: int = 0
    proposals: int = 0
    proposals_value: int = 0
    closings: int = 0
    closings_value: int = 0


class RegionBreakdown(BaseModel):
    region: str
    rows: list[RegionalCell] = Field(default_factory=list)
    total: RegionalCell


class QuarterValue(BaseModel):
    quarter: str
    revenue: int = 0
    deals: int = 0


class RegionQuarterSeries(BaseModel):
    region: str
    data: list[QuarterValue] = Field(default_factory=list)


class QuarterlyComparison(BaseModel):
    quarters: list[str] = Field(default_factory=list)
    regions: list[RegionQuarterSeries] = Field(default_factory=list)


class OriginValue(BaseModel):
    origin: str
    value: int = 0
    count: int = 0


class RegionTopOrigins(BaseModel):
    region: str
    origins: list[OriginValue] = Field(default_factory=list)


class RegionSalesCycle(BaseModel):
    region: str
    avg_sales_cycle: int = 0
    deals: int = 0


# ── Funnel ──────────────────────────────────────────────────────────────────


class FunnelStage(BaseModel):
    name: str
    count: int = 0
    value: int = 0
    percentage: float = 0.0
    conversion_to_next: float | None = None


class ConversionFunnel(BaseModel):
    stages: list[FunnelStage] = Field(default_factory=list)


# ── Rankings / distributions ────────────────────────────────────────────────


class RankingEntry(BaseModel):
    key: str
    name: str
    value: int = 0
    count: int = 0


class DistributionSlice(BaseModel):
    key: str
    name: str
    count: int = 0
    percentage: float = 0.0


class DealTypeStats(BaseModel):
    deal_type: str
    label: str
    deals: int = 0
    won: int = 0
    lost: int = 0
    revenue: int = 0


# ── Teams view ──────────────────────────────────────────────────────────────


class PerformanceMetrics(BaseModel):
    revenue: int = 0
    won_deals: int = 0
    closure_rate: float = 0.0
    avg_ticket: int = 0
    avg_sales_cycle: int = 0
    opportunities_created: int = 0
    funnel_actual: int = 0
    current_sprint_value: int = 0
    demo_count: int = 0
    demo_value: int = 0
    proposal_count: int = 0
    proposal_value: int = 0
    won_count: int = 0
    won_value: int = 0
    demo_percentage: float = 0.0
    proposal_percentage: float = 0.0
    won_percentage: float = 0.0


class ExecutiveMetrics(PerformanceMetrics):
    user_id: int
    name: str
    team_id: int | None = None
    team_name: str | None = None


class TeamMetrics(PerformanceMetrics):
    team_id: int | None = None
    team_name: str
    members: list[ExecutiveMetrics] = Field(default_factory=list)


class TeamsView(BaseModel):
    executives: list[ExecutiveMetrics] = Field(default_factory=list)
    teams: list[TeamMetrics] = Field(default_factory=list)
    global_metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)


# ── Direct meetings ─────────────────────────────────────────────────────────


class NamedTotal(BaseModel):
    name: str
    meetings: int = 0
    value: int = 0


class DirectTotals(BaseModel):
    meetings: int = 0
    value: int = 0
    avg_ticket: int = 0


class DirectMeetings(BaseModel):
    weekly: list[WeeklyValue] = Field(default_factory=list)
    by_person: list[NamedTotal] = Field(default_factory=list)
    by_region: list[NamedTotal] = Field(default_factory=list)
    totals: DirectTotals = Field(default_factory=DirectTotals)


# ── Loss reasons / products ─────────────────────────────────────────────────


class LossReason(BaseModel):
    reason: str
    count: int = 0
    percentage: float = 0.0


class LossReasons(BaseModel):
    total_lost: int = 0
    reasons: list[LossReason] = Field(default_factory=list)


class ProductStat(BaseModel):
    product_id: int | None = None
    name: str
    quantity: float = 0
    revenue: int = 0
    deals: int = 0
