"""Per-call inputs the metric views need besides the deals themselves."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.salesdash.cache.schemas import Deal
from src.salesdash.config import Settings
from src.salesdash.crm.field_mapping import (
    COUNTRY_OPTIONS,
    NEW_CUSTOMER,
    ORIGIN_OPTIONS,
    UPSELLING,
    option_label,
)
from src.salesdash.metrics.regions import region_for_country
from src.salesdash.org.schemas import TeamRead


@dataclass(frozen=True)
class StageConfig:
    """Stage ids of the metrics pipeline that the views bucket on."""

    demo_stage_ids: frozenset[int] = frozenset({3})
    proposal_stage_ids: frozenset[int] = frozenset({4, 64, 30})
    funnel_actual_stage_ids: frozenset[int] = frozenset({4, 30})
    current_sprint_stage_id: int = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> StageConfig:
        return cls(
            demo_stage_ids=frozenset(settings.DEMO_STAGE_IDS),
            proposal_stage_ids=frozenset(settings.PROPOSAL_STAGE_IDS),
            funnel_actual_stage_ids=frozenset(settings.FUNNEL_ACTUAL_STAGE_IDS),
            current_sprint_stage_id=settings.CURRENT_SPRINT_STAGE_ID,
        )


@dataclass
class MetricsContext:
    """Configuration, label maps and owner resolution for one aggregation call.

    allowed_user_ids is the already-resolved owner restriction (None means
    no restriction, an empty set means nobody matches).
    """

    pipeline_id: int = 1
    new_customer_type: str = NEW_CUSTOMER
    upselling_type: str = UPSELLING
    stages: StageConfig = field(default_factory=StageConfig)
    direct_origin_codes: frozenset[str] = frozenset({"15", "230"})
    user_names: dict[int, str] = field(default_factory=dict)
    country_labels: dict[str, str] = field(default_factory=lambda: dict(COUNTRY_OPTIONS))
    origin_labels: dict[str, str] = field(default_factory=lambda: dict(ORIGIN_OPTIONS))
    employee_count_labels: dict[str, str] = field(default_factory=dict)
    user_teams: dict[int, TeamRead] = field(default_factory=dict)
    allowed_user_ids: set[int] | None = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> MetricsContext:
        values = dict(
            pipeline_id=settings.METRICS_PIPELINE_ID,
            new_customer_type=settings.NEW_CUSTOMER_DEAL_TYPE,
            upselling_type=settings.UPSELLING_DEAL_TYPE,
            stages=StageConfig.from_settings(settings),
            direct_origin_codes=frozenset(settings.DIRECT_ORIGIN_CODES),
        )
        values.update(overrides)
        return cls(**values)

    # ── Deal classification ────────────────────────────────────────────────

    def is_new_customer(self, deal: Deal) -> bool:
        return deal.deal_type == self.new_customer_type

    def is_upselling(self, deal: Deal) -> bool:
        return deal.deal_type == self.upselling_type

    def reached_proposal(self, deal: Deal) -> bool:
        return deal.is_won or deal.stage_id in self.stages.proposal_stage_ids

    def reached_demo(self, deal: Deal) -> bool:
        return self.reached_proposal(deal) or deal.stage_id in self.stages.demo_stage_ids

    # ── Labels ─────────────────────────────────────────────────────────────

    def user_name(self, user_id: int | None) -> str:
        if user_id is None:
            return "Sin asignar"
        return self.user_names.get(user_id, f"User {user_id}")

    def country_label(self, code: str | None) -> str:
        return option_label(self.country_labels, code, "Country")

    def origin_label(self, code: str | None) -> str:
        return option_label(self.origin_labels, code, "Origin")

    def employee_count_label(self, code: str | None) -> str:
        return option_label(self.employee_count_labels, code, "Size")

    def region_of(self, deal: Deal) -> str:
        if deal.country is None:
            return region_for_country(None)
        return region_for_country(self.country_labels.get(deal.country))
