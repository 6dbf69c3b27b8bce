"""Raw Pipedrive record -> flat Deal.

Reference fields arrive either as bare ids or as objects ({"id": 7, "name": ...}
for users, {"value": 12, "name": ...} for persons/orgs); custom categorical
fields arrive as option ids (int, str or {"id": ...}). Everything is coerced
into the typed Deal schema here so the metrics engine never sees raw shapes.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from src.salesdash.cache.schemas import Deal, DealStatus
from src.salesdash.config import Settings
from src.salesdash.metrics.numbers import round_half_up

logger = structlog.get_logger(__name__)

_SECONDS_PER_DAY = 86_400


class NormalizationError(ValueError):
    """A raw record cannot be turned into a Deal."""


@dataclass(frozen=True)
class CustomFieldKeys:
    """Upstream custom-field hashes for the categorical columns."""

    deal_type: str
    country: str
    origin: str
    employee_count: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> CustomFieldKeys:
        return cls(
            deal_type=settings.DEAL_TYPE_FIELD_KEY,
            country=settings.COUNTRY_FIELD_KEY,
            origin=settings.ORIGIN_FIELD_KEY,
            employee_count=settings.EMPLOYEE_COUNT_FIELD_KEY,
        )


# ── Field coercion ──────────────────────────────────────────────────────────


def resolve_ref_id(value: Any) -> int | None:
    """Bare id or reference object -> int id (None when absent)."""
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        value = value.get("id", value.get("value"))
        if value is None:
            return None
    if isinstance(value, bool):
        raise NormalizationError(f"unexpected boolean reference: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise NormalizationError(f"invalid reference id: {value!r}") from exc


def code_to_str(value: Any) -> str | None:
    """Categorical option code -> string code, absent -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        value = value.get("id", value.get("value"))
        if value is None:
            return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse "YYYY-MM-DD HH:MM:SS" (UTC) or ISO-8601 into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise NormalizationError(f"invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def compute_sales_cycle_days(
    status: DealStatus,
    add_time: datetime | None,
    won_time: datetime | None,
) -> int | None:
    """Whole days from creation to won, only for won deals.

    A won_time earlier than add_time is rejected (None) rather than stored
    as a negative cycle.
    """
    if status != DealStatus.WON or add_time is None or won_time is None:
        return None
    seconds = (won_time - add_time).total_seconds()
    if seconds < 0:
        return None
    return int(round_half_up(seconds / _SECONDS_PER_DAY))


# ── Record normalization ────────────────────────────────────────────────────


def normalize_deal(raw: dict[str, Any], keys: CustomFieldKeys) -> Deal:
    """Map one raw upstream deal onto the flat Deal schema."""
    deal_id = raw.get("id")
    if isinstance(deal_id, bool) or not isinstance(deal_id, (int, str)):
        raise NormalizationError(f"deal without usable id: {deal_id!r}")
    try:
        deal_id = int(deal_id)
    except ValueError as exc:
        raise NormalizationError(f"deal without usable id: {deal_id!r}") from exc

    try:
        status = DealStatus(raw.get("status") or "open")
    except ValueError as exc:
        raise NormalizationError(f"deal {deal_id}: unknown status {raw.get('status')!r}") from exc

    add_time = parse_timestamp(raw.get("add_time"))
    won_time = parse_timestamp(raw.get("won_time"))
    lost_time = parse_timestamp(raw.get("lost_time"))

    raw_value = raw.get("value")
    try:
        value = float(raw_value) if raw_value not in (None, "") else 0.0
    except (TypeError, ValueError) as exc:
        raise NormalizationError(f"deal {deal_id}: invalid value {raw_value!r}") from exc

    return Deal(
        id=deal_id,
        title=raw.get("title"),
        value=value,
        currency=raw.get("currency"),
        status=status,
        stage_id=resolve_ref_id(raw.get("stage_id")),
        pipeline_id=resolve_ref_id(raw.get("pipeline_id")),
        user_id=resolve_ref_id(raw.get("user_id")),
        creator_user_id=resolve_ref_id(raw.get("creator_user_id")),
        person_id=resolve_ref_id(raw.get("person_id")),
        org_id=resolve_ref_id(raw.get("org_id")),
        add_time=add_time,
        won_time=won_time,
        lost_time=lost_time,
        lost_reason=(raw.get("lost_reason") or None),
        deal_type=code_to_str(raw.get(keys.deal_type)),
        country=code_to_str(raw.get(keys.country)),
        origin=code_to_str(raw.get(keys.origin)),
        employee_count=code_to_str(raw.get(keys.employee_count)) if keys.employee_count else None,
        sales_cycle_days=compute_sales_cycle_days(status, add_time, won_time),
    )


def dedupe_raw_deals(batches: Iterable[list[dict[str, Any]]]) -> list[dict[str, Any]]:
    """Flatten per-pipeline batches keeping the first record seen for each id."""
    seen: set[Any] = set()
    unique: list[dict[str, Any]] = []
    for batch in batches:
        for raw in batch:
            deal_id = raw.get("id")
            if deal_id in seen:
                continue
            seen.add(deal_id)
            unique.append(raw)
    return unique


def normalize_deals(
    raws: Iterable[dict[str, Any]],
    keys: CustomFieldKeys,
) -> tuple[list[Deal], int]:
    """Normalize records, skipping (and logging) malformed ones.

    Returns:
        (deals, skipped_count)
    """
    deals: list[Deal] = []
    skipped = 0
    for raw in raws:
        try:
            deals.append(normalize_deal(raw, keys))
        except NormalizationError as exc:
            skipped += 1
            logger.warning("cache.record_skipped", deal_id=raw.get("id"), error=str(exc))
    return deals, skipped
