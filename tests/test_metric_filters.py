"""Tests for the shared deal filter and the numeric/calendar helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from src.salesdash.cache.schemas import Deal, DealStatus
from src.salesdash.metrics.filters import (
    DateBasis,
    DateRange,
    DealFilter,
    build_deal_predicate,
    lost_in,
    resolve_owner_ids,
)
from src.salesdash.metrics.numbers import percentage, round_half_up, round_money, safe_div
from src.salesdash.metrics.periods import last_week_keys, month_key, quarter_key, week_key
from src.salesdash.metrics.regions import REST_LATAM, region_for_country


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _make_deal(**overrides) -> Deal:
    defaults = {
        "id": 1,
        "value": 1000,
        "status": DealStatus.OPEN,
        "pipeline_id": 1,
        "stage_id": 2,
        "user_id": 7,
        "add_time": _utc(2024, 3, 10, 15),
        "deal_type": "13",
        "country": "267",
        "origin": "15",
    }
    defaults.update(overrides)
    return Deal(**defaults)


class TestDealFilter:
    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            DealFilter(start_date=date(2024, 3, 2), end_date=date(2024, 3, 1))

    def test_same_day_range_allowed(self):
        f = DealFilter(start_date=date(2024, 3, 1), end_date=date(2024, 3, 1))
        assert f.start_date == f.end_date


class TestDateRange:
    def test_end_day_is_inclusive(self):
        rng = DateRange.from_filter(DealFilter(start_date=date(2024, 3, 1), end_date=date(2024, 3, 31)))

        assert rng.contains(_utc(2024, 3, 1, 0, 0))
        assert rng.contains(_utc(2024, 3, 31, 23, 59, 59))
        assert not rng.contains(_utc(2024, 4, 1, 0, 0))
        assert not rng.contains(_utc(2024, 2, 29, 23, 59))

    def test_open_ended_ranges(self):
        only_start = DateRange.from_filter(DealFilter(start_date=date(2024, 3, 1)))
        assert only_start.contains(_utc(2030, 1, 1))
        assert not only_start.contains(_utc(2024, 2, 1))

    def test_missing_timestamp(self):
        assert DateRange().contains(None) is True
        bounded = DateRange.from_filter(DealFilter(end_date=date(2024, 3, 1)))
        assert bounded.contains(None) is False

    def test_lost_falls_back_to_add_time(self):
        rng = DateRange.from_filter(DealFilter(start_date=date(2024, 3, 1), end_date=date(2024, 3, 31)))
        deal = _make_deal(status=DealStatus.LOST, lost_time=None, add_time=_utc(2024, 3, 5))

        assert lost_in(deal, rng) is True
        assert lost_in(deal.model_copy(update={"lost_time": _utc(2024, 4, 2)}), rng) is False


class TestPredicate:
    def test_no_filter_only_checks_pipeline(self):
        predicate = build_deal_predicate(DealFilter(), pipeline_id=1)

        assert predicate(_make_deal())
        assert not predicate(_make_deal(pipeline_id=2))

    def test_pipeline_clause_can_be_disabled(self):
        predicate = build_deal_predicate(DealFilter(), pipeline_id=None)
        assert predicate(_make_deal(pipeline_id=2))

    def test_categorical_clauses(self):
        filters = DealFilter(deal_type="13", countries=["267", "265"], origins=["15"])
        predicate = build_deal_predicate(filters, pipeline_id=1)

        assert predicate(_make_deal())
        assert predicate(_make_deal(country="265"))
        assert not predicate(_make_deal(deal_type="14"))
        assert not predicate(_make_deal(country="269"))
        assert not predicate(_make_deal(country=None))
        assert not predicate(_make_deal(origin="230"))

    def test_owner_clause(self):
        assert build_deal_predicate(DealFilter(), pipeline_id=1, allowed_user_ids={7})(_make_deal())
        assert not build_deal_predicate(DealFilter(), pipeline_id=1, allowed_user_ids={8})(_make_deal())
        # empty set means nobody, not "no restriction"
        assert not build_deal_predicate(DealFilter(), pipeline_id=1, allowed_user_ids=set())(_make_deal())

    def test_date_basis(self):
        filters = DealFilter(start_date=date(2024, 4, 1), end_date=date(2024, 4, 30))
        won_in_april = _make_deal(
            status=DealStatus.WON,
            add_time=_utc(2024, 3, 1),
            won_time=_utc(2024, 4, 10),
        )
        open_in_march = _make_deal(add_time=_utc(2024, 3, 1))

        created = build_deal_predicate(filters, pipeline_id=1, basis=DateBasis.CREATED)
        won = build_deal_predicate(filters, pipeline_id=1, basis=DateBasis.WON)
        mixed = build_deal_predicate(filters, pipeline_id=1, basis=DateBasis.MIXED)
        any_ = build_deal_predicate(filters, pipeline_id=1, basis=DateBasis.ANY)

        assert not created(won_in_april)
        assert won(won_in_april)
        assert mixed(won_in_april)
        assert not won(open_in_march)
        assert not mixed(open_in_march)
        assert any_(open_in_march)


class TestOwnerResolution:
    def test_person_beats_team(self):
        assert resolve_owner_ids(DealFilter(person_id=3, team_id=1), {7, 8}) == {3}

    def test_team_resolves_to_members(self):
        assert resolve_owner_ids(DealFilter(team_id=1), {7, 8}) == {7, 8}

    def test_team_without_members_matches_nobody(self):
        assert resolve_owner_ids(DealFilter(team_id=1), None) == set()

    def test_no_owner_filter(self):
        assert resolve_owner_ids(DealFilter(), {7}) is None


class TestNumbers:
    def test_safe_div(self):
        assert safe_div(1, 0) == 0.0
        assert safe_div(3, 2) == 1.5

    def test_half_up_rounding(self):
        assert round_half_up(2.5) == 3.0
        assert round_half_up(0.5) == 1.0
        assert round_half_up(66.65, 1) == 66.7
        assert round_money(1499.5) == 1500

    def test_percentage(self):
        assert percentage(1, 2) == 50.0
        assert percentage(2, 3, digits=1) == 66.7
        assert percentage(5, 0) == 0.0


class TestPeriods:
    def test_iso_week_across_year_boundary(self):
        assert week_key(date(2024, 12, 30)) == "2025-W01"
        assert week_key(date(2021, 1, 3)) == "2020-W53"

    def test_month_and_quarter(self):
        assert month_key(date(2024, 3, 9)) == "2024-03"
        assert quarter_key(date(2024, 3, 31)) == "2024-Q1"
        assert quarter_key(date(2024, 10, 1)) == "2024-Q4"

    def test_last_week_keys(self):
        keys = last_week_keys(_utc(2024, 1, 10), 3)
        assert keys == ["2023-W52", "2024-W01", "2024-W02"]


class TestRegions:
    @pytest.mark.parametrize(
        "label, region",
        [
            ("Colombia", "Colombia"),
            ("México", "Mexico"),
            ("Brazil", "Brasil"),
            ("Spain", "España"),
            ("Chile", REST_LATAM),
            (None, REST_LATAM),
        ],
    )
    def test_region_for_country(self, label, region):
        assert region_for_country(label) == region
