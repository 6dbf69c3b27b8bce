"""Tests for TTL-cached upstream reference data."""

from __future__ import annotations

from src.salesdash.cache.reference import ReferenceData
from src.salesdash.crm.field_mapping import COUNTRY_OPTIONS, parse_field_options
from tests.conftest import FakeDealSource

USERS = [
    {"id": 7, "name": "Ana Gomez", "active_flag": True},
    {"id": 8, "name": None, "active_flag": False},
]


def _fields(settings) -> list[dict]:
    return [
        {"key": settings.COUNTRY_FIELD_KEY, "options": [{"id": 999, "label": "Atlantis"}, {"id": 267, "label": "Colombia"}]},
        {"key": "size_key", "options": [{"id": 1, "label": "1-10"}, {"id": 2, "label": "11-50"}]},
        {"key": "title", "options": None},
    ]


class _CountingSource(FakeDealSource):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.user_calls = 0
        self.fail_users = False

    async def list_users(self):
        self.user_calls += 1
        if self.fail_users:
            raise RuntimeError("rate limited")
        return await super().list_users()


class TestUsers:
    async def test_user_names_and_active_users(self, settings):
        reference = ReferenceData(FakeDealSource(users=USERS), settings)

        assert await reference.user_names() == {7: "Ana Gomez", 8: "User 8"}
        assert [u["id"] for u in await reference.active_users()] == [7]

    async def test_users_cached_within_ttl(self, settings):
        source = _CountingSource(users=USERS)
        reference = ReferenceData(source, settings)

        await reference.users()
        await reference.users()

        assert source.user_calls == 1

    async def test_expired_ttl_refetches(self, settings):
        source = _CountingSource(users=USERS)
        reference = ReferenceData(source, settings.model_copy(update={"REFERENCE_TTL_SECONDS": 0}))

        await reference.users()
        await reference.users()

        assert source.user_calls == 2

    async def test_failure_keeps_last_good_value(self, settings):
        source = _CountingSource(users=USERS)
        reference = ReferenceData(source, settings.model_copy(update={"REFERENCE_TTL_SECONDS": 0}))
        await reference.users()

        source.fail_users = True

        assert await reference.users() == USERS

    async def test_failure_without_cache_is_empty(self, settings):
        source = _CountingSource(users=USERS)
        source.fail_users = True
        reference = ReferenceData(source, settings)

        assert await reference.users() == []
        assert await reference.user_names() == {}

    async def test_invalidate(self, settings):
        source = _CountingSource(users=USERS)
        reference = ReferenceData(source, settings)
        await reference.users()

        reference.invalidate()
        await reference.users()

        assert source.user_calls == 2


class TestFieldOptions:
    def test_parse_field_options_skips_fields_without_options(self, settings):
        parsed = parse_field_options(_fields(settings))

        assert set(parsed) == {settings.COUNTRY_FIELD_KEY, "size_key"}
        assert parsed["size_key"] == {"1": "1-10", "2": "11-50"}

    async def test_fetched_labels_extend_static_table(self, settings):
        reference = ReferenceData(FakeDealSource(fields=_fields(settings)), settings)

        labels = await reference.country_labels()

        assert labels["999"] == "Atlantis"
        assert labels["269"] == COUNTRY_OPTIONS["269"]

    async def test_static_table_when_fields_fail(self, settings):
        class _Broken(FakeDealSource):
            async def list_deal_fields(self):
                raise RuntimeError("down")

        reference = ReferenceData(_Broken(), settings)

        assert await reference.country_labels() == COUNTRY_OPTIONS

    async def test_employee_count_labels_need_a_field_key(self, settings):
        source = FakeDealSource(fields=_fields(settings))

        assert await ReferenceData(source, settings).employee_count_labels() == {}
        mapped = settings.model_copy(update={"EMPLOYEE_COUNT_FIELD_KEY": "size_key"})
        assert await ReferenceData(source, mapped).employee_count_labels() == {"1": "1-10", "2": "11-50"}
