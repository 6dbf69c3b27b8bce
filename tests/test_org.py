"""Tests for the org repository and upstream user resolution."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from src.salesdash.org.repository import OrgRepository
from src.salesdash.org.resolver import (
    build_user_team_index,
    match_user_id,
    normalize_name,
    resolve_team_user_ids,
)
from src.salesdash.org.schemas import PersonCreate, PersonRead, TeamCreate, TeamRead

USERS = [
    {"id": 7, "name": "Ana María Gómez", "active_flag": True},
    {"id": 8, "name": "Luis Perez", "active_flag": True},
    {"id": 9, "name": "Carolina Restrepo", "active_flag": False},
]


def _person(person_id: int, name: str, team_id: int | None = 1, **overrides) -> PersonRead:
    values = {"id": person_id, "name": name, "display_name": name, "team_id": team_id}
    values.update(overrides)
    return PersonRead(**values)


class TestOrgRepository:
    async def test_create_and_list_teams(self, session_factory):
        repo = OrgRepository(session_factory)

        sales = await repo.create_team(TeamCreate(name="sales"))
        await repo.create_team(TeamCreate(name="enterprise", display_name="Enterprise"))

        assert sales.display_name == "sales"
        assert [t.name for t in await repo.list_teams()] == ["enterprise", "sales"]
        assert (await repo.get_team(sales.id)).name == "sales"
        assert await repo.get_team(999) is None

    async def test_people_by_team(self, session_factory):
        repo = OrgRepository(session_factory)
        sales = await repo.create_team(TeamCreate(name="sales"))
        ana = await repo.create_person(PersonCreate(name="Ana", team_id=sales.id))
        await repo.create_person(PersonCreate(name="Bruno", pipedrive_user_id=42))

        assert [p.name for p in await repo.list_people()] == ["Ana", "Bruno"]
        assert [p.id for p in await repo.list_people(team_id=sales.id)] == [ana.id]
        bruno = (await repo.list_people())[1]
        assert bruno.pipedrive_user_id == 42
        assert bruno.team_id is None

    async def test_assign_person_team(self, session_factory):
        repo = OrgRepository(session_factory)
        sales = await repo.create_team(TeamCreate(name="sales"))
        ana = await repo.create_person(PersonCreate(name="Ana"))

        moved = await repo.assign_person_team(ana.id, sales.id)
        assert moved.team_id == sales.id

        detached = await repo.assign_person_team(ana.id, None)
        assert detached.team_id is None

        assert await repo.assign_person_team(999, sales.id) is None

    async def test_every_session_is_closed(self, engine):
        opened, closed = [], []

        async def tracking_factory():
            async with AsyncSession(engine, expire_on_commit=False) as session:
                opened.append(session)
                try:
                    yield session
                finally:
                    closed.append(session)

        repo = OrgRepository(tracking_factory)
        sales = await repo.create_team(TeamCreate(name="sales"))
        await repo.create_team(TeamCreate(name="enterprise"))
        ana = await repo.create_person(PersonCreate(name="Ana", team_id=sales.id))
        await repo.assign_person_team(ana.id, None)
        await repo.get_team(sales.id)

        assert len(opened) == 5
        assert closed == opened
        assert [t.name for t in await repo.list_teams()] == ["enterprise", "sales"]


class TestNameMatching:
    def test_normalize_strips_accents_and_case(self):
        assert normalize_name("  Ana  MARÍA Gómez ") == "ana maria gomez"

    def test_explicit_mapping_wins(self):
        person = _person(1, "Somebody Else", pipedrive_user_id=8)
        assert match_user_id(person, USERS) == 8

    def test_token_subset_match(self):
        assert match_user_id(_person(1, "Ana Gomez"), USERS) == 7

    def test_fuzzy_match(self):
        assert match_user_id(_person(1, "Luis Peres"), USERS) == 8

    def test_display_name_fallback(self):
        person = _person(1, "cresterpo", display_name="Carolina Restrepo")
        assert match_user_id(person, USERS) == 9

    def test_exact_name_beats_earlier_partial_match(self):
        users = [{"id": 1, "name": "Juan"}, {"id": 2, "name": "Juan Perez"}]
        assert match_user_id(_person(1, "Juan Perez"), users) == 2

    def test_containment_beats_fuzzy_match(self):
        users = [{"id": 1, "name": "Juan Peres"}, {"id": 2, "name": "Juan Perez Lopez"}]
        assert match_user_id(_person(1, "Juan Perez"), users) == 2

    def test_closest_containment_wins(self):
        users = [{"id": 1, "name": "Ana"}, {"id": 2, "name": "Ana Gomez"}]
        assert match_user_id(_person(1, "Ana Gomez Ruiz"), users) == 2

    def test_no_match(self):
        assert match_user_id(_person(1, "Zoe Park"), USERS) is None


class TestTeamResolution:
    def test_resolve_team_user_ids(self):
        people = [_person(1, "Ana Gomez"), _person(2, "Luis Perez", team_id=2), _person(3, "Nobody Known")]

        assert resolve_team_user_ids(1, people, USERS) == {7}
        assert resolve_team_user_ids(3, people, USERS) == set()

    def test_build_user_team_index(self):
        teams = [TeamRead(id=1, name="a", display_name="A"), TeamRead(id=2, name="b", display_name="B")]
        people = [_person(1, "Ana Gomez"), _person(2, "Luis Perez", team_id=2), _person(3, "Orphan", team_id=None)]

        index = build_user_team_index(teams, people, USERS)

        assert {uid: team.name for uid, team in index.items()} == {7: "a", 8: "b"}
