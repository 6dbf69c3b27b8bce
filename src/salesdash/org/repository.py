"""Org mapping repository -- async CRUD for teams and people.

Uses the session_factory callable pattern shared with DealCacheStore.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.salesdash.core.database import open_session
from src.salesdash.org.models import PersonModel, TeamModel
from src.salesdash.org.schemas import PersonCreate, PersonRead, TeamCreate, TeamRead

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_team(model: TeamModel) -> TeamRead:
    return TeamRead(id=model.id, name=model.name, display_name=model.display_name)


def _model_to_person(model: PersonModel) -> PersonRead:
    return PersonRead(
        id=model.id,
        name=model.name,
        display_name=model.display_name,
        team_id=model.team_id,
        pipedrive_user_id=model.pipedrive_user_id,
    )


# ── Repository ──────────────────────────────────────────────────────────────


class OrgRepository:
    """Async CRUD for teams and people.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Teams ───────────────────────────────────────────────────────────────

    async def create_team(self, data: TeamCreate) -> TeamRead:
        async with open_session(self._session_factory) as session:
            model = TeamModel(name=data.name, display_name=data.display_name or data.name)
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("org.team_created", team_id=model.id, name=model.name)
            return _model_to_team(model)

    async def get_team(self, team_id: int) -> TeamRead | None:
        async with open_session(self._session_factory) as session:
            model = await session.get(TeamModel, team_id)
            return _model_to_team(model) if model is not None else None

    async def list_teams(self) -> list[TeamRead]:
        async with open_session(self._session_factory) as session:
            result = await session.execute(select(TeamModel).order_by(TeamModel.name))
            return [_model_to_team(m) for m in result.scalars().all()]

    # ── People ──────────────────────────────────────────────────────────────

    async def create_person(self, data: PersonCreate) -> PersonRead:
        async with open_session(self._session_factory) as session:
            model = PersonModel(
                name=data.name,
                display_name=data.display_name or data.name,
                team_id=data.team_id,
                pipedrive_user_id=data.pipedrive_user_id,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("org.person_created", person_id=model.id, team_id=model.team_id)
            return _model_to_person(model)

    async def get_person(self, person_id: int) -> PersonRead | None:
        async with open_session(self._session_factory) as session:
            model = await session.get(PersonModel, person_id)
            return _model_to_person(model) if model is not None else None

    async def list_people(self, team_id: int | None = None) -> list[PersonRead]:
        async with open_session(self._session_factory) as session:
            stmt = select(PersonModel).order_by(PersonModel.name)
            if team_id is not None:
                stmt = stmt.where(PersonModel.team_id == team_id)
            result = await session.execute(stmt)
            return [_model_to_person(m) for m in result.scalars().all()]

    async def assign_person_team(self, person_id: int, team_id: int | None) -> PersonRead | None:
        """Move a person to another team (None detaches them).

        Returns:
            The updated person, or None if the person does not exist.
        """
        async with open_session(self._session_factory) as session:
            model = await session.get(PersonModel, person_id)
            if model is None:
                return None
            model.team_id = team_id
            await session.commit()
            await session.refresh(model)
            logger.info("org.person_reassigned", person_id=person_id, team_id=team_id)
            return _model_to_person(model)
