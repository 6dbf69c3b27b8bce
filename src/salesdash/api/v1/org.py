"""Team and people endpoints for the internal org mapping."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel

from src.salesdash.org.schemas import PersonCreate, PersonRead, TeamCreate, TeamRead

router = APIRouter(tags=["org"])


class AssignTeamRequest(BaseModel):
    """Request body for moving a person to a team (null detaches)."""

    team_id: int | None = None


def _get_org_repository(request: Request) -> Any:
    """Retrieve OrgRepository from app.state, 503 if not available."""
    repo = getattr(request.app.state, "org_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Org mapping not initialized",
        )
    return repo


async def _require_team(repo: Any, team_id: int | None) -> None:
    if team_id is not None and await repo.get_team(team_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Team not found: {team_id}",
        )


@router.get("/teams", response_model=list[TeamRead])
async def list_teams(request: Request) -> list[TeamRead]:
    return await _get_org_repository(request).list_teams()


@router.post("/teams", response_model=TeamRead, status_code=201)
async def create_team(body: TeamCreate, request: Request) -> TeamRead:
    return await _get_org_repository(request).create_team(body)


@router.get("/people", response_model=list[PersonRead])
async def list_people(request: Request, team_id: int | None = Query(None)) -> list[PersonRead]:
    return await _get_org_repository(request).list_people(team_id=team_id)


@router.post("/people", response_model=PersonRead, status_code=201)
async def create_person(body: PersonCreate, request: Request) -> PersonRead:
    repo = _get_org_repository(request)
    await _require_team(repo, body.team_id)
    return await repo.create_person(body)


@router.put("/people/{person_id}/team", response_model=PersonRead)
async def assign_person_team(person_id: int, body: AssignTeamRequest, request: Request) -> PersonRead:
    """Move a person to another team."""
    repo = _get_org_repository(request)
    await _require_team(repo, body.team_id)
    person = await repo.assign_person_team(person_id, body.team_id)
    if person is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Person not found: {person_id}",
        )
    return person
