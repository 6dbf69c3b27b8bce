"""Reference data endpoints (filter options for the dashboard)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from src.salesdash.config import get_settings

router = APIRouter(prefix="/reference", tags=["reference"])


class OptionResponse(BaseModel):
    """A selectable filter option."""

    code: str
    label: str


class UserResponse(BaseModel):
    id: int
    name: str
    active: bool = True


def _get_reference(request: Request) -> Any:
    """Retrieve ReferenceData from app.state, 503 if not available."""
    reference = getattr(request.app.state, "reference_data", None)
    if reference is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reference data not initialized",
        )
    return reference


def _options(labels: dict[str, str]) -> list[OptionResponse]:
    return sorted(
        (OptionResponse(code=code, label=label) for code, label in labels.items()),
        key=lambda o: o.label,
    )


@router.get("/users", response_model=list[UserResponse])
async def list_users(request: Request) -> list[UserResponse]:
    users = await _get_reference(request).users()
    return [
        UserResponse(
            id=int(u["id"]),
            name=u.get("name") or f"User {u['id']}",
            active=bool(u.get("active_flag", True)),
        )
        for u in users
        if "id" in u
    ]


@router.get("/countries", response_model=list[OptionResponse])
async def list_countries(request: Request) -> list[OptionResponse]:
    return _options(await _get_reference(request).country_labels())


@router.get("/origins", response_model=list[OptionResponse])
async def list_origins(request: Request) -> list[OptionResponse]:
    return _options(await _get_reference(request).origin_labels())


@router.get("/deal-types", response_model=list[OptionResponse])
async def list_deal_types() -> list[OptionResponse]:
    settings = get_settings()
    return [
        OptionResponse(code=settings.NEW_CUSTOMER_DEAL_TYPE, label="New Customer"),
        OptionResponse(code=settings.UPSELLING_DEAL_TYPE, label="Upselling"),
    ]
