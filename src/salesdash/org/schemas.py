"""Pydantic schemas for teams and people."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    display_name: str | None = None


class TeamRead(BaseModel):
    id: int
    name: str
    display_name: str


class PersonCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    display_name: str | None = None
    team_id: int | None = None
    pipedrive_user_id: int | None = None


class PersonRead(BaseModel):
    id: int
    name: str
    display_name: str
    team_id: int | None = None
    pipedrive_user_id: int | None = None
