"""Internal org mapping -- teams, people and their upstream user ids."""

from src.salesdash.org.repository import OrgRepository
from src.salesdash.org.resolver import build_user_team_index, match_user_id, resolve_team_user_ids
from src.salesdash.org.schemas import PersonCreate, PersonRead, TeamCreate, TeamRead

__all__ = [
    "OrgRepository",
    "PersonCreate",
    "PersonRead",
    "TeamCreate",
    "TeamRead",
    "build_user_team_index",
    "match_user_id",
    "resolve_team_user_ids",
]
