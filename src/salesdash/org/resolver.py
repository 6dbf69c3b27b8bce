"""Resolve internal teams/people to upstream user ids.

People with an explicit pipedrive_user_id are used as-is. Otherwise the
person's name is matched against every upstream user name, accent- and
case-insensitively. An exact name beats token containment, which beats a
difflib similarity ratio; within a tier the highest ratio wins.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Sequence
from difflib import SequenceMatcher
from typing import Any

from src.salesdash.org.schemas import PersonRead, TeamRead

NAME_MATCH_THRESHOLD = 0.85


def normalize_name(name: str) -> str:
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def _match_score(person_name: str, user_name: str) -> tuple[int, float] | None:
    """Rank a name pair as (tier, ratio); higher is better, None is no match.

    Tiers: 2 exact normalized name, 1 token containment, 0 similarity ratio.
    """
    a, b = normalize_name(person_name), normalize_name(user_name)
    if not a or not b:
        return None
    if a == b:
        return (2, 1.0)
    ratio = SequenceMatcher(None, a, b).ratio()
    a_tokens, b_tokens = set(a.split()), set(b.split())
    if a_tokens <= b_tokens or b_tokens <= a_tokens:
        return (1, ratio)
    if ratio >= NAME_MATCH_THRESHOLD:
        return (0, ratio)
    return None


def match_user_id(person: PersonRead, users: Sequence[dict[str, Any]]) -> int | None:
    """Upstream user id for a person (explicit mapping, else best name match)."""
    if person.pipedrive_user_id is not None:
        return person.pipedrive_user_id
    best_id: int | None = None
    best_score: tuple[int, float] | None = None
    for candidate in (person.name, person.display_name):
        for user in users:
            if "id" not in user:
                continue
            score = _match_score(candidate, user.get("name") or "")
            # ties keep the earlier user
            if score is not None and (best_score is None or score > best_score):
                best_id, best_score = int(user["id"]), score
    return best_id


def resolve_team_user_ids(
    team_id: int,
    people: Iterable[PersonRead],
    users: Sequence[dict[str, Any]],
) -> set[int]:
    """Set of upstream user ids belonging to a team (empty when none resolve)."""
    resolved: set[int] = set()
    for person in people:
        if person.team_id != team_id:
            continue
        user_id = match_user_id(person, users)
        if user_id is not None:
            resolved.add(user_id)
    return resolved


def build_user_team_index(
    teams: Iterable[TeamRead],
    people: Iterable[PersonRead],
    users: Sequence[dict[str, Any]],
) -> dict[int, TeamRead]:
    """Map upstream user id -> team for every person that resolves."""
    by_id = {team.id: team for team in teams}
    index: dict[int, TeamRead] = {}
    for person in people:
        if person.team_id is None or person.team_id not in by_id:
            continue
        user_id = match_user_id(person, users)
        if user_id is not None:
            index[user_id] = by_id[person.team_id]
    return index
