"""
Profile repository (persistence).

Staff profiles (`profiles`), keyed by the auth user id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from repositories.client import get_supabase, run_rows

_PROFILES_TABLE: str = "profiles"


@dataclass(frozen=True, slots=True)
class Profile:
    user_id: str
    email: Optional[str]
    full_name: Optional[str]

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or self.user_id


def _row_to_profile(row: Mapping[str, Any]) -> Profile:
    return Profile(
        user_id=str(row["id"]),
        email=row.get("email"),
        full_name=row.get("full_name"),
    )


def get_profile(user_id: str) -> Optional[Profile]:
    query = get_supabase().table(_PROFILES_TABLE).select("*").eq("id", user_id).limit(1)
    rows = run_rows(query, "fetch profile")
    return _row_to_profile(rows[0]) if rows else None


__all__ = ["Profile", "get_profile"]
