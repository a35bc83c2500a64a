"""
Staff identity via Supabase Auth.

Only what the dashboard actions need: resolving the acting user (for
"assigned to me" filtering, take-over and `creado_por`) plus sign-in and
sign-out passthroughs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from repositories.client import get_supabase

logger = logging.getLogger(__name__)

DEFAULT_CREATOR = "dashboard"


@dataclass(frozen=True, slots=True)
class CurrentUser:
    user_id: str
    email: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AuthSession:
    user: CurrentUser
    access_token: str
    refresh_token: Optional[str] = None


def user_from_token(access_token: Optional[str]) -> Optional[CurrentUser]:
    """Resolve a bearer token to the signed-in user; None when invalid."""

    if not access_token:
        return None
    try:
        response = get_supabase().auth.get_user(access_token)
    except Exception as exc:
        logger.warning("Could not resolve user from token", extra={"error": str(exc)})
        return None
    user = getattr(response, "user", None)
    if user is None:
        return None
    return CurrentUser(user_id=str(user.id), email=getattr(user, "email", None))


def sign_in(email: str, password: str) -> AuthSession:
    """
    Sign in with email and password.

    Raises:
    - RuntimeError when the credentials are rejected.
    """

    try:
        response = get_supabase().auth.sign_in_with_password({"email": email, "password": password})
    except Exception as exc:
        raise RuntimeError(f"Failed to sign in: {exc}") from exc

    user = getattr(response, "user", None)
    session = getattr(response, "session", None)
    if user is None or session is None:
        raise RuntimeError("Failed to sign in: no session returned")
    return AuthSession(
        user=CurrentUser(user_id=str(user.id), email=getattr(user, "email", None)),
        access_token=session.access_token,
        refresh_token=getattr(session, "refresh_token", None),
    )


def sign_out() -> None:
    get_supabase().auth.sign_out()


def creator_label(user: Optional[CurrentUser]) -> str:
    """Who created a record: the user's email, else ``dashboard``."""

    if user is not None and user.email:
        return user.email
    return DEFAULT_CREATOR


__all__ = [
    "AuthSession",
    "CurrentUser",
    "DEFAULT_CREATOR",
    "creator_label",
    "sign_in",
    "sign_out",
    "user_from_token",
]
