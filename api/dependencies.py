"""
Shared FastAPI dependencies.

The application state lives on `app.state.dashboard` and is injected into
routers; the acting user is resolved from the bearer token.
"""

from typing import Optional

from fastapi import Header, HTTPException, Request

from domain.order import ActionResult
from services.app_state import AppState
from services.auth_service import CurrentUser, user_from_token


def get_state(request: Request) -> AppState:
    state = getattr(request.app.state, "dashboard", None)
    if state is None:
        state = AppState()
        request.app.state.dashboard = state
    return state


def get_current_user(authorization: Optional[str] = Header(None)) -> Optional[CurrentUser]:
    """User for `Authorization: Bearer <token>`; None when absent or invalid."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return user_from_token(token.strip())


def raise_for_result(result: ActionResult, *, not_found: str = "", status_code: int = 400) -> None:
    """Translate a failed action into an HTTP error carrying its message."""
    if result.success:
        return
    if not_found and result.error == not_found:
        raise HTTPException(status_code=404, detail=result.error)
    raise HTTPException(status_code=status_code, detail=result.error)
