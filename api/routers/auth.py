"""
Auth API Endpoints.

Thin passthroughs to Supabase Auth so API clients can obtain the bearer
token the other routers read.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from api.dependencies import get_current_user
from api.models import LoginRequest, LoginResponse, UserResponse
from services.auth_service import CurrentUser, sign_in, sign_out
from services.conversation_service import LOGIN_REQUIRED

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_CREDENTIALS = "Correo o contraseña incorrectos"


@router.post("/auth/login", response_model=LoginResponse, summary="Sign In")
def login(request: LoginRequest):
    try:
        session = sign_in(request.email.strip(), request.password)
    except RuntimeError as e:
        logger.warning("Sign-in rejected", extra={"email": request.email, "error": str(e)})
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    return LoginResponse(
        user=UserResponse(user_id=session.user.user_id, email=session.user.email),
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )


@router.post("/auth/logout", status_code=204, summary="Sign Out")
def logout():
    try:
        sign_out()
    except Exception as e:
        logger.error("Sign-out failed", extra={"error": str(e)})
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
    return Response(status_code=204)


@router.get("/auth/me", response_model=UserResponse, summary="Current User")
def me(user: Optional[CurrentUser] = Depends(get_current_user)):
    if user is None:
        raise HTTPException(status_code=401, detail=LOGIN_REQUIRED)
    return UserResponse(user_id=user.user_id, email=user.email)
