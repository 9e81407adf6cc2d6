"""Authentication route handlers."""

import logging
import os
from typing import Dict, Any

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.api.routes import limiter, store_error
from matchday.api.auth_dependencies import get_current_player
from matchday.database.db import get_db_session
from matchday.models.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterAdminRequest,
    RegisterRequest,
)
from matchday.services import player_service
from matchday.services.errors import MatchdayError, NotFound
from matchday.utils.constants import SESSION_COOKIE_NAME, SESSION_TOKEN_DAYS

logger = logging.getLogger(__name__)
router = APIRouter()

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"


def set_session_cookie(response: Response, token: str):
    """Attach the session token as an HTTP-only cookie."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=SESSION_TOKEN_DAYS * 24 * 60 * 60,
    )


@router.post("/api/auth/register", response_model=Dict[str, Any])
@limiter.limit("10/minute")
async def register(
    request: Request,
    payload: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    """Create a player account and log it in."""
    try:
        result = await player_service.register(
            session,
            username=payload.username,
            password=payload.password,
            name=payload.name,
            position=payload.position,
            jersey_number=payload.jersey_number,
        )
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("registering player", e)

    set_session_cookie(response, result["token"])
    return {"message": "Registration successful", "player": result["player"]}


@router.post("/api/auth/register-admin", response_model=Dict[str, Any])
@limiter.limit("5/minute")
async def register_admin(
    request: Request,
    payload: RegisterAdminRequest,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    """Create the first admin account. Closed once any admin exists."""
    try:
        result = await player_service.register_admin(
            session, username=payload.username, password=payload.password, name=payload.name
        )
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("registering admin", e)

    set_session_cookie(response, result["token"])
    return {"message": "Admin account created successfully", "player": result["player"]}


@router.post("/api/auth/login", response_model=Dict[str, Any])
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
):
    """Login with username and password."""
    try:
        result = await player_service.authenticate(session, payload.username, payload.password)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("logging in", e)

    set_session_cookie(response, result["token"])
    return {"message": "Login successful", "player": result["player"]}


@router.get("/api/auth/me", response_model=Dict[str, Any])
async def get_current_player_info(
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Current player's record."""
    try:
        player = await player_service.get_player_by_id(session, identity["player_id"])
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("loading current player", e)

    if player is None:
        raise NotFound("Player not found")
    return {"player": player}


@router.post("/api/auth/logout", response_model=Dict[str, Any])
async def logout(response: Response, identity: dict = Depends(get_current_player)):
    """Clear the session cookie."""
    response.delete_cookie(key=SESSION_COOKIE_NAME, httponly=True, secure=COOKIE_SECURE, samesite="lax")
    logger.info(f"Player {identity['player_id']} logged out")
    return {"message": "Logged out successfully"}


@router.post("/api/auth/change-password", response_model=Dict[str, Any])
@limiter.limit("5/minute")
async def change_password(
    request: Request,
    payload: ChangePasswordRequest,
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Change the caller's password after checking the current one."""
    try:
        await player_service.change_password(
            session, identity, payload.current_password, payload.new_password
        )
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("changing password", e)
    return {"message": "Password changed successfully"}
