"""Player roster and profile route handlers."""

import logging
from typing import Dict, Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.api.routes import store_error
from matchday.api.auth_dependencies import get_current_player
from matchday.database.db import get_db_session
from matchday.models.schemas import UpdateProfileRequest
from matchday.services import player_service, stats_service
from matchday.services.errors import MatchdayError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/players/", response_model=List[Dict[str, Any]])
async def list_players(
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Team roster with matches attended, goals and assists per player."""
    try:
        return await player_service.list_players(session)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("listing players", e)


@router.get("/api/players/stats", response_model=Dict[str, Any])
async def get_own_stats(
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Caller's dashboard numbers over matches already played."""
    try:
        return await stats_service.get_player_summary(session, identity["player_id"])
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("loading player stats", e)


@router.get("/api/players/activity", response_model=List[Dict[str, Any]])
async def get_own_activity(
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await stats_service.get_player_activity(session, identity["player_id"])
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("loading player activity", e)


@router.put("/api/players/profile", response_model=Dict[str, Any])
async def update_own_profile(
    payload: UpdateProfileRequest,
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Update the caller's own name, position and jersey number."""
    return await _update_profile(session, identity, identity["player_id"], payload)


@router.get("/api/players/{player_id}", response_model=Dict[str, Any])
async def get_player_profile(
    player_id: int,
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Player record, career totals and the most recent past matches."""
    try:
        return await stats_service.get_player_profile(session, player_id)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"loading player {player_id}", e)


@router.put("/api/players/{player_id}", response_model=Dict[str, Any])
async def update_player_profile(
    player_id: int,
    payload: UpdateProfileRequest,
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Update a profile. Players may only edit themselves unless they are admins."""
    return await _update_profile(session, identity, player_id, payload)


async def _update_profile(session: AsyncSession, identity: dict, player_id: int, payload: UpdateProfileRequest):
    try:
        player = await player_service.update_profile(
            session,
            identity,
            player_id,
            name=payload.name,
            position=payload.position,
            jersey_number=payload.jersey_number,
        )
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"updating player {player_id}", e)
    return {"message": "Profile updated successfully", "player": player}
