"""Admin route handlers: match management, roster management and the dashboard."""

import logging
from typing import Dict, Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.api.routes import store_error
from matchday.api.auth_dependencies import require_admin
from matchday.database.db import get_db_session
from matchday.models.schemas import (
    CreateMatchRequest,
    MatchStatsRequest,
    SetAdminRequest,
    UpdateMatchRequest,
)
from matchday.services import match_service, player_service, stats_service
from matchday.services.errors import MatchdayError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/admin/matches", response_model=Dict[str, Any])
async def create_match(
    payload: CreateMatchRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Schedule a new match."""
    try:
        match = await match_service.create_match(
            session,
            admin,
            title=payload.title,
            match_date=payload.match_date,
            description=payload.description,
            location=payload.location,
        )
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("creating match", e)
    return {"message": "Match created successfully", "match": match}


@router.put("/api/admin/matches/{match_id}", response_model=Dict[str, Any])
async def update_match(
    match_id: int,
    payload: UpdateMatchRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Update the fields sent in the body; everything else is left as is."""
    try:
        match = await match_service.update_match(
            session, admin, match_id, payload.model_dump(exclude_unset=True)
        )
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"updating match {match_id}", e)
    return {"message": "Match updated successfully", "match": match}


@router.delete("/api/admin/matches/{match_id}", response_model=Dict[str, Any])
async def delete_match(
    match_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a match with its attendance, statistics and reminders."""
    try:
        await match_service.delete_match(session, admin, match_id)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"deleting match {match_id}", e)
    return {"message": "Match deleted successfully"}


@router.post("/api/admin/matches/{match_id}/stats", response_model=Dict[str, Any])
async def record_match_statistics(
    match_id: int,
    payload: MatchStatsRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Insert or replace one player's statistics for a match."""
    try:
        stats = await match_service.record_match_statistics(
            session,
            admin,
            match_id,
            payload.player_id,
            goals=payload.goals,
            assists=payload.assists,
            yellow_cards=payload.yellow_cards,
            red_cards=payload.red_cards,
            minutes_played=payload.minutes_played,
        )
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"recording statistics for match {match_id}", e)
    return {"message": "Player statistics updated successfully", "stats": stats}


@router.get("/api/admin/players", response_model=List[Dict[str, Any]])
async def list_players(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Every player with response count, attendance percentage, goals and assists."""
    try:
        return await stats_service.list_players_with_attendance(session)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("listing players for admin", e)


@router.put("/api/admin/players/{player_id}/admin", response_model=Dict[str, Any])
async def set_admin_flag(
    player_id: int,
    payload: SetAdminRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        player = await player_service.set_admin_flag(session, admin, player_id, payload.is_admin)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"updating admin flag for player {player_id}", e)
    action = "granted" if payload.is_admin else "removed"
    return {"message": f"Admin privileges {action}", "player": player}


@router.delete("/api/admin/players/{player_id}", response_model=Dict[str, Any])
async def delete_player(
    player_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a player along with their attendance and statistics."""
    try:
        await player_service.delete_player(session, admin, player_id)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"deleting player {player_id}", e)
    return {"message": "Player deleted successfully"}


@router.get("/api/admin/dashboard", response_model=Dict[str, Any])
async def get_dashboard(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Summary numbers and the latest attendance activity."""
    try:
        return await stats_service.get_dashboard(session)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("loading dashboard", e)
