"""Match listing and attendance route handlers."""

import logging
from typing import Dict, Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.api.routes import store_error
from matchday.api.auth_dependencies import get_current_player
from matchday.database.db import get_db_session
from matchday.models.schemas import AttendanceRequest
from matchday.services import match_service
from matchday.services.errors import MatchdayError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches/", response_model=List[Dict[str, Any]])
async def list_matches(
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """All matches, newest first, with attendance counts."""
    try:
        return await match_service.list_matches(session)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("listing matches", e)


@router.get("/api/matches/upcoming", response_model=List[Dict[str, Any]])
async def list_upcoming_matches(
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Matches that have not kicked off, soonest first, with the caller's own answer."""
    try:
        return await match_service.list_upcoming(session, identity)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error("listing upcoming matches", e)


@router.get("/api/matches/{match_id}", response_model=Dict[str, Any])
async def get_match_detail(
    match_id: int,
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Match with team attendance, counts and (after kickoff) statistics."""
    try:
        return await match_service.get_match_detail(session, match_id)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"loading match {match_id}", e)


@router.post("/api/matches/{match_id}/attendance", response_model=Dict[str, Any])
async def mark_attendance(
    match_id: int,
    payload: AttendanceRequest,
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark the caller in, out or maybe for a match."""
    try:
        result = await match_service.mark_attendance(session, identity, match_id, payload.status)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"marking attendance for match {match_id}", e)
    return {"message": f"Attendance marked as {result['status']}", **result}


@router.get("/api/matches/{match_id}/players", response_model=Dict[str, Any])
async def get_match_roster(
    match_id: int,
    identity: dict = Depends(get_current_player),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await match_service.get_match_roster(session, match_id)
    except MatchdayError:
        raise
    except Exception as e:
        raise store_error(f"loading roster for match {match_id}", e)
