"""
Statistics and aggregation queries for players and the admin dashboard.

Attendance rules used throughout:
- Only "in" counts as attended; "maybe" is never folded into "in".
- A player's attendance percentage is in-marks / all marks they ever made.
- Players without a mark for a match are treated as "out" for that match.
"""

from datetime import datetime
from typing import Dict, List, Optional

import pytz
from sqlalchemy import select, func, case, and_
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database.models import AttendanceStatus, Match, MatchAttendance, Player, PlayerStats
from matchday.services.errors import NotFound
from matchday.services.player_service import player_to_dict
from matchday.utils.constants import (
    ACTIVITY_FEED_LIMIT,
    RECENT_ACTIVITY_LIMIT,
    RECENT_GOALS_LIMIT,
    RECENT_MATCHES_LIMIT,
)
from matchday.utils.datetime_utils import ensure_utc, isoformat_utc, utcnow


def attendance_percentage(attended: int, responses: int) -> float:
    """
    Share of a player's answers that were "in", as a percentage.

    Returns:
        Value in [0, 100] rounded to one decimal; 0.0 with no responses
    """
    if not responses:
        return 0.0
    return round(min(attended, responses) * 100.0 / responses, 1)


def _month_bounds(now: datetime):
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


_IS_IN = MatchAttendance.status == AttendanceStatus.IN.value


async def list_players_with_attendance(session: AsyncSession) -> List[Dict]:
    """
    Admin roster: every player with response and scoring totals.

    Returns:
        Player dicts with total_matches_responded, matches_attended,
        attendance_percentage, total_goals and total_assists, sorted by name
    """
    marks = (
        select(
            MatchAttendance.player_id,
            func.count(MatchAttendance.id).label("responses"),
            func.count(case((_IS_IN, 1))).label("attended"),
        )
        .group_by(MatchAttendance.player_id)
        .subquery()
    )
    scoring = (
        select(
            PlayerStats.player_id,
            func.sum(PlayerStats.goals).label("goals"),
            func.sum(PlayerStats.assists).label("assists"),
        )
        .group_by(PlayerStats.player_id)
        .subquery()
    )
    result = await session.execute(
        select(
            Player,
            func.coalesce(marks.c.responses, 0),
            func.coalesce(marks.c.attended, 0),
            func.coalesce(scoring.c.goals, 0),
            func.coalesce(scoring.c.assists, 0),
        )
        .outerjoin(marks, marks.c.player_id == Player.id)
        .outerjoin(scoring, scoring.c.player_id == Player.id)
        .order_by(func.lower(Player.name), Player.name)
    )

    players = []
    for player, responses, attended, goals, assists in result.all():
        players.append(
            {
                **player_to_dict(player),
                "total_matches_responded": int(responses),
                "matches_attended": int(attended),
                "attendance_percentage": attendance_percentage(int(attended), int(responses)),
                "total_goals": int(goals),
                "total_assists": int(assists),
            }
        )
    return players


async def get_average_attendance(session: AsyncSession, now: Optional[datetime] = None) -> float:
    """
    Mean number of "in" answers per match over matches that have kicked off.

    Matches nobody answered count as zero.
    """
    now = now or utcnow()
    per_match = (
        select(Match.id, func.count(case((_IS_IN, 1))).label("attendance_count"))
        .outerjoin(MatchAttendance, MatchAttendance.match_id == Match.id)
        .where(Match.match_date <= now)
        .group_by(Match.id)
        .subquery()
    )
    result = await session.execute(select(func.avg(per_match.c.attendance_count)))
    average = result.scalar()
    return round(float(average), 1) if average is not None else 0.0


async def get_dashboard(session: AsyncSession, now: Optional[datetime] = None) -> Dict:
    """
    Admin dashboard summary.

    Returns:
        Dict with "stats" (total_players, upcoming_matches, this_month_matches,
        average_attendance) and "recent_activity" (latest attendance marks)
    """
    now = now or utcnow()
    month_start, month_end = _month_bounds(now.astimezone(pytz.UTC))

    total_players = (await session.execute(select(func.count(Player.id)))).scalar() or 0
    upcoming = (
        await session.execute(select(func.count(Match.id)).where(Match.match_date > now))
    ).scalar() or 0
    this_month = (
        await session.execute(
            select(func.count(Match.id)).where(
                and_(Match.match_date >= month_start, Match.match_date < month_end)
            )
        )
    ).scalar() or 0

    result = await session.execute(
        select(Player.name, Match.title, MatchAttendance.status, MatchAttendance.marked_at)
        .join(Player, Player.id == MatchAttendance.player_id)
        .join(Match, Match.id == MatchAttendance.match_id)
        .order_by(MatchAttendance.marked_at.desc(), MatchAttendance.id.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    recent_activity = [
        {
            "type": "attendance",
            "player_name": player_name,
            "match_title": match_title,
            "status": status,
            "timestamp": isoformat_utc(marked_at),
        }
        for player_name, match_title, status, marked_at in result.all()
    ]

    return {
        "stats": {
            "total_players": int(total_players),
            "upcoming_matches": int(upcoming),
            "this_month_matches": int(this_month),
            "average_attendance": await get_average_attendance(session, now),
        },
        "recent_activity": recent_activity,
    }


async def get_player_summary(session: AsyncSession, player_id: int) -> Dict:
    """
    Personal dashboard numbers for one player over matches already played.
    """
    now = utcnow()
    result = await session.execute(
        select(
            func.count(Match.id.distinct()),
            func.count(case((_IS_IN, 1))),
        )
        .select_from(Match)
        .outerjoin(
            MatchAttendance,
            and_(MatchAttendance.match_id == Match.id, MatchAttendance.player_id == player_id),
        )
        .where(Match.match_date <= now)
    )
    total_matches, attended = result.one()
    total_matches, attended = int(total_matches or 0), int(attended or 0)

    goals = (
        await session.execute(
            select(func.coalesce(func.sum(PlayerStats.goals), 0)).where(PlayerStats.player_id == player_id)
        )
    ).scalar()

    return {
        "total_matches": total_matches,
        "attended_matches": attended,
        "attendance_rate": attendance_percentage(attended, total_matches),
        "total_goals": int(goals or 0),
    }


async def get_player_profile(session: AsyncSession, player_id: int) -> Dict:
    """
    Player record, career totals and recent past matches.

    Raises:
        NotFound: If the player does not exist
    """
    result = await session.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if player is None:
        raise NotFound("Player not found")

    marks = (
        await session.execute(
            select(func.count(MatchAttendance.id), func.count(case((_IS_IN, 1)))).where(
                MatchAttendance.player_id == player_id
            )
        )
    ).one()
    totals = (
        await session.execute(
            select(
                func.coalesce(func.sum(PlayerStats.goals), 0),
                func.coalesce(func.sum(PlayerStats.assists), 0),
                func.coalesce(func.sum(PlayerStats.yellow_cards), 0),
                func.coalesce(func.sum(PlayerStats.red_cards), 0),
                func.coalesce(func.sum(PlayerStats.minutes_played), 0),
            ).where(PlayerStats.player_id == player_id)
        )
    ).one()

    responses, matches_played = int(marks[0] or 0), int(marks[1] or 0)
    stats = {
        "total_responses": responses,
        "matches_played": matches_played,
        "attendance_percentage": attendance_percentage(matches_played, responses),
        "total_goals": int(totals[0]),
        "total_assists": int(totals[1]),
        "total_yellow_cards": int(totals[2]),
        "total_red_cards": int(totals[3]),
        "total_minutes": int(totals[4]),
    }

    recent = await session.execute(
        select(
            Match,
            MatchAttendance.status,
            PlayerStats.goals,
            PlayerStats.assists,
            PlayerStats.minutes_played,
        )
        .outerjoin(
            MatchAttendance,
            and_(MatchAttendance.match_id == Match.id, MatchAttendance.player_id == player_id),
        )
        .outerjoin(
            PlayerStats,
            and_(PlayerStats.match_id == Match.id, PlayerStats.player_id == player_id),
        )
        .where(Match.match_date <= utcnow())
        .order_by(Match.match_date.desc())
        .limit(RECENT_MATCHES_LIMIT)
    )
    recent_matches = [
        {
            "id": match.id,
            "title": match.title,
            "match_date": isoformat_utc(match.match_date),
            "location": match.location,
            "attendance_status": status or AttendanceStatus.OUT.value,
            "goals": goals or 0,
            "assists": assists or 0,
            "minutes_played": minutes or 0,
        }
        for match, status, goals, assists, minutes in recent.all()
    ]

    return {"player": player_to_dict(player), "stats": stats, "recent_matches": recent_matches}


async def get_player_activity(session: AsyncSession, player_id: int) -> List[Dict]:
    """
    Recent activity feed for one player: attendance answers and goals, newest first.
    """
    marks = await session.execute(
        select(MatchAttendance.status, MatchAttendance.marked_at, Match.title)
        .join(Match, Match.id == MatchAttendance.match_id)
        .where(MatchAttendance.player_id == player_id)
        .order_by(MatchAttendance.marked_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    goals = await session.execute(
        select(PlayerStats.goals, PlayerStats.created_at, Match.title)
        .join(Match, Match.id == PlayerStats.match_id)
        .where(and_(PlayerStats.player_id == player_id, PlayerStats.goals > 0))
        .order_by(PlayerStats.created_at.desc())
        .limit(RECENT_GOALS_LIMIT)
    )

    activities = [
        {
            "type": "attendance",
            "description": f"Marked {status} for {title}",
            "created_at": ensure_utc(marked_at),
        }
        for status, marked_at, title in marks.all()
    ]
    activities += [
        {
            "type": "goal",
            "description": f"Scored {count} goal(s) in {title}",
            "created_at": ensure_utc(created_at),
        }
        for count, created_at, title in goals.all()
    ]

    oldest = datetime.min.replace(tzinfo=pytz.UTC)
    activities.sort(key=lambda item: item["created_at"] or oldest, reverse=True)
    return [
        {**item, "created_at": isoformat_utc(item["created_at"])}
        for item in activities[:ACTIVITY_FEED_LIMIT]
    ]
