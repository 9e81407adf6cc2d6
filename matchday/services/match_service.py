"""
Match and attendance service layer.

Match CRUD, attendance upserts, per-match aggregation and statistics recording.
State changes are pushed to connected clients after the commit.
"""

from datetime import datetime
from typing import Dict, List, Optional, Iterable

from sqlalchemy import select, delete, func, case, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from matchday.database.db import dialect_insert
from matchday.database.models import (
    AttendanceStatus,
    Match,
    MatchAttendance,
    MatchStatus,
    Notification,
    Player,
    PlayerStats,
)
from matchday.services import auth_service
from matchday.services.errors import NotFound, ValidationError
from matchday.services.websocket_manager import broadcast_event
from matchday.utils.datetime_utils import ensure_utc, isoformat_utc, utcnow
import logging

logger = logging.getLogger(__name__)

UPDATABLE_MATCH_FIELDS = ("title", "description", "match_date", "location", "status")
STAT_FIELDS = ("goals", "assists", "yellow_cards", "red_cards", "minutes_played")


#
# Helper functions
#

def empty_counts() -> Dict[str, int]:
    return {"in": 0, "out": 0, "maybe": 0, "total": 0}


def _counts_subquery():
    """Per-match attendance counts over explicit marks."""
    return (
        select(
            MatchAttendance.match_id.label("match_id"),
            func.count(case((MatchAttendance.status == AttendanceStatus.IN.value, 1))).label("players_in"),
            func.count(case((MatchAttendance.status == AttendanceStatus.OUT.value, 1))).label("players_out"),
            func.count(case((MatchAttendance.status == AttendanceStatus.MAYBE.value, 1))).label("players_maybe"),
            func.count(MatchAttendance.id).label("total_responses"),
        )
        .group_by(MatchAttendance.match_id)
        .subquery()
    )


def _counts_from_row(players_in, players_out, players_maybe, total) -> Dict[str, int]:
    return {
        "in": int(players_in or 0),
        "out": int(players_out or 0),
        "maybe": int(players_maybe or 0),
        "total": int(total or 0),
    }


def is_past(match_date: datetime, now: Optional[datetime] = None) -> bool:
    """True once kickoff time has passed."""
    return ensure_utc(match_date) < (now or utcnow())


def match_to_dict(
    match: Match,
    counts: Optional[Dict[str, int]] = None,
    created_by_name: Optional[str] = None,
) -> Dict:
    """
    Convert a Match ORM instance to a dictionary.

    Args:
        match: Match ORM instance
        counts: Optional attendance counts to embed
        created_by_name: Display name of the creating admin

    Returns:
        Match dictionary
    """
    data = {
        "id": match.id,
        "title": match.title,
        "description": match.description,
        "match_date": isoformat_utc(match.match_date),
        "location": match.location,
        "created_by": match.created_by,
        "created_by_name": created_by_name,
        "status": match.status,
        "is_past": is_past(match.match_date),
        "created_at": isoformat_utc(match.created_at),
        "updated_at": isoformat_utc(match.updated_at),
    }
    if counts is not None:
        data["counts"] = counts
    return data


async def _get_match_or_404(session: AsyncSession, match_id: int) -> Match:
    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    if match is None:
        raise NotFound("Match not found")
    return match


async def _get_player_name(session: AsyncSession, player_id: Optional[int]) -> Optional[str]:
    if player_id is None:
        return None
    result = await session.execute(select(Player.name).where(Player.id == player_id))
    return result.scalar_one_or_none()


def _validate_status(status: Optional[str]) -> str:
    allowed = [s.value for s in MatchStatus]
    if status not in allowed:
        raise ValidationError(f"Invalid match status {status!r}. Must be one of: {', '.join(allowed)}")
    return status


#
# Aggregation
#

async def get_attendance_counts(session: AsyncSession, match_id: int) -> Dict[str, int]:
    """
    Current attendance counts for one match.

    Returns:
        {"in", "out", "maybe", "total"} over explicit marks only
    """
    counts = await get_attendance_counts_bulk(session, [match_id])
    return counts.get(match_id, empty_counts())


async def get_attendance_counts_bulk(
    session: AsyncSession, match_ids: Iterable[int]
) -> Dict[int, Dict[str, int]]:
    """Attendance counts keyed by match ID; matches without marks are absent."""
    match_ids = list(match_ids)
    if not match_ids:
        return {}
    counts = _counts_subquery()
    result = await session.execute(select(counts).where(counts.c.match_id.in_(match_ids)))
    return {
        row.match_id: _counts_from_row(
            row.players_in, row.players_out, row.players_maybe, row.total_responses
        )
        for row in result.all()
    }


def _match_listing_query():
    counts = _counts_subquery()
    creator = aliased(Player)
    query = (
        select(
            Match,
            creator.name.label("created_by_name"),
            counts.c.players_in,
            counts.c.players_out,
            counts.c.players_maybe,
            counts.c.total_responses,
        )
        .outerjoin(counts, counts.c.match_id == Match.id)
        .outerjoin(creator, creator.id == Match.created_by)
    )
    return query


async def list_matches(session: AsyncSession) -> List[Dict]:
    """
    All matches, most recent date first, with attendance counts.
    """
    result = await session.execute(_match_listing_query().order_by(Match.match_date.desc()))
    return [
        match_to_dict(match, _counts_from_row(p_in, p_out, p_maybe, total), created_by_name)
        for match, created_by_name, p_in, p_out, p_maybe, total in result.all()
    ]


async def list_upcoming(session: AsyncSession, identity: Dict) -> List[Dict]:
    """
    Matches that have not kicked off yet, soonest first.

    Each match carries the caller's own mark as ``user_status`` (None when
    the caller has not answered).
    """
    own_mark = aliased(MatchAttendance)
    query = (
        _match_listing_query()
        .add_columns(own_mark.status.label("user_status"))
        .outerjoin(
            own_mark,
            and_(own_mark.match_id == Match.id, own_mark.player_id == identity["player_id"]),
        )
        .where(Match.match_date > utcnow())
        .order_by(Match.match_date.asc())
    )
    result = await session.execute(query)
    matches = []
    for match, created_by_name, p_in, p_out, p_maybe, total, user_status in result.all():
        data = match_to_dict(match, _counts_from_row(p_in, p_out, p_maybe, total), created_by_name)
        data["user_status"] = user_status
        matches.append(data)
    return matches


async def get_match(session: AsyncSession, match_id: int) -> Dict:
    """
    Raises:
        NotFound: If the match does not exist
    """
    match = await _get_match_or_404(session, match_id)
    counts = await get_attendance_counts(session, match_id)
    return match_to_dict(match, counts, await _get_player_name(session, match.created_by))


async def get_match_detail(session: AsyncSession, match_id: int) -> Dict:
    """
    Match, full team attendance and (for past matches) recorded statistics.

    The attendance list covers every player: those marked "in" first, then
    everyone else, each group alphabetical by name. Players who never answered
    are reported as "out" with responded=False.

    Returns:
        Dict with "match", "attendance", "counts" and "stats" (None until kickoff)

    Raises:
        NotFound: If the match does not exist
    """
    match = await get_match(session, match_id)

    result = await session.execute(
        select(Player, MatchAttendance.status, MatchAttendance.marked_at)
        .outerjoin(
            MatchAttendance,
            and_(MatchAttendance.player_id == Player.id, MatchAttendance.match_id == match_id),
        )
        .order_by(
            case((MatchAttendance.status == AttendanceStatus.IN.value, 0), else_=1),
            func.lower(Player.name),
            Player.name,
        )
    )
    attendance = [
        {
            "player_id": player.id,
            "name": player.name,
            "position": player.position,
            "jersey_number": player.jersey_number,
            "status": status or AttendanceStatus.OUT.value,
            "responded": status is not None,
            "marked_at": isoformat_utc(marked_at),
        }
        for player, status, marked_at in result.all()
    ]

    stats = None
    if match["is_past"]:
        stats = await get_match_statistics(session, match_id)

    return {
        "match": match,
        "attendance": attendance,
        "counts": match["counts"],
        "stats": stats,
    }


async def get_match_roster(session: AsyncSession, match_id: int) -> Dict:
    """
    Players grouped by answer for one match.

    Non-responders are listed after the explicit "out" answers.

    Raises:
        NotFound: If the match does not exist
    """
    await _get_match_or_404(session, match_id)

    result = await session.execute(
        select(Player.id, Player.name, Player.jersey_number, MatchAttendance.status)
        .outerjoin(
            MatchAttendance,
            and_(MatchAttendance.player_id == Player.id, MatchAttendance.match_id == match_id),
        )
        .order_by(func.lower(Player.name), Player.name)
    )

    players_in, players_maybe, players_out, not_responded = [], [], [], []
    buckets = {
        AttendanceStatus.IN.value: players_in,
        AttendanceStatus.MAYBE.value: players_maybe,
        AttendanceStatus.OUT.value: players_out,
        None: not_responded,
    }
    for player_id, name, jersey_number, status in result.all():
        buckets[status].append({"id": player_id, "name": name, "jersey_number": jersey_number})

    return {
        "players_in": players_in,
        "players_maybe": players_maybe,
        "players_out": players_out + not_responded,
    }


async def get_match_statistics(session: AsyncSession, match_id: int) -> List[Dict]:
    """Recorded statistics for a match, top scorers first."""
    result = await session.execute(
        select(PlayerStats, Player.name, Player.jersey_number)
        .join(Player, Player.id == PlayerStats.player_id)
        .where(PlayerStats.match_id == match_id)
        .order_by(
            PlayerStats.goals.desc(),
            PlayerStats.assists.desc(),
            func.lower(Player.name),
            Player.name,
        )
    )
    return [
        {
            "player_id": stat.player_id,
            "name": name,
            "jersey_number": jersey_number,
            "goals": stat.goals,
            "assists": stat.assists,
            "yellow_cards": stat.yellow_cards,
            "red_cards": stat.red_cards,
            "minutes_played": stat.minutes_played,
        }
        for stat, name, jersey_number in result.all()
    ]


#
# Mutations
#

async def create_match(
    session: AsyncSession,
    admin_identity: Dict,
    title: Optional[str],
    match_date: Optional[datetime],
    description: Optional[str] = None,
    location: Optional[str] = None,
) -> Dict:
    """
    Schedule a new match and announce it.

    Raises:
        Forbidden: Caller is not an admin
        ValidationError: Title or date missing
    """
    auth_service.require_admin(admin_identity)
    if not title or not title.strip() or match_date is None:
        raise ValidationError("Title and match date are required")

    new_match = Match(
        title=title.strip(),
        description=description,
        match_date=ensure_utc(match_date),
        location=location,
        created_by=admin_identity["player_id"],
        status=MatchStatus.SCHEDULED.value,
    )
    session.add(new_match)
    await session.flush()
    await session.commit()
    await session.refresh(new_match)

    match = match_to_dict(new_match, empty_counts(), admin_identity.get("name"))
    logger.info(f"Match {match['id']} ({match['title']!r}) scheduled for {match['match_date']}")

    await broadcast_event("new-match", {"match": match, "message": f"New match scheduled: {match['title']}"})
    return match


async def update_match(session: AsyncSession, admin_identity: Dict, match_id: int, fields: Dict) -> Dict:
    """
    Partially update a match.

    Args:
        fields: Any of title, description, match_date, location, status.
            Keys that are absent are left untouched; description and location
            may be cleared with None.

    Raises:
        Forbidden: Caller is not an admin
        NotFound: Match missing
        ValidationError: Unknown field, blank title, missing date or bad status
    """
    auth_service.require_admin(admin_identity)

    unknown = set(fields) - set(UPDATABLE_MATCH_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    match = await _get_match_or_404(session, match_id)

    if "title" in fields:
        if not fields["title"] or not fields["title"].strip():
            raise ValidationError("Title cannot be empty")
        match.title = fields["title"].strip()
    if "match_date" in fields:
        if fields["match_date"] is None:
            raise ValidationError("Match date cannot be empty")
        match.match_date = ensure_utc(fields["match_date"])
    if "status" in fields:
        match.status = _validate_status(fields["status"])
    if "description" in fields:
        match.description = fields["description"]
    if "location" in fields:
        match.location = fields["location"]

    await session.commit()
    await session.refresh(match)

    updated = await get_match(session, match_id)
    await broadcast_event("match-updated", {"match": updated, "message": f"Match updated: {updated['title']}"})
    return updated


async def delete_match(session: AsyncSession, admin_identity: Dict, match_id: int) -> bool:
    """
    Delete a match together with its attendance, statistics and notifications.

    Dependent rows go first so foreign keys never dangle. Clients are told via
    a "match-deleted" event.

    Raises:
        Forbidden: Caller is not an admin
        NotFound: Match missing
    """
    auth_service.require_admin(admin_identity)
    match = await _get_match_or_404(session, match_id)
    title = match.title

    await session.execute(delete(MatchAttendance).where(MatchAttendance.match_id == match_id))
    await session.execute(delete(PlayerStats).where(PlayerStats.match_id == match_id))
    await session.execute(delete(Notification).where(Notification.match_id == match_id))
    await session.execute(delete(Match).where(Match.id == match_id))
    await session.commit()

    logger.info(f"Match {match_id} ({title!r}) deleted by player {admin_identity['player_id']}")
    await broadcast_event("match-deleted", {"match_id": match_id, "message": f"Match cancelled: {title}"})
    return True


async def mark_attendance(session: AsyncSession, identity: Dict, match_id: int, status: Optional[str]) -> Dict:
    """
    Record the caller's answer for a match (last write wins).

    Args:
        identity: Authenticated player
        match_id: Match to answer for
        status: "in", "out" or "maybe"

    Returns:
        Dict with the stored status and the match's new counts

    Raises:
        ValidationError: Status outside in/out/maybe
        NotFound: Match (or the caller's player row) missing
    """
    allowed = [s.value for s in AttendanceStatus]
    if status not in allowed:
        raise ValidationError(f"Invalid status {status!r}. Must be one of: {', '.join(allowed)}")

    await _get_match_or_404(session, match_id)
    player_id = identity["player_id"]
    player_name = await _get_player_name(session, player_id)
    if player_name is None:
        raise NotFound("Player not found")

    stmt = dialect_insert(session, MatchAttendance).values(
        match_id=match_id, player_id=player_id, status=status, marked_at=utcnow()
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["match_id", "player_id"],
        set_={"status": stmt.excluded.status, "marked_at": stmt.excluded.marked_at},
    )
    await session.execute(stmt)
    await session.commit()

    counts = await get_attendance_counts(session, match_id)
    await broadcast_event(
        "attendance-update",
        {
            "match_id": match_id,
            "player_id": player_id,
            "player_name": player_name,
            "status": status,
            "counts": counts,
        },
    )
    return {"match_id": match_id, "status": status, "counts": counts}


async def record_match_statistics(
    session: AsyncSession,
    admin_identity: Dict,
    match_id: int,
    player_id: int,
    goals: Optional[int] = None,
    assists: Optional[int] = None,
    yellow_cards: Optional[int] = None,
    red_cards: Optional[int] = None,
    minutes_played: Optional[int] = None,
) -> Dict:
    """
    Insert or replace one player's statistics for a match.

    Omitted numbers are stored as zero.

    Raises:
        Forbidden: Caller is not an admin
        ValidationError: Negative value
        NotFound: Match or player missing
    """
    auth_service.require_admin(admin_identity)

    values = {
        "goals": goals,
        "assists": assists,
        "yellow_cards": yellow_cards,
        "red_cards": red_cards,
        "minutes_played": minutes_played,
    }
    values = {key: int(value or 0) for key, value in values.items()}
    negative = [key for key, value in values.items() if value < 0]
    if negative:
        raise ValidationError(f"Statistics cannot be negative: {', '.join(negative)}")

    await _get_match_or_404(session, match_id)
    if await _get_player_name(session, player_id) is None:
        raise NotFound("Player not found")

    stmt = dialect_insert(session, PlayerStats).values(
        player_id=player_id, match_id=match_id, **values
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["player_id", "match_id"],
        set_={key: getattr(stmt.excluded, key) for key in STAT_FIELDS},
    )
    await session.execute(stmt)
    await session.commit()

    return {"match_id": match_id, "player_id": player_id, **values}
