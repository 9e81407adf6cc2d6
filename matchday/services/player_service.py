"""
Player service layer: registration, login, profiles and roster management.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from matchday.database.models import (
    AdminBootstrap,
    Player,
    PlayerPosition,
    Match,
    MatchAttendance,
    PlayerStats,
)
from matchday.services import auth_service
from matchday.services.errors import (
    AdminExists,
    DuplicateJersey,
    DuplicateUsername,
    Forbidden,
    InvalidCredentials,
    NotFound,
    ValidationError,
    WeakPassword,
)
from matchday.utils.constants import MIN_PASSWORD_LENGTH
from matchday.utils.datetime_utils import isoformat_utc
import logging

logger = logging.getLogger(__name__)


def player_to_dict(player: Player, include_password_hash: bool = False) -> Dict:
    """
    Convert a Player ORM instance to a dictionary.

    Args:
        player: Player ORM instance
        include_password_hash: Only the login path needs the hash

    Returns:
        Player dictionary
    """
    data = {
        "id": player.id,
        "username": player.username,
        "name": player.name,
        "position": player.position,
        "jersey_number": player.jersey_number,
        "is_admin": bool(player.is_admin),
        "created_at": isoformat_utc(player.created_at),
        "updated_at": isoformat_utc(player.updated_at),
    }
    if include_password_hash:
        data["password_hash"] = player.password_hash
    return data


def _normalize_position(position: Optional[str]) -> str:
    if not position:
        return PlayerPosition.MIDFIELDER.value
    try:
        return PlayerPosition(position.strip().upper()).value
    except ValueError:
        allowed = ", ".join(p.value for p in PlayerPosition)
        raise ValidationError(f"Invalid position {position!r}. Must be one of: {allowed}")


def _check_password_strength(password: str):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def _require_fields(**fields):
    missing = [name for name, value in fields.items() if value is None or not str(value).strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


async def get_player_by_id(session: AsyncSession, player_id: int) -> Optional[Dict]:
    """
    Get player by ID.

    Returns:
        Player dictionary or None if not found
    """
    result = await session.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    return player_to_dict(player) if player else None


async def get_player_by_username(session: AsyncSession, username: str) -> Optional[Dict]:
    """
    Get player by username, including the password hash.

    Returns:
        Player dictionary or None if not found
    """
    result = await session.execute(select(Player).where(Player.username == username).limit(1))
    player = result.scalar_one_or_none()
    return player_to_dict(player, include_password_hash=True) if player else None


async def _username_taken(session: AsyncSession, username: str) -> bool:
    result = await session.execute(select(Player.id).where(Player.username == username))
    return result.scalar_one_or_none() is not None


async def _jersey_taken(
    session: AsyncSession, jersey_number: Optional[int], exclude_player_id: Optional[int] = None
) -> bool:
    if jersey_number is None:
        return False
    query = select(Player.id).where(Player.jersey_number == jersey_number)
    if exclude_player_id is not None:
        query = query.where(Player.id != exclude_player_id)
    result = await session.execute(query.limit(1))
    return result.scalar_one_or_none() is not None


async def _admin_exists(session: AsyncSession) -> bool:
    result = await session.execute(
        select(Player.id).where(Player.is_admin.is_(True)).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _admin_bootstrapped(session: AsyncSession) -> bool:
    result = await session.execute(select(AdminBootstrap.id))
    return result.scalar_one_or_none() is not None


async def _insert_player(
    session: AsyncSession,
    username: str,
    password: str,
    name: str,
    position: str,
    jersey_number: Optional[int],
    is_admin: bool,
) -> Dict:
    new_player = Player(
        username=username,
        password_hash=auth_service.hash_password(password),
        name=name,
        position=position,
        jersey_number=jersey_number,
        is_admin=is_admin,
    )
    session.add(new_player)
    if is_admin:
        # Only one self-provisioned admin can ever claim the singleton row
        session.add(AdminBootstrap(id=1))
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration
        await session.rollback()
        if is_admin and await _admin_bootstrapped(session):
            raise AdminExists("Admin account already exists")
        if await _username_taken(session, username):
            raise DuplicateUsername("Username already taken")
        raise DuplicateJersey("Jersey number already taken")
    await session.commit()
    await session.refresh(new_player)
    return player_to_dict(new_player)


async def register(
    session: AsyncSession,
    username: str,
    password: str,
    name: str,
    position: Optional[str] = None,
    jersey_number: Optional[int] = None,
) -> Dict:
    """
    Register a new player account.

    Args:
        session: Database session
        username: Unique login name
        password: Plaintext password (stored only as a bcrypt hash)
        name: Display name
        position: Optional playing position (defaults to MID)
        jersey_number: Optional shirt number, unique across players

    Returns:
        Dict with "player" and a freshly issued "token"

    Raises:
        ValidationError: If username, password or name is missing
        WeakPassword: If the password is too short
        DuplicateUsername: If the username is taken
        DuplicateJersey: If the jersey number is assigned to another player
    """
    _require_fields(username=username, password=password, name=name)
    _check_password_strength(password)
    username = username.strip()
    position = _normalize_position(position)

    if await _username_taken(session, username):
        raise DuplicateUsername("Username already taken")
    if await _jersey_taken(session, jersey_number):
        raise DuplicateJersey("Jersey number already taken")

    player = await _insert_player(
        session, username, password, name.strip(), position, jersey_number, is_admin=False
    )
    logger.info(f"Registered player {player['id']} ({username!r})")
    return {"player": player, "token": auth_service.issue_token(player)}


async def register_admin(session: AsyncSession, username: str, password: str, name: str) -> Dict:
    """
    Self-provision the first admin account.

    Succeeds once: the new admin claims the single admin_bootstrap row, and
    that claim is never released. Later admins are promoted by an existing
    admin through set_admin_flag.

    Raises:
        AdminExists: If any admin already exists
        (plus everything register can raise)
    """
    _require_fields(username=username, password=password, name=name)
    _check_password_strength(password)
    username = username.strip()

    if await _admin_exists(session):
        raise AdminExists("Admin account already exists")
    if await _username_taken(session, username):
        raise DuplicateUsername("Username already taken")

    player = await _insert_player(
        session, username, password, name.strip(), PlayerPosition.ADMIN.value, None, is_admin=True
    )
    logger.info(f"Admin account {player['id']} ({username!r}) created")
    return {"player": player, "token": auth_service.issue_token(player)}


async def authenticate(session: AsyncSession, username: str, password: str) -> Dict:
    """
    Check credentials and issue a session token.

    Raises:
        ValidationError: If username or password is missing
        InvalidCredentials: Unknown username or wrong password
    """
    _require_fields(username=username, password=password)

    player = await get_player_by_username(session, username.strip())
    if not player or not auth_service.verify_password(password, player["password_hash"]):
        raise InvalidCredentials("Invalid username or password")

    player.pop("password_hash")
    return {"player": player, "token": auth_service.issue_token(player)}


async def change_password(
    session: AsyncSession, identity: Dict, current_password: str, new_password: str
) -> bool:
    """
    Replace the caller's password.

    Raises:
        ValidationError: If either password is missing
        WeakPassword: If the new password is too short
        InvalidCredentials: If the current password is wrong
        NotFound: If the player no longer exists
    """
    _require_fields(current_password=current_password, new_password=new_password)
    _check_password_strength(new_password)

    result = await session.execute(select(Player).where(Player.id == identity["player_id"]))
    player = result.scalar_one_or_none()
    if player is None:
        raise NotFound("Player not found")
    if not auth_service.verify_password(current_password, player.password_hash):
        raise InvalidCredentials("Current password is incorrect")

    await session.execute(
        update(Player)
        .where(Player.id == player.id)
        .values(password_hash=auth_service.hash_password(new_password), updated_at=func.now())
    )
    await session.commit()
    return True


async def update_profile(
    session: AsyncSession,
    identity: Dict,
    player_id: int,
    name: str,
    position: Optional[str] = None,
    jersey_number: Optional[int] = None,
) -> Dict:
    """
    Update a player's name, position and jersey number.

    Players may edit only themselves unless the caller is an admin.

    Raises:
        Forbidden: Editing another player without admin rights
        ValidationError: Empty name or unknown position
        NotFound: Target player missing
        DuplicateJersey: Jersey number belongs to another player
    """
    if identity["player_id"] != player_id and not identity.get("is_admin"):
        raise Forbidden("You can only update your own profile")
    _require_fields(name=name)

    result = await session.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if player is None:
        raise NotFound("Player not found")

    if await _jersey_taken(session, jersey_number, exclude_player_id=player_id):
        raise DuplicateJersey("Jersey number already taken")

    player.name = name.strip()
    if position is not None:
        player.position = _normalize_position(position)
    player.jersey_number = jersey_number
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise DuplicateJersey("Jersey number already taken")
    await session.refresh(player)
    return player_to_dict(player)


async def set_admin_flag(
    session: AsyncSession, admin_identity: Dict, target_player_id: int, value: bool
) -> Dict:
    """
    Grant or revoke admin rights.

    Raises:
        Forbidden: Caller is not an admin
        NotFound: Target player missing
    """
    auth_service.require_admin(admin_identity)

    result = await session.execute(
        update(Player)
        .where(Player.id == target_player_id)
        .values(is_admin=bool(value), updated_at=func.now())
    )
    if result.rowcount == 0:
        raise NotFound("Player not found")
    await session.commit()

    player = await get_player_by_id(session, target_player_id)
    logger.info(
        f"Player {target_player_id} {'promoted to' if value else 'removed from'} admin "
        f"by player {admin_identity['player_id']}"
    )
    return player


async def delete_player(session: AsyncSession, admin_identity: Dict, target_player_id: int) -> bool:
    """
    Delete a player and the rows that reference them.

    Attendance marks and statistics are removed first; matches the player
    created are kept with their creator cleared.

    Raises:
        Forbidden: Caller is not an admin
        NotFound: Target player missing
    """
    auth_service.require_admin(admin_identity)

    exists = await session.execute(select(Player.id).where(Player.id == target_player_id))
    if exists.scalar_one_or_none() is None:
        raise NotFound("Player not found")

    await session.execute(delete(MatchAttendance).where(MatchAttendance.player_id == target_player_id))
    await session.execute(delete(PlayerStats).where(PlayerStats.player_id == target_player_id))
    await session.execute(
        update(Match).where(Match.created_by == target_player_id).values(created_by=None)
    )
    await session.execute(delete(Player).where(Player.id == target_player_id))
    await session.commit()

    logger.info(f"Player {target_player_id} deleted by player {admin_identity['player_id']}")
    return True


async def list_players(session: AsyncSession) -> List[Dict]:
    """
    Team roster with per-player totals, sorted by name.

    Returns:
        Player dicts with matches_attended, total_goals and total_assists
    """
    attended = (
        select(MatchAttendance.player_id, func.count().label("matches_attended"))
        .where(MatchAttendance.status == "in")
        .group_by(MatchAttendance.player_id)
        .subquery()
    )
    scoring = (
        select(
            PlayerStats.player_id,
            func.sum(PlayerStats.goals).label("total_goals"),
            func.sum(PlayerStats.assists).label("total_assists"),
        )
        .group_by(PlayerStats.player_id)
        .subquery()
    )
    result = await session.execute(
        select(
            Player,
            func.coalesce(attended.c.matches_attended, 0),
            func.coalesce(scoring.c.total_goals, 0),
            func.coalesce(scoring.c.total_assists, 0),
        )
        .outerjoin(attended, attended.c.player_id == Player.id)
        .outerjoin(scoring, scoring.c.player_id == Player.id)
        .order_by(func.lower(Player.name), Player.name)
    )
    return [
        {
            **player_to_dict(player),
            "matches_attended": int(matches_attended),
            "total_goals": int(total_goals),
            "total_assists": int(total_assists),
        }
        for player, matches_attended, total_goals, total_assists in result.all()
    ]
