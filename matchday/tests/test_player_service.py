"""
Tests for player_service: registration, login, profiles and roster management.
"""
import asyncio
import pytest
from datetime import timedelta
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from matchday.database.db import Base
from matchday.database.models import AdminBootstrap, Match, MatchAttendance, Player, PlayerStats
from matchday.services import auth_service, player_service
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
from matchday.utils.datetime_utils import utcnow


async def _count_players(session, username=None):
    query = select(func.count(Player.id))
    if username is not None:
        query = query.where(Player.username == username)
    return (await session.execute(query)).scalar()


# ============================================================================
# Registration
# ============================================================================

@pytest.mark.asyncio
async def test_register_creates_player_and_token(db_session):
    result = await player_service.register(
        db_session, "dave", "pass1234", "Dave", position="fwd", jersey_number=10
    )

    player = result["player"]
    assert player["id"] > 0
    assert player["username"] == "dave"
    assert player["position"] == "FWD"
    assert player["jersey_number"] == 10
    assert player["is_admin"] is False
    assert "password_hash" not in player
    assert auth_service.verify(result["token"])["player_id"] == player["id"]

    stored = (await db_session.execute(select(Player).where(Player.username == "dave"))).scalar_one()
    assert stored.password_hash != "pass1234"
    assert auth_service.verify_password("pass1234", stored.password_hash)


@pytest.mark.asyncio
async def test_register_defaults_position_to_midfield(db_session):
    result = await player_service.register(db_session, "erin", "pass1234", "Erin")
    assert result["player"]["position"] == "MID"


@pytest.mark.asyncio
async def test_register_duplicate_username(db_session, alice):
    with pytest.raises(DuplicateUsername):
        await player_service.register(db_session, "alice", "pass1234", "Another Alice")

    assert await _count_players(db_session, "alice") == 1


@pytest.mark.asyncio
async def test_register_duplicate_jersey(db_session, alice):
    with pytest.raises(DuplicateJersey):
        await player_service.register(db_session, "frank", "pass1234", "Frank", jersey_number=7)


@pytest.mark.asyncio
async def test_register_weak_password(db_session):
    with pytest.raises(WeakPassword):
        await player_service.register(db_session, "gina", "abc", "Gina")
    assert await _count_players(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "username,password,name",
    [(None, "pass1234", "Name"), ("user", None, "Name"), ("user", "pass1234", "  ")],
)
async def test_register_missing_fields(db_session, username, password, name):
    with pytest.raises(ValidationError):
        await player_service.register(db_session, username, password, name)


@pytest.mark.asyncio
async def test_register_invalid_position(db_session):
    with pytest.raises(ValidationError):
        await player_service.register(db_session, "hank", "pass1234", "Hank", position="striker")


@pytest.mark.asyncio
async def test_register_admin_only_once(db_session):
    result = await player_service.register_admin(db_session, "boss", "pass1234", "Boss")
    assert result["player"]["is_admin"] is True
    assert result["player"]["position"] == "ADMIN"

    with pytest.raises(AdminExists):
        await player_service.register_admin(db_session, "boss2", "pass1234", "Second Boss")
    with pytest.raises(AdminExists):
        await player_service.register_admin(db_session, "boss3", "pass1234", "Third Boss")

    admins = (await db_session.execute(select(func.count(Player.id)).where(Player.is_admin.is_(True)))).scalar()
    assert admins == 1


@pytest.mark.asyncio
async def test_register_admin_blocked_by_claimed_marker(db_session):
    # Marker claimed but no admin row visible yet, as when another request is mid-commit
    db_session.add(AdminBootstrap(id=1))
    await db_session.commit()

    with pytest.raises(AdminExists):
        await player_service.register_admin(db_session, "boss", "pass1234", "Boss")

    assert await _count_players(db_session) == 0


@pytest.mark.asyncio
async def test_concurrent_register_admin_creates_one_admin(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bootstrap.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def attempt(username):
        async with session_maker() as session:
            return await player_service.register_admin(session, username, "pass1234", username.title())

    try:
        results = await asyncio.gather(attempt("boss1"), attempt("boss2"), return_exceptions=True)

        created = [r for r in results if isinstance(r, dict)]
        rejected = [r for r in results if isinstance(r, AdminExists)]
        assert len(created) == 1
        assert len(rejected) == 1

        async with session_maker() as session:
            admins = (await session.execute(select(func.count(Player.id)).where(Player.is_admin.is_(True)))).scalar()
        assert admins == 1
    finally:
        await engine.dispose()


# ============================================================================
# Login and passwords
# ============================================================================

@pytest.mark.asyncio
async def test_authenticate_success(db_session, alice):
    result = await player_service.authenticate(db_session, "alice", "secret")

    assert result["player"]["id"] == alice.id
    assert "password_hash" not in result["player"]
    assert auth_service.verify(result["token"])["username"] == "alice"


@pytest.mark.asyncio
@pytest.mark.parametrize("username,password", [("alice", "wrong"), ("nobody", "secret")])
async def test_authenticate_failure_is_indistinguishable(db_session, alice, username, password):
    with pytest.raises(InvalidCredentials) as exc_info:
        await player_service.authenticate(db_session, username, password)
    assert exc_info.value.message == "Invalid username or password"


@pytest.mark.asyncio
async def test_change_password(db_session, alice, identity_of):
    assert await player_service.change_password(db_session, identity_of(alice), "secret", "newsecret")

    await player_service.authenticate(db_session, "alice", "newsecret")
    with pytest.raises(InvalidCredentials):
        await player_service.authenticate(db_session, "alice", "secret")


@pytest.mark.asyncio
async def test_change_password_wrong_current(db_session, alice, identity_of):
    with pytest.raises(InvalidCredentials):
        await player_service.change_password(db_session, identity_of(alice), "nope", "newsecret")


@pytest.mark.asyncio
async def test_change_password_too_short(db_session, alice, identity_of):
    with pytest.raises(WeakPassword):
        await player_service.change_password(db_session, identity_of(alice), "secret", "abc")


@pytest.mark.asyncio
async def test_change_password_missing_player(db_session):
    ghost = {"player_id": 999, "username": "ghost", "name": "Ghost", "is_admin": False}
    with pytest.raises(NotFound):
        await player_service.change_password(db_session, ghost, "secret", "newsecret")


# ============================================================================
# Profiles
# ============================================================================

@pytest.mark.asyncio
async def test_update_own_profile(db_session, alice, identity_of):
    player = await player_service.update_profile(
        db_session, identity_of(alice), alice.id, "Alice Smith", position="gk", jersey_number=1
    )
    assert player["name"] == "Alice Smith"
    assert player["position"] == "GK"
    assert player["jersey_number"] == 1


@pytest.mark.asyncio
async def test_update_other_profile_forbidden(db_session, alice, bob, identity_of):
    with pytest.raises(Forbidden):
        await player_service.update_profile(db_session, identity_of(alice), bob.id, "Bobby")


@pytest.mark.asyncio
async def test_admin_can_update_any_profile(db_session, admin, bob, identity_of):
    player = await player_service.update_profile(db_session, identity_of(admin), bob.id, "Robert")
    assert player["name"] == "Robert"
    assert player["position"] == "DEF"


@pytest.mark.asyncio
async def test_update_profile_duplicate_jersey(db_session, alice, bob, identity_of):
    with pytest.raises(DuplicateJersey):
        await player_service.update_profile(db_session, identity_of(alice), alice.id, "Alice", jersey_number=9)


@pytest.mark.asyncio
async def test_update_profile_keeps_own_jersey(db_session, alice, identity_of):
    player = await player_service.update_profile(db_session, identity_of(alice), alice.id, "Alice", jersey_number=7)
    assert player["jersey_number"] == 7


@pytest.mark.asyncio
async def test_update_profile_validation(db_session, alice, identity_of):
    with pytest.raises(ValidationError):
        await player_service.update_profile(db_session, identity_of(alice), alice.id, "")
    with pytest.raises(ValidationError):
        await player_service.update_profile(db_session, identity_of(alice), alice.id, "Alice", position="keeper")


@pytest.mark.asyncio
async def test_update_profile_missing_target(db_session, admin, identity_of):
    with pytest.raises(NotFound):
        await player_service.update_profile(db_session, identity_of(admin), 999, "Nobody")


# ============================================================================
# Admin roster management
# ============================================================================

@pytest.mark.asyncio
async def test_set_admin_flag(db_session, admin, alice, identity_of):
    player = await player_service.set_admin_flag(db_session, identity_of(admin), alice.id, True)
    assert player["is_admin"] is True

    player = await player_service.set_admin_flag(db_session, identity_of(admin), alice.id, False)
    assert player["is_admin"] is False


@pytest.mark.asyncio
async def test_set_admin_flag_requires_admin(db_session, alice, bob, identity_of):
    with pytest.raises(Forbidden):
        await player_service.set_admin_flag(db_session, identity_of(alice), bob.id, True)


@pytest.mark.asyncio
async def test_set_admin_flag_missing_player(db_session, admin, identity_of):
    with pytest.raises(NotFound):
        await player_service.set_admin_flag(db_session, identity_of(admin), 999, True)


@pytest.mark.asyncio
async def test_delete_player_removes_dependent_rows(db_session, admin, alice, identity_of):
    match = Match(title="Sunday League", match_date=utcnow() - timedelta(days=1), created_by=alice.id)
    db_session.add(match)
    await db_session.flush()
    db_session.add(MatchAttendance(match_id=match.id, player_id=alice.id, status="in"))
    db_session.add(PlayerStats(match_id=match.id, player_id=alice.id, goals=2))
    await db_session.commit()

    assert await player_service.delete_player(db_session, identity_of(admin), alice.id)

    assert await player_service.get_player_by_id(db_session, alice.id) is None
    marks = (await db_session.execute(select(func.count(MatchAttendance.id)))).scalar()
    stats = (await db_session.execute(select(func.count(PlayerStats.id)))).scalar()
    assert marks == 0
    assert stats == 0
    kept = (await db_session.execute(select(Match.created_by).where(Match.id == match.id))).scalar_one()
    assert kept is None


@pytest.mark.asyncio
async def test_delete_player_missing(db_session, admin, identity_of):
    with pytest.raises(NotFound):
        await player_service.delete_player(db_session, identity_of(admin), 999)


@pytest.mark.asyncio
async def test_list_players_totals_are_not_inflated(db_session, alice, bob):
    first = Match(title="Game 1", match_date=utcnow() - timedelta(days=14))
    second = Match(title="Game 2", match_date=utcnow() - timedelta(days=7))
    db_session.add_all([first, second])
    await db_session.flush()
    db_session.add_all(
        [
            MatchAttendance(match_id=first.id, player_id=alice.id, status="in"),
            MatchAttendance(match_id=second.id, player_id=alice.id, status="in"),
            MatchAttendance(match_id=first.id, player_id=bob.id, status="maybe"),
            PlayerStats(match_id=first.id, player_id=alice.id, goals=2, assists=1),
            PlayerStats(match_id=second.id, player_id=alice.id, goals=1),
        ]
    )
    await db_session.commit()

    players = await player_service.list_players(db_session)

    assert [p["name"] for p in players] == ["Alice", "Bob"]
    alice_row, bob_row = players
    assert alice_row["matches_attended"] == 2
    assert alice_row["total_goals"] == 3
    assert alice_row["total_assists"] == 1
    assert bob_row["matches_attended"] == 0
    assert bob_row["total_goals"] == 0
