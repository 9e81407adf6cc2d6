"""
Tests for match_service: match CRUD, attendance upserts, rosters and statistics.
"""
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from sqlalchemy import select, func
import pytz
from matchday.database.models import Match, MatchAttendance, Notification, Player, PlayerStats
from matchday.services import match_service
from matchday.services.errors import Forbidden, NotFound, ValidationError
from matchday.utils.datetime_utils import utcnow


@pytest.fixture
def broadcasts(monkeypatch):
    """Capture realtime events instead of sending them."""
    mock = AsyncMock(return_value=0)
    monkeypatch.setattr(match_service, "broadcast_event", mock)
    return mock


@pytest_asyncio.fixture
async def upcoming_match(db_session, admin):
    match = Match(title="Friday Five-a-side", match_date=utcnow() + timedelta(days=2), created_by=admin.id)
    db_session.add(match)
    await db_session.commit()
    await db_session.refresh(match)
    return match


@pytest_asyncio.fixture
async def past_match(db_session, admin):
    match = Match(title="Last Week", match_date=utcnow() - timedelta(days=7), created_by=admin.id)
    db_session.add(match)
    await db_session.commit()
    await db_session.refresh(match)
    return match


async def _count(session, model, match_id):
    return (await session.execute(select(func.count(model.id)).where(model.match_id == match_id))).scalar()


# ============================================================================
# Match CRUD
# ============================================================================

@pytest.mark.asyncio
async def test_create_match(db_session, admin, identity_of, broadcasts):
    kickoff = datetime(2030, 5, 1, 18, 30, tzinfo=pytz.UTC)
    match = await match_service.create_match(
        db_session, identity_of(admin), "Cup Final", kickoff, description="Bring boots", location="Pitch 2"
    )

    assert match["id"] > 0
    assert match["title"] == "Cup Final"
    assert match["status"] == "scheduled"
    assert match["created_by"] == admin.id
    assert match["match_date"].startswith("2030-05-01T18:30:00")
    assert match["is_past"] is False
    assert match["counts"] == {"in": 0, "out": 0, "maybe": 0, "total": 0}

    broadcasts.assert_awaited_once()
    event, payload = broadcasts.await_args.args
    assert event == "new-match"
    assert payload["match"]["id"] == match["id"]


@pytest.mark.asyncio
async def test_create_match_non_admin_forbidden(db_session, alice, identity_of, broadcasts):
    with pytest.raises(Forbidden):
        await match_service.create_match(db_session, identity_of(alice), "Rogue Match", utcnow())

    assert (await db_session.execute(select(func.count(Match.id)))).scalar() == 0
    broadcasts.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_match_requires_title_and_date(db_session, admin, identity_of, broadcasts):
    with pytest.raises(ValidationError):
        await match_service.create_match(db_session, identity_of(admin), "", utcnow())
    with pytest.raises(ValidationError):
        await match_service.create_match(db_session, identity_of(admin), "No Date", None)


@pytest.mark.asyncio
async def test_update_match_partial(db_session, admin, identity_of, upcoming_match, broadcasts):
    updated = await match_service.update_match(
        db_session, identity_of(admin), upcoming_match.id, {"location": "Indoor Hall", "status": "cancelled"}
    )

    assert updated["location"] == "Indoor Hall"
    assert updated["status"] == "cancelled"
    assert updated["title"] == "Friday Five-a-side"
    assert broadcasts.await_args.args[0] == "match-updated"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [{"status": "postponed"}, {"title": "   "}, {"match_date": None}, {"created_by": 1}],
)
async def test_update_match_validation(db_session, admin, identity_of, upcoming_match, broadcasts, fields):
    with pytest.raises(ValidationError):
        await match_service.update_match(db_session, identity_of(admin), upcoming_match.id, fields)
    broadcasts.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_missing_match(db_session, admin, identity_of, broadcasts):
    with pytest.raises(NotFound):
        await match_service.update_match(db_session, identity_of(admin), 999, {"title": "Ghost"})


@pytest.mark.asyncio
async def test_delete_match_removes_dependents(db_session, admin, alice, identity_of, past_match, broadcasts):
    db_session.add_all(
        [
            MatchAttendance(match_id=past_match.id, player_id=alice.id, status="in"),
            PlayerStats(match_id=past_match.id, player_id=alice.id, goals=1),
            Notification(match_id=past_match.id, type="imminent", message="soon"),
        ]
    )
    await db_session.commit()
    match_id = past_match.id

    assert await match_service.delete_match(db_session, identity_of(admin), match_id)

    assert await _count(db_session, MatchAttendance, match_id) == 0
    assert await _count(db_session, PlayerStats, match_id) == 0
    assert await _count(db_session, Notification, match_id) == 0
    with pytest.raises(NotFound):
        await match_service.get_match(db_session, match_id)

    event, payload = broadcasts.await_args.args
    assert event == "match-deleted"
    assert payload["match_id"] == match_id


@pytest.mark.asyncio
async def test_delete_missing_match(db_session, admin, identity_of, broadcasts):
    with pytest.raises(NotFound):
        await match_service.delete_match(db_session, identity_of(admin), 999)


# ============================================================================
# Attendance
# ============================================================================

@pytest.mark.asyncio
async def test_mark_attendance_upserts_single_row(db_session, alice, identity_of, upcoming_match, broadcasts):
    first = await match_service.mark_attendance(db_session, identity_of(alice), upcoming_match.id, "in")
    assert first["counts"] == {"in": 1, "out": 0, "maybe": 0, "total": 1}

    second = await match_service.mark_attendance(db_session, identity_of(alice), upcoming_match.id, "out")
    assert second["status"] == "out"
    assert second["counts"] == {"in": 0, "out": 1, "maybe": 0, "total": 1}

    rows = (
        await db_session.execute(
            select(MatchAttendance.status).where(
                MatchAttendance.match_id == upcoming_match.id, MatchAttendance.player_id == alice.id
            )
        )
    ).scalars().all()
    assert rows == ["out"]

    detail = await match_service.get_match_detail(db_session, upcoming_match.id)
    alice_entry = next(a for a in detail["attendance"] if a["player_id"] == alice.id)
    assert alice_entry["status"] == "out"
    assert alice_entry["responded"] is True


@pytest.mark.asyncio
async def test_mark_attendance_broadcasts_counts(db_session, alice, identity_of, upcoming_match, broadcasts):
    await match_service.mark_attendance(db_session, identity_of(alice), upcoming_match.id, "maybe")

    event, payload = broadcasts.await_args.args
    assert event == "attendance-update"
    assert payload == {
        "match_id": upcoming_match.id,
        "player_id": alice.id,
        "player_name": "Alice",
        "status": "maybe",
        "counts": {"in": 0, "out": 0, "maybe": 1, "total": 1},
    }


@pytest.mark.asyncio
async def test_mark_attendance_invalid_status(db_session, alice, identity_of, upcoming_match, broadcasts):
    with pytest.raises(ValidationError):
        await match_service.mark_attendance(db_session, identity_of(alice), upcoming_match.id, "late")
    assert await _count(db_session, MatchAttendance, upcoming_match.id) == 0


@pytest.mark.asyncio
async def test_mark_attendance_missing_match(db_session, alice, identity_of, broadcasts):
    with pytest.raises(NotFound):
        await match_service.mark_attendance(db_session, identity_of(alice), 999, "in")


@pytest.mark.asyncio
async def test_match_detail_orders_in_first(db_session, alice, bob, admin, identity_of, upcoming_match, broadcasts):
    await match_service.mark_attendance(db_session, identity_of(alice), upcoming_match.id, "in")
    await match_service.mark_attendance(db_session, identity_of(bob), upcoming_match.id, "out")

    detail = await match_service.get_match_detail(db_session, upcoming_match.id)

    names = [a["name"] for a in detail["attendance"]]
    assert names.index("Alice") < names.index("Bob")
    assert names[0] == "Alice"
    assert detail["counts"]["in"] == 1
    assert detail["counts"]["out"] == 1
    coach = next(a for a in detail["attendance"] if a["name"] == "Coach")
    assert coach["status"] == "out"
    assert coach["responded"] is False
    assert detail["stats"] is None


@pytest.mark.asyncio
async def test_match_detail_includes_stats_after_kickoff(db_session, admin, alice, bob, identity_of, past_match, broadcasts):
    await match_service.record_match_statistics(db_session, identity_of(admin), past_match.id, bob.id, goals=1, assists=2)
    await match_service.record_match_statistics(db_session, identity_of(admin), past_match.id, alice.id, goals=1, assists=3)

    detail = await match_service.get_match_detail(db_session, past_match.id)

    assert detail["match"]["is_past"] is True
    assert [s["name"] for s in detail["stats"]] == ["Alice", "Bob"]


@pytest.mark.asyncio
async def test_match_roster_groups(db_session, alice, bob, admin, identity_of, upcoming_match, broadcasts):
    await match_service.mark_attendance(db_session, identity_of(alice), upcoming_match.id, "maybe")
    await match_service.mark_attendance(db_session, identity_of(bob), upcoming_match.id, "out")

    roster = await match_service.get_match_roster(db_session, upcoming_match.id)

    assert roster["players_in"] == []
    assert [p["name"] for p in roster["players_maybe"]] == ["Alice"]
    assert [p["name"] for p in roster["players_out"]] == ["Bob", "Coach"]


@pytest.mark.asyncio
async def test_list_matches_and_upcoming(db_session, alice, identity_of, upcoming_match, past_match, broadcasts):
    await match_service.mark_attendance(db_session, identity_of(alice), upcoming_match.id, "in")

    all_matches = await match_service.list_matches(db_session)
    assert [m["id"] for m in all_matches] == [upcoming_match.id, past_match.id]
    assert all_matches[0]["counts"]["in"] == 1
    assert all_matches[0]["created_by_name"] == "Coach"

    upcoming = await match_service.list_upcoming(db_session, identity_of(alice))
    assert [m["id"] for m in upcoming] == [upcoming_match.id]
    assert upcoming[0]["user_status"] == "in"


# ============================================================================
# Statistics
# ============================================================================

@pytest.mark.asyncio
async def test_record_statistics_upsert_defaults_to_zero(db_session, admin, alice, identity_of, past_match):
    stats = await match_service.record_match_statistics(db_session, identity_of(admin), past_match.id, alice.id, goals=2)
    assert stats["goals"] == 2
    assert stats["assists"] == 0
    assert stats["minutes_played"] == 0

    await match_service.record_match_statistics(
        db_session, identity_of(admin), past_match.id, alice.id, goals=3, minutes_played=90
    )
    rows = await match_service.get_match_statistics(db_session, past_match.id)
    assert len(rows) == 1
    assert rows[0]["goals"] == 3
    assert rows[0]["minutes_played"] == 90


@pytest.mark.asyncio
async def test_record_statistics_rejects_negative(db_session, admin, alice, identity_of, past_match):
    with pytest.raises(ValidationError):
        await match_service.record_match_statistics(db_session, identity_of(admin), past_match.id, alice.id, goals=-1)


@pytest.mark.asyncio
async def test_record_statistics_missing_refs(db_session, admin, alice, identity_of, past_match):
    with pytest.raises(NotFound):
        await match_service.record_match_statistics(db_session, identity_of(admin), 999, alice.id, goals=1)
    with pytest.raises(NotFound):
        await match_service.record_match_statistics(db_session, identity_of(admin), past_match.id, 999, goals=1)


@pytest.mark.asyncio
async def test_roster_names_sort_case_insensitively(db_session, alice, bob, admin, identity_of, upcoming_match, broadcasts):
    db_session.add(Player(username="aaron", password_hash="x", name="aaron"))
    await db_session.commit()

    roster = await match_service.get_match_roster(db_session, upcoming_match.id)
    assert [p["name"] for p in roster["players_out"]] == ["aaron", "Alice", "Bob", "Coach"]

    detail = await match_service.get_match_detail(db_session, upcoming_match.id)
    assert [a["name"] for a in detail["attendance"]] == ["aaron", "Alice", "Bob", "Coach"]


@pytest.mark.asyncio
async def test_mark_attendance_without_status(db_session, alice, identity_of, upcoming_match, broadcasts):
    with pytest.raises(ValidationError):
        await match_service.mark_attendance(db_session, identity_of(alice), upcoming_match.id, None)
