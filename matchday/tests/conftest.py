"""
Shared pytest configuration for Matchday tests.

Service tests run against an in-memory SQLite database through aiosqlite.
Environment variables are set before any matchday module is imported so the
engine, token secret and rate limiter pick up test settings.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-matchday-session-tokens")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from matchday.database import db  # noqa: E402
from matchday.database.db import Base  # noqa: E402
from matchday.database.models import Player  # noqa: E402
from matchday.services import auth_service  # noqa: E402


@pytest_asyncio.fixture
async def session_maker():
    """Session factory bound to a fresh in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_maker):
    """Create a test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def use_test_sessions(monkeypatch, session_maker):
    """Point code that opens its own sessions (the reminder worker) at the test database."""
    monkeypatch.setattr(db, "AsyncSessionLocal", session_maker)
    return session_maker


async def _make_player(session, username, name, is_admin=False, jersey_number=None, position="MID"):
    player = Player(
        username=username,
        password_hash=auth_service.hash_password("secret"),
        name=name,
        position=position,
        jersey_number=jersey_number,
        is_admin=is_admin,
    )
    session.add(player)
    await session.commit()
    await session.refresh(player)
    return player


@pytest.fixture
def identity_of():
    """Build the token identity for a Player row."""

    def build(player: Player) -> dict:
        return {
            "player_id": player.id,
            "username": player.username,
            "name": player.name,
            "is_admin": bool(player.is_admin),
        }

    return build


@pytest_asyncio.fixture
async def alice(db_session):
    return await _make_player(db_session, "alice", "Alice", jersey_number=7)


@pytest_asyncio.fixture
async def bob(db_session):
    return await _make_player(db_session, "bob", "Bob", jersey_number=9, position="DEF")


@pytest_asyncio.fixture
async def admin(db_session):
    return await _make_player(db_session, "coach", "Coach", is_admin=True, position="ADMIN")
