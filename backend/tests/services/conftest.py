"""Service test fixtures — async DB, fake integrations and the FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db, get_realtime and get_maps_client are overridden for route tests
    - db_manager patched so /health/ready and anything using it directly hit the test DB
    - Response caches and the in-memory ETA tracker are emptied around every test

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for service and route tests
      (PostgreSQL-specific features are not exercised here)
    - Seed helpers return ORM rows created through the same session the test inspects
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

import meethalf.infrastructure.database as db_module
from meethalf.db.base import Base
from meethalf.infrastructure import cache
from meethalf.infrastructure.database import DatabaseSessionManager, get_db
from meethalf.infrastructure.maps_client import get_maps_client
from meethalf.infrastructure.realtime import get_realtime
from meethalf.main import app
from meethalf.models.event import Event
from meethalf.models.member import Member
from meethalf.models.user import User
from meethalf.services.eta_service import tracker
from tests.services.fakes import FakeRealtime, GoogleStub


@pytest.fixture(autouse=True)
def _reset_process_state():
    cache.clear_all()
    tracker.clear()
    yield
    cache.clear_all()
    tracker.clear()


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def realtime():
    return FakeRealtime()


@pytest.fixture
def google():
    return GoogleStub()


@pytest.fixture
async def maps(google):
    client = google.client()
    yield client
    await client.aclose()


@pytest.fixture
async def client(test_engine, test_session_factory, realtime, maps):
    """FastAPI test client with DB and integrations overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_realtime] = lambda: realtime
    app.dependency_overrides[get_maps_client] = lambda: maps

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


# ─── Seed helpers ────────────────────────────────────────────────


@pytest.fixture
def make_user(test_db):
    counter = {"n": 0}

    async def _make(handle: str | None = "alice", **fields) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            user_id=handle,
            email=fields.pop("email", f"{handle or 'user'}{n}@example.com"),
            name=fields.pop("name", (handle or "New User").title()),
            google_id=fields.pop("google_id", f"google-{n}"),
            needs_setup=handle is None,
            **fields,
        )
        test_db.add(user)
        await test_db.commit()
        return user

    return _make


@pytest.fixture
def make_event(test_db):
    async def _make(
        owner: str = "alice",
        start_offset: timedelta = timedelta(minutes=10),
        duration: timedelta = timedelta(hours=2),
        **fields,
    ) -> Event:
        start = datetime.now(timezone.utc) + start_offset
        event = Event(
            name=fields.pop("name", "Dinner"),
            owner_id=owner,
            start_time=start,
            end_time=start + duration,
            status=fields.pop("status", "upcoming"),
            use_meet_half=fields.pop("use_meet_half", False),
            members=[],
            **fields,
        )
        test_db.add(event)
        await test_db.commit()
        return event

    return _make


@pytest.fixture
def make_member(test_db):
    async def _make(event: Event, user_id: str | None, **fields) -> Member:
        member = Member(
            event=event,
            user_id=user_id,
            nickname=fields.pop("nickname", user_id or "Offline friend"),
            travel_mode=fields.pop("travel_mode", "driving"),
            share_location=fields.pop("share_location", True),
            **fields,
        )
        test_db.add(member)
        await test_db.commit()
        return member

    return _make