"""Database session manager — rollback, error translation and readiness."""

import pytest
from sqlalchemy import text

from meethalf.core.errors import ConflictError, DatabaseError
from meethalf.infrastructure.database import DatabaseSessionManager


@pytest.fixture
async def manager():
    m = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    yield m
    await m.dispose()


async def test_unique_violation_becomes_conflict(manager):
    with pytest.raises(ConflictError) as exc_info:
        async with manager.session() as db:
            await db.execute(text("CREATE TABLE t (id INTEGER PRIMARY KEY)"))
            await db.execute(text("INSERT INTO t (id) VALUES (1)"))
            await db.execute(text("INSERT INTO t (id) VALUES (1)"))
    assert exc_info.value.http_status == 409
    assert exc_info.value.code == "DUPLICATE_RESOURCE"


async def test_operational_error_becomes_database_error(manager):
    with pytest.raises(DatabaseError) as exc_info:
        async with manager.session() as db:
            await db.execute(text("SELECT * FROM missing_table"))
    assert exc_info.value.http_status == 503
    assert exc_info.value.operation == "execute"


async def test_non_database_errors_pass_through(manager):
    with pytest.raises(KeyError):
        async with manager.session():
            raise KeyError("boom")


async def test_health_check(manager):
    assert await manager.health_check() is True
