"""
Test Suite Configuration
"""
from typing import Any, Callable

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from resalebooks.database.connection import build_session_factory, session_scope
from resalebooks.database.models import Base, OwnerScope
from resalebooks.store import SqlRecordStore

ACTOR = "actor-1"
OTHER_ACTOR = "actor-2"


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database per test"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'books.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
def store(session_factory) -> SqlRecordStore:
    return SqlRecordStore(session_factory, ACTOR)


@pytest.fixture
def other_store(session_factory) -> SqlRecordStore:
    return SqlRecordStore(session_factory, OTHER_ACTOR)


@pytest.fixture
def seed_shared(session_factory) -> Callable:
    """Insert a shared (ownerless) taxonomy or platform row; returns its id"""

    async def seed(model: Any, **values: Any):
        async with session_scope(session_factory) as session:
            obj = model(scope=OwnerScope.SHARED, owner_id=None, **values)
            session.add(obj)
            await session.flush()
            return obj.id

    return seed
