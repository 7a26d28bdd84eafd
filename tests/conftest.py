"""Shared fixtures: in-memory SQLite store."""

import pytest

from freefruit.database import build_engine, build_session_factory, close_db, init_db
from freefruit.store import StatStore


@pytest.fixture
async def db_engine():
    engine = build_engine("sqlite:///:memory:")
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    return StatStore(session_factory)
