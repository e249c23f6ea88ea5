"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

import random
from typing import Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from chessroom.core.config import Settings
from chessroom.db.memory_store import InMemoryRoomStore
from chessroom.db.schema import Base
from chessroom.services.match_service import MatchService
from tests.helpers import FakeClock

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of the store independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


@pytest.fixture
def settings() -> Settings:
    """Short timers, so forfeit and AI scenarios run in a fraction of a second."""
    return Settings(
        clock_initial_ms=300_000,
        clock_increment_ms=2_000,
        disconnect_forfeit_ms=50,
        ai_move_delay_ms=0,
        tick_interval_ms=10,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> InMemoryRoomStore:
    return InMemoryRoomStore()


@pytest.fixture
def service(memory_store: InMemoryRoomStore, settings: Settings, fake_clock: FakeClock) -> MatchService:
    return MatchService(memory_store, settings, clock=fake_clock, rng=random.Random(7))
