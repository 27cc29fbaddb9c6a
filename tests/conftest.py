from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from aspnetusers.auth import Authenticator
from aspnetusers.database import init_db
from aspnetusers.dialects import SQLITE
from aspnetusers.store import Users


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def engine(tmp_path):
    """Provide an isolated SQLite database holding an empty users table."""
    engine = create_engine(f"sqlite:///{tmp_path / 'users.db'}", future=True)
    init_db(engine, "aspnetusers")
    yield engine
    engine.dispose()


@pytest.fixture
def users(engine):
    return Users(engine, "aspnetusers", SQLITE)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def authenticator(users, clock):
    return Authenticator(users, clock=clock)
