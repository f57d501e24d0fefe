import itertools

import pytest

from core.state import AppState
from core.db import db_init, db_close, db_config_update
from core.seasons import start_season

GUILD = "100"


@pytest.fixture
def state(tmp_path) -> AppState:
    """Fresh SQLite store per test."""
    st = AppState(db_path=str(tmp_path / "thoracle.sqlite3"))
    db_init(st)
    yield st
    db_close(st)


@pytest.fixture
async def season(state):
    return await start_season(state, GUILD, "S1")


@pytest.fixture
async def draws_enabled(state):
    return await db_config_update(state, GUILD, {"enable_draws": True})


class FakePost:
    """Stands in for sending the match message; records what was posted."""

    def __init__(self):
        self.posted = []
        self._ids = itertools.count(5000)

    async def __call__(self, match):
        self.posted.append(match)
        return next(self._ids)


@pytest.fixture
def post() -> FakePost:
    return FakePost()
