from __future__ import annotations

from collections.abc import Callable, Generator, Iterable
from pathlib import Path
from uuid import UUID

import fakeredis
import pytest
from fastapi.testclient import TestClient

from ladderquiz.api.models import GameState


class ScriptedDie:
    """Deterministic die: returns queued values in order."""

    def __init__(self, values: Iterable[int] = ()) -> None:
        self._values = list(values)
        self.rolls = 0

    def push(self, *values: int) -> None:
        self._values.extend(values)

    def roll(self) -> int:
        if not self._values:
            raise AssertionError("ScriptedDie ran out of values")
        self.rolls += 1
        return self._values.pop(0)


@pytest.fixture(scope="session", autouse=True)
def _init_catalog_from_project_assets() -> None:
    """Load the real board catalog from the repo's `assets/` directory."""

    from ladderquiz.assets.singleton import init_catalog, reset_catalog_for_tests

    reset_catalog_for_tests()
    init_catalog(project_root=Path(__file__).resolve().parents[1])


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def new_game(r: fakeredis.FakeRedis) -> Callable[..., GameState]:
    """Create a room with the given users (in join order) and start a game from it."""

    from ladderquiz.engine import create_game
    from ladderquiz.game_store import create_room, join_room

    def _make(*user_ids: str, **kwargs: object) -> GameState:
        room = create_room(r=r, name="test room")
        for uid in user_ids or ("u1", "u2"):
            join_room(r=r, room_id=room.room_id, user_id=uid, username=uid.upper())
        return create_game(r=r, room_id=room.room_id, **kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture()
def place(r: fakeredis.FakeRedis) -> Callable[[UUID, str, int], None]:
    """Put a player on a tile directly in storage."""

    from ladderquiz.game_store import require_game, save_game

    def _place(game_id: UUID, user_id: str, position: int) -> None:
        state = require_game(r=r, game_id=game_id)
        player = next(p for p in state.players if p.user_id == user_id)
        player.position = position
        save_game(r=r, state=state)

    return _place


@pytest.fixture()
def client_and_redis() -> Generator[tuple[TestClient, fakeredis.FakeRedis, ScriptedDie], None, None]:
    """TestClient wired to fakeredis and a scripted die shared by every request."""

    from ladderquiz.api.deps import get_die, get_redis
    from ladderquiz.main import app

    r = fakeredis.FakeRedis(decode_responses=True)
    die = ScriptedDie()

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    app.dependency_overrides[get_die] = lambda: die
    with TestClient(app) as c:
        yield c, r, die
    app.dependency_overrides.clear()
