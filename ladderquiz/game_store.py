from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis

from ladderquiz.api.models import GameState, MoveOutcome, RoomMember, RoomState
from ladderquiz.errors import GameNotFound, RoomNotFound
from ladderquiz.lock import room_lock


GAMES_SET_KEY = "ladderquiz:games"
GAME_KEY_PREFIX = "ladderquiz:game:"  # + {uuid}
ROOM_KEY_PREFIX = "ladderquiz:room:"  # + {uuid}
ATTEMPT_KEY_PREFIX = "ladderquiz:attempt:"  # + {game uuid}:{user id}:{attempt id}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _game_key(game_id: UUID) -> str:
    return f"{GAME_KEY_PREFIX}{game_id}"


def _room_key(room_id: UUID) -> str:
    return f"{ROOM_KEY_PREFIX}{room_id}"


def _attempt_key(game_id: UUID, user_id: str, attempt_id: str) -> str:
    return f"{ATTEMPT_KEY_PREFIX}{game_id}:{user_id}:{attempt_id}"


# ---- Games ----


def save_game(*, r: redis.Redis, state: GameState) -> None:
    # Game, players and board live in one document so every read is a consistent snapshot.
    state.last_updated_at = _now()
    r.set(_game_key(state.game_id), state.model_dump_json())


def insert_game(*, r: redis.Redis, state: GameState) -> None:
    save_game(r=r, state=state)
    r.sadd(GAMES_SET_KEY, str(state.game_id))


def get_game(*, r: redis.Redis, game_id: UUID) -> GameState | None:
    raw = r.get(_game_key(game_id))
    if not raw:
        return None
    return GameState.model_validate_json(raw)


def require_game(*, r: redis.Redis, game_id: UUID) -> GameState:
    state = get_game(r=r, game_id=game_id)
    if state is None:
        raise GameNotFound("Game not found")
    return state


def list_games(*, r: redis.Redis) -> list[GameState]:
    ids = sorted(r.smembers(GAMES_SET_KEY))
    out: list[GameState] = []
    for sid in ids:
        try:
            gid = UUID(sid)
        except ValueError:
            continue
        state = get_game(r=r, game_id=gid)
        if state is not None:
            out.append(state)
    out.sort(key=lambda s: s.created_at, reverse=True)
    return out


# ---- Idempotent move attempts ----


def remember_attempt(
    *, r: redis.Redis, game_id: UUID, user_id: str, attempt_id: str, outcome: MoveOutcome, ttl_sec: int
) -> None:
    # Scoped to the mover so an attempt id never replays someone else's outcome.
    r.set(_attempt_key(game_id, user_id, attempt_id), outcome.model_dump_json(), ex=ttl_sec)


def recall_attempt(*, r: redis.Redis, game_id: UUID, user_id: str, attempt_id: str) -> MoveOutcome | None:
    raw = r.get(_attempt_key(game_id, user_id, attempt_id))
    if not raw:
        return None
    return MoveOutcome.model_validate_json(raw)


# ---- Rooms ----


def save_room(*, r: redis.Redis, room: RoomState) -> None:
    r.set(_room_key(room.room_id), room.model_dump_json())


def get_room(*, r: redis.Redis, room_id: UUID) -> RoomState | None:
    raw = r.get(_room_key(room_id))
    if not raw:
        return None
    return RoomState.model_validate_json(raw)


def require_room(*, r: redis.Redis, room_id: UUID) -> RoomState:
    room = get_room(r=r, room_id=room_id)
    if room is None:
        raise RoomNotFound("Room not found")
    return room


def create_room(*, r: redis.Redis, name: str) -> RoomState:
    room = RoomState(room_id=uuid4(), name=name, created_at=_now())
    save_room(r=r, room=room)
    return room


def join_room(*, r: redis.Redis, room_id: UUID, user_id: str, username: str | None = None) -> RoomState:
    """Add a user to a room. Joining twice is a no-op for members not yet in a game."""

    with room_lock(r=r, room_id=str(room_id)):
        room = require_room(r=r, room_id=room_id)
        waiting = next((m for m in room.members if m.user_id == user_id and m.game_id is None), None)
        if waiting is None:
            room.members.append(RoomMember(user_id=user_id, username=username or user_id))
            save_room(r=r, room=room)
        return room
