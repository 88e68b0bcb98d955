"""Session broadcaster: turns engine results into real-time events.

Group events go to every connection watching the game; player-private events
(quiz prompts, rejections) go to the acting connection only. For a move the
group sees MoveCompleted, then GameStateUpdate, then GameFinished if the move won.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar
from uuid import UUID

import redis
from fastapi import WebSocket
from starlette.concurrency import run_in_threadpool

from ladderquiz import engine
from ladderquiz.api.models import GameStateView
from ladderquiz.core.events import EventType, GameEvent
from ladderquiz.dice import DieLike
from ladderquiz.errors import GameError
from ladderquiz.websocket_hub import GameWebSocketHub

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _event(type: EventType, game_id: str, payload: Any) -> GameEvent:
    return GameEvent.now(type=type, game_id=game_id, payload=payload)


def _state_event(game_id: str, view: GameStateView) -> GameEvent:
    return _event("GameStateUpdate", game_id, view.model_dump(mode="json"))


def error_payload(e: Exception) -> dict[str, str]:
    if isinstance(e, GameError):
        return {"message": str(e), "kind": e.kind}
    return {"message": "Game storage is unavailable, try again", "kind": "unavailable"}


async def run_engine(fn: Callable[..., T], **kwargs: Any) -> T:
    # Redis calls block, and mutations may also wait on the per-game lock; keep them off the event loop.
    return await run_in_threadpool(fn, **kwargs)


# ---- Publishing committed results ----


async def publish_move(
    *,
    hub: GameWebSocketHub,
    result: engine.MoveResult,
    user_id: str,
    caller: WebSocket | None = None,
) -> None:
    gid = str(result.state.game_id)
    outcome = result.outcome

    if caller is not None and outcome.quiz is not None:
        await hub.send(caller, _event("ReceiveQuizQuestion", gid, outcome.quiz.model_dump(mode="json")))

    if result.replayed:
        # Already announced when first committed; only the caller needs the current state.
        if caller is not None:
            await hub.send(caller, _state_event(gid, engine.build_view(state=result.state)))
        return

    view = engine.build_view(state=result.state)
    await hub.broadcast(gid, _event("MoveCompleted", gid, {"user_id": user_id, "outcome": outcome.public()}))
    await hub.broadcast(gid, _state_event(gid, view))

    if outcome.is_winner:
        await hub.broadcast(
            gid,
            _event(
                "GameFinished",
                gid,
                {
                    "winner_id": user_id,
                    "winner_player_id": view.winner_player_id,
                    "winner_name": view.winner_name,
                    "message": outcome.message,
                },
            ),
        )


async def publish_quiz_answer(*, hub: GameWebSocketHub, result: engine.QuizAnswerResult, user_id: str) -> None:
    gid = str(result.state.game_id)
    await hub.broadcast(gid, _event("QuizAnswered", gid, {"user_id": user_id, "result": result.result.model_dump(mode="json")}))
    await hub.broadcast(gid, _state_event(gid, engine.build_view(state=result.state)))


async def publish_surrender(*, hub: GameWebSocketHub, result: engine.SurrenderResult, user_id: str) -> None:
    gid = str(result.state.game_id)
    view = engine.build_view(state=result.state)

    await hub.broadcast(gid, _event("PlayerSurrendered", gid, {"user_id": user_id}))
    await hub.broadcast(gid, _state_event(gid, view))

    if result.winner is not None:
        await hub.broadcast(
            gid,
            _event(
                "GameFinished",
                gid,
                {
                    "winner_id": result.winner.user_id,
                    "winner_player_id": result.winner.player_id,
                    "winner_name": result.winner.username,
                    "message": "Other players surrendered",
                },
            ),
        )


# ---- WebSocket actions ----


async def join_game(
    *,
    r: redis.Redis,
    hub: GameWebSocketHub,
    websocket: WebSocket,
    game_id: UUID,
    user_id: str,
) -> None:
    gid = str(game_id)
    await hub.connect(gid, websocket, user_id)
    logger.info("user %s joined game group %s", user_id, gid)

    await hub.broadcast(gid, _event("PlayerJoined", gid, {"user_id": user_id}), exclude=websocket)

    try:
        view = await run_engine(engine.snapshot, r=r, game_id=game_id)
        await hub.send(websocket, _state_event(gid, view))
        pending = await run_engine(engine.get_pending_quiz, r=r, game_id=game_id, user_id=user_id)
    except GameError as e:
        logger.warning("sending state to user %s for game %s failed: %s", user_id, gid, e)
        await hub.send(websocket, _event("Error", gid, error_payload(e)))
        return
    except redis.RedisError as e:
        logger.exception("storage error loading game %s", gid)
        await hub.send(websocket, _event("Error", gid, error_payload(e)))
        return

    if pending is not None:
        await hub.send(websocket, _event("ReceiveQuizQuestion", gid, pending.model_dump(mode="json")))


async def leave_game(*, hub: GameWebSocketHub, websocket: WebSocket, game_id: UUID, user_id: str) -> None:
    gid = str(game_id)
    await hub.disconnect(gid, websocket)
    logger.info("user %s left game group %s", user_id, gid)
    await hub.broadcast(gid, _event("PlayerLeft", gid, {"user_id": user_id}), exclude=websocket)


async def request_game_state(*, r: redis.Redis, hub: GameWebSocketHub, websocket: WebSocket, game_id: UUID) -> None:
    gid = str(game_id)
    try:
        view = await run_engine(engine.snapshot, r=r, game_id=game_id)
    except (GameError, redis.RedisError) as e:
        logger.warning("getting game state for game %s failed: %s", gid, e)
        await hub.send(websocket, _event("Error", gid, error_payload(e)))
        return
    await hub.send(websocket, _state_event(gid, view))


async def send_move(
    *,
    r: redis.Redis,
    hub: GameWebSocketHub,
    websocket: WebSocket,
    game_id: UUID,
    user_id: str,
    die: DieLike,
    attempt_id: str | None = None,
) -> None:
    gid = str(game_id)
    try:
        result = await run_engine(
            engine.execute_move, r=r, game_id=game_id, user_id=user_id, die=die, attempt_id=attempt_id
        )
    except GameError as e:
        logger.warning("move by user %s in game %s rejected: %s", user_id, gid, e)
        await hub.send(websocket, _event("MoveError", gid, error_payload(e)))
        return
    except redis.RedisError as e:
        logger.exception("storage error processing move for user %s in game %s", user_id, gid)
        await hub.send(websocket, _event("MoveError", gid, error_payload(e)))
        return

    await publish_move(hub=hub, result=result, user_id=user_id, caller=websocket)


async def send_quiz_answer(
    *,
    r: redis.Redis,
    hub: GameWebSocketHub,
    websocket: WebSocket,
    game_id: UUID,
    user_id: str,
    option: str,
) -> None:
    gid = str(game_id)
    try:
        result = await run_engine(engine.answer_quiz, r=r, game_id=game_id, user_id=user_id, option=option)
    except GameError as e:
        logger.warning("quiz answer by user %s in game %s rejected: %s", user_id, gid, e)
        await hub.send(websocket, _event("QuizError", gid, error_payload(e)))
        return
    except redis.RedisError as e:
        logger.exception("storage error processing quiz answer for user %s in game %s", user_id, gid)
        await hub.send(websocket, _event("QuizError", gid, error_payload(e)))
        return

    await publish_quiz_answer(hub=hub, result=result, user_id=user_id)


async def send_surrender(
    *,
    r: redis.Redis,
    hub: GameWebSocketHub,
    websocket: WebSocket,
    game_id: UUID,
    user_id: str,
) -> None:
    gid = str(game_id)
    try:
        result = await run_engine(engine.surrender, r=r, game_id=game_id, user_id=user_id)
    except GameError as e:
        logger.warning("surrender by user %s in game %s rejected: %s", user_id, gid, e)
        await hub.send(websocket, _event("SurrenderError", gid, error_payload(e)))
        return
    except redis.RedisError as e:
        logger.exception("storage error processing surrender for user %s in game %s", user_id, gid)
        await hub.send(websocket, _event("SurrenderError", gid, error_payload(e)))
        return

    await publish_surrender(hub=hub, result=result, user_id=user_id)
