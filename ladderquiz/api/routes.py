from __future__ import annotations

import logging
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from ladderquiz import engine, session
from ladderquiz.api.deps import (
    get_current_user_id,
    get_current_username,
    get_die,
    get_redis,
    user_id_from_websocket,
)
from ladderquiz.api.models import (
    GameListResponse,
    GameStateView,
    MoveRequest,
    MoveResponse,
    QuizAnswerRequest,
    QuizAnswerResponse,
    QuizPrompt,
    RoomCreateRequest,
    RoomJoinRequest,
    RoomState,
)
from ladderquiz.core.events import GameEvent
from ladderquiz.dice import DieLike
from ladderquiz.errors import GameError
from ladderquiz.game_store import create_room, join_room, list_games, require_room
from ladderquiz.streams import Mailbox, read_mailbox
from ladderquiz.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_KIND = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "unauthenticated": status.HTTP_401_UNAUTHORIZED,
}


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, GameError):
        code = _STATUS_BY_KIND.get(e.kind, status.HTTP_422_UNPROCESSABLE_ENTITY)
        return HTTPException(status_code=code, detail=str(e))
    logger.error("storage error", exc_info=e)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Game storage is unavailable")


# ---- Real-time ----


@router.websocket("/ws/game/{game_id}")
async def game_ws(
    websocket: WebSocket,
    game_id: UUID,
    r: redis.Redis = Depends(get_redis),
    die: DieLike = Depends(get_die),
) -> None:
    gid = str(game_id)
    await websocket.accept()

    user_id = user_id_from_websocket(websocket)
    if not user_id:
        await websocket.send_json(
            GameEvent.now(
                type="Error", game_id=gid, payload={"message": "User not authenticated", "kind": "unauthenticated"}
            ).to_message()
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await session.join_game(r=r, hub=hub, websocket=websocket, game_id=game_id, user_id=user_id)

    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action") if isinstance(message, dict) else None

            if action == "move":
                await session.send_move(
                    r=r,
                    hub=hub,
                    websocket=websocket,
                    game_id=game_id,
                    user_id=user_id,
                    die=die,
                    attempt_id=message.get("attempt_id"),
                )
            elif action == "answer_quiz":
                await session.send_quiz_answer(
                    r=r,
                    hub=hub,
                    websocket=websocket,
                    game_id=game_id,
                    user_id=user_id,
                    option=str(message.get("option") or ""),
                )
            elif action == "surrender":
                await session.send_surrender(r=r, hub=hub, websocket=websocket, game_id=game_id, user_id=user_id)
            elif action == "request_state":
                await session.request_game_state(r=r, hub=hub, websocket=websocket, game_id=game_id)
            elif action == "leave":
                await session.leave_game(hub=hub, websocket=websocket, game_id=game_id, user_id=user_id)
                await websocket.close()
                return
            else:
                await hub.send(
                    websocket,
                    GameEvent.now(
                        type="Error",
                        game_id=gid,
                        payload={"message": f"Unknown action: {action}", "kind": "validation_failure"},
                    ),
                )
    except WebSocketDisconnect:
        await session.leave_game(hub=hub, websocket=websocket, game_id=game_id, user_id=user_id)
    except Exception:
        await session.leave_game(hub=hub, websocket=websocket, game_id=game_id, user_id=user_id)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


# ---- Rooms ----


@router.post("/rooms", response_model=RoomState, status_code=status.HTTP_201_CREATED)
async def create_room_route(payload: RoomCreateRequest, r: redis.Redis = Depends(get_redis)) -> RoomState:
    try:
        return await session.run_engine(create_room, r=r, name=payload.name)
    except redis.RedisError as e:
        raise _http_error(e) from e


@router.get("/rooms/{room_id}", response_model=RoomState)
async def get_room_route(room_id: UUID, r: redis.Redis = Depends(get_redis)) -> RoomState:
    try:
        return await session.run_engine(require_room, r=r, room_id=room_id)
    except (GameError, redis.RedisError) as e:
        raise _http_error(e) from e


@router.post("/rooms/{room_id}/members", response_model=RoomState)
async def join_room_route(
    room_id: UUID,
    payload: RoomJoinRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    username: str | None = Depends(get_current_username),
    r: redis.Redis = Depends(get_redis),
) -> RoomState:
    name = (payload.username if payload else None) or username
    try:
        return await session.run_engine(join_room, r=r, room_id=room_id, user_id=user_id, username=name)
    except (GameError, redis.RedisError) as e:
        raise _http_error(e) from e


@router.post("/rooms/{room_id}/game", response_model=GameStateView, status_code=status.HTTP_201_CREATED)
async def create_game_route(
    room_id: UUID,
    user_id: str = Depends(get_current_user_id),
    r: redis.Redis = Depends(get_redis),
) -> GameStateView:
    try:
        state = await session.run_engine(engine.create_game, r=r, room_id=room_id)
    except (GameError, redis.RedisError) as e:
        raise _http_error(e) from e
    logger.info("user %s started game %s", user_id, state.game_id)
    return engine.build_view(state=state)


# ---- Games ----


@router.get("/games", response_model=GameListResponse)
async def list_games_route(r: redis.Redis = Depends(get_redis)) -> GameListResponse:
    try:
        games = await session.run_engine(list_games, r=r)
    except redis.RedisError as e:
        raise _http_error(e) from e
    return GameListResponse(games=[engine.build_view(state=s) for s in games])


@router.get("/games/{game_id}", response_model=GameStateView)
async def get_game_route(game_id: UUID, r: redis.Redis = Depends(get_redis)) -> GameStateView:
    try:
        return await session.run_engine(engine.snapshot, r=r, game_id=game_id)
    except (GameError, redis.RedisError) as e:
        raise _http_error(e) from e


@router.post("/games/{game_id}/move", response_model=MoveResponse)
async def move_route(
    game_id: UUID,
    payload: MoveRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    die: DieLike = Depends(get_die),
    r: redis.Redis = Depends(get_redis),
) -> MoveResponse:
    try:
        result = await session.run_engine(
            engine.execute_move,
            r=r,
            game_id=game_id,
            user_id=user_id,
            die=die,
            attempt_id=payload.attempt_id if payload else None,
        )
    except (GameError, redis.RedisError) as e:
        raise _http_error(e) from e

    await session.publish_move(hub=hub, result=result, user_id=user_id)
    return MoveResponse(outcome=result.outcome, state=engine.build_view(state=result.state), replayed=result.replayed)


@router.get("/games/{game_id}/quiz", response_model=QuizPrompt)
async def pending_quiz_route(
    game_id: UUID,
    user_id: str = Depends(get_current_user_id),
    r: redis.Redis = Depends(get_redis),
) -> QuizPrompt:
    try:
        quiz = await session.run_engine(engine.get_pending_quiz, r=r, game_id=game_id, user_id=user_id)
    except (GameError, redis.RedisError) as e:
        raise _http_error(e) from e
    if quiz is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No quiz is waiting for your answer")
    return quiz


@router.post("/games/{game_id}/quiz/answer", response_model=QuizAnswerResponse)
async def answer_quiz_route(
    game_id: UUID,
    payload: QuizAnswerRequest,
    user_id: str = Depends(get_current_user_id),
    r: redis.Redis = Depends(get_redis),
) -> QuizAnswerResponse:
    try:
        result = await session.run_engine(engine.answer_quiz, r=r, game_id=game_id, user_id=user_id, option=payload.option)
    except (GameError, redis.RedisError) as e:
        raise _http_error(e) from e

    await session.publish_quiz_answer(hub=hub, result=result, user_id=user_id)
    return QuizAnswerResponse(result=result.result, state=engine.build_view(state=result.state))


@router.post("/games/{game_id}/surrender", response_model=GameStateView)
async def surrender_route(
    game_id: UUID,
    user_id: str = Depends(get_current_user_id),
    r: redis.Redis = Depends(get_redis),
) -> GameStateView:
    try:
        result = await session.run_engine(engine.surrender, r=r, game_id=game_id, user_id=user_id)
    except (GameError, redis.RedisError) as e:
        raise _http_error(e) from e

    await session.publish_surrender(hub=hub, result=result, user_id=user_id)
    return engine.build_view(state=result.state)


@router.get("/games/{game_id}/mailbox")
async def get_mailbox_route(
    game_id: UUID,
    count: int = 20,
    start: str = "-",
    end: str = "+",
    user_id: str = Depends(get_current_user_id),
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Debug endpoint: read the caller's private mailbox stream for this game."""

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    mailbox = Mailbox(game_id=str(game_id), user_id=user_id)
    try:
        entries = await session.run_engine(read_mailbox, r=r, mailbox=mailbox, count=count, start=start, end=end)
    except redis.ResponseError as e:
        # Malformed stream ids.
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except redis.RedisError as e:
        raise _http_error(e) from e

    messages = [{"id": mid, "fields": fields} for mid, fields in entries]
    return {"game_id": str(game_id), "user_id": user_id, "stream": mailbox.key, "messages": messages}
