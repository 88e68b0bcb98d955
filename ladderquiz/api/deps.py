from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi import Header, HTTPException, WebSocket, status

from ladderquiz.dice import Die, DieLike
from ladderquiz.infra.redis_client import create_redis


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        try:
            client.close()
        except Exception:
            # Some redis client versions don't require explicit close.
            pass


def get_die() -> DieLike:
    return Die()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Identity verified upstream; trusted as-is."""

    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not authenticated")
    return x_user_id


def get_current_username(x_user_name: str | None = Header(default=None)) -> str | None:
    return x_user_name or None


def user_id_from_websocket(websocket: WebSocket) -> str | None:
    return websocket.query_params.get("user_id") or websocket.headers.get("x-user-id") or None
