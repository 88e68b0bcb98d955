from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

from ladderquiz.core.events import GameEvent

logger = logging.getLogger(__name__)


class GameWebSocketHub:
    """Groups of game connections, each connection tagged with its user.

      - `connect(game_id, websocket, user_id)` adds an accepted socket to the game's group.
      - `broadcast(game_id, event)` reaches the whole group; pass `exclude` to skip the sender.
      - `send(websocket, event)` reaches one connection only (quiz prompts, rejections).

    Groups live in this process only; running several API replicas would need the
    fan-out moved to Redis pub/sub.
    """

    def __init__(self) -> None:
        self._by_game: dict[str, dict[WebSocket, str]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def connect(self, game_id: str, websocket: WebSocket, user_id: str) -> None:
        async with self._lock:
            self._by_game[game_id][websocket] = user_id

    async def disconnect(self, game_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            conns = self._by_game.get(game_id)
            if not conns:
                return
            conns.pop(websocket, None)
            if not conns:
                self._by_game.pop(game_id, None)

    async def members(self, game_id: str) -> list[str]:
        async with self._lock:
            return sorted(set(self._by_game.get(game_id, {}).values()))

    async def send(self, websocket: WebSocket, event: GameEvent) -> None:
        await websocket.send_json(event.to_message())

    async def broadcast(self, game_id: str, event: GameEvent, *, exclude: WebSocket | None = None) -> None:
        async with self._lock:
            conns = [ws for ws in self._by_game.get(game_id, {}) if ws is not exclude]

        if not conns:
            return

        message = event.to_message()
        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(message)
            except Exception:
                dead.append(ws)

        if dead:
            logger.info("dropping %d dead connection(s) from game %s", len(dead), game_id)
            async with self._lock:
                for ws in dead:
                    self._by_game.get(game_id, {}).pop(ws, None)


hub = GameWebSocketHub()
