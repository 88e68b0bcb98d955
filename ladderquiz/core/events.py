from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "PlayerJoined",
    "PlayerLeft",
    "GameStateUpdate",
    "ReceiveQuizQuestion",
    "MoveCompleted",
    "QuizAnswered",
    "GameFinished",
    "PlayerSurrendered",
    "Error",
    "MoveError",
    "QuizError",
    "SurrenderError",
]


@dataclass(frozen=True, slots=True)
class GameEvent:
    type: EventType
    game_id: str
    payload: Any
    ts: datetime

    @staticmethod
    def now(*, type: EventType, game_id: str, payload: Any) -> "GameEvent":
        return GameEvent(type=type, game_id=game_id, payload=payload, ts=datetime.now(timezone.utc))

    def to_message(self) -> dict[str, Any]:
        return {"type": self.type, "game_id": self.game_id, "payload": self.payload, "ts": self.ts.isoformat()}
