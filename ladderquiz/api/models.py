from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, computed_field


class GameStatus(StrEnum):
    in_progress = "in_progress"
    finished = "finished"


class TurnPhase(StrEnum):
    waiting_for_dice = "waiting_for_dice"
    waiting_for_quiz_answer = "waiting_for_quiz_answer"


class PlayerStatus(StrEnum):
    playing = "playing"
    winner = "winner"
    surrendered = "surrendered"


class RoomStatus(StrEnum):
    open = "open"
    in_game = "in_game"


class MoveKind(StrEnum):
    bounce = "bounce"
    quiz_pending = "quiz_pending"
    moved = "moved"
    won = "won"


# ---- Board ----


class Quiz(BaseModel):
    professor: str
    prompt: str
    # label -> option text, e.g. {"A": "x=4", "B": "x=3"}
    options: dict[str, str]
    correct_option: str


class QuizPrompt(BaseModel):
    """What the mover sees. Never carries the correct option."""

    tile: int
    professor: str
    prompt: str
    options: dict[str, str]


class Hazard(BaseModel):
    head: int
    tail: int
    quiz: Quiz | None = None


class Shortcut(BaseModel):
    bottom: int
    top: int


class Board(BaseModel):
    size: int = 100
    hazards: list[Hazard] = Field(default_factory=list)
    shortcuts: list[Shortcut] = Field(default_factory=list)


# ---- Rooms ----


class RoomMember(BaseModel):
    user_id: str
    username: str
    # Set once the member is placed into a game.
    game_id: UUID | None = None


class RoomState(BaseModel):
    room_id: UUID
    name: str
    status: RoomStatus = RoomStatus.open
    created_at: datetime
    members: list[RoomMember] = Field(default_factory=list)


class RoomCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class RoomJoinRequest(BaseModel):
    username: str | None = Field(default=None, max_length=64)


# ---- Games ----


class PlayerState(BaseModel):
    player_id: str
    user_id: str
    username: str
    position: int = 0
    turn_order: int
    status: PlayerStatus = PlayerStatus.playing


class GameState(BaseModel):
    game_id: UUID
    room_id: UUID
    created_at: datetime
    last_updated_at: datetime

    status: GameStatus = GameStatus.in_progress
    current_turn_player_index: int = 0
    current_turn_phase: TurnPhase = TurnPhase.waiting_for_dice

    players: list[PlayerState]
    board: Board

    # Tile the current player is parked on while their quiz is unanswered.
    pending_quiz_tile: int | None = None

    winner_player_id: str | None = None
    finished_at: datetime | None = None


class MoveOutcome(BaseModel):
    kind: MoveKind
    die_value: int
    from_position: int
    # Where the die alone would put the player, before any hazard/shortcut remap.
    landing_position: int
    final_position: int
    special_event: Literal["hazard", "shortcut"] | None = None
    message: str
    # Revealed to the mover only.
    quiz: QuizPrompt | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def requires_quiz_answer(self) -> bool:
        return self.kind == MoveKind.quiz_pending

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_winner(self) -> bool:
        return self.kind == MoveKind.won

    def public(self) -> dict[str, object]:
        """Group-safe payload (no quiz)."""

        return self.model_dump(mode="json", exclude={"quiz"})


class QuizResult(BaseModel):
    tile: int
    option: str
    correct: bool
    from_position: int
    final_position: int
    message: str


class QuizAnswerRequest(BaseModel):
    option: str = Field(..., min_length=1, max_length=16)


class MoveRequest(BaseModel):
    # Retrying with the same attempt_id returns the originally committed outcome.
    attempt_id: str | None = Field(default=None, min_length=1, max_length=128)


# ---- Views ----


class PlayerView(BaseModel):
    player_id: str
    user_id: str
    username: str
    position: int
    turn_order: int
    status: PlayerStatus
    is_current_turn: bool


class HazardView(BaseModel):
    head: int
    tail: int
    professor: str | None = None


class BoardView(BaseModel):
    size: int
    hazards: list[HazardView]
    shortcuts: list[Shortcut]


class GameStateView(BaseModel):
    game_id: UUID
    room_id: UUID
    status: GameStatus
    current_turn_phase: TurnPhase
    current_turn_player_index: int
    current_player_id: str | None = None
    current_player_name: str | None = None
    players: list[PlayerView]
    board: BoardView
    winner_player_id: str | None = None
    winner_name: str | None = None
    finished_at: datetime | None = None


class GameListResponse(BaseModel):
    games: list[GameStateView]


class MoveResponse(BaseModel):
    outcome: MoveOutcome
    state: GameStateView
    replayed: bool = False


class QuizAnswerResponse(BaseModel):
    result: QuizResult
    state: GameStateView
