"""Game engine: creation, moves, quiz answers, surrender and read-only snapshots.

Every mutating operation follows the same shape:
- acquire the per-game lock
- load the game document
- run the action's validator pipeline (nothing is changed if it raises)
- apply the transition through the FSM and persist
- return the saved state so callers broadcast exactly what was committed

Snapshots never take the lock; the game is stored as one document, so a plain
read is already consistent.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis

from ladderquiz.api.models import (
    BoardView,
    GameState,
    GameStateView,
    HazardView,
    MoveKind,
    MoveOutcome,
    PlayerState,
    PlayerStatus,
    PlayerView,
    QuizPrompt,
    QuizResult,
    RoomStatus,
    TurnPhase,
)
from ladderquiz.assets.registry import BoardCatalog
from ladderquiz.assets.singleton import get_catalog
from ladderquiz.board import check_answer, generate_board, hazard_destination, quiz_for, quiz_prompt_for
from ladderquiz.dice import DieLike
from ladderquiz.errors import InsufficientPlayers, InvalidQuizOption, InvalidStateError
from ladderquiz.fsm import GameFSM
from ladderquiz.game_store import (
    insert_game,
    recall_attempt,
    remember_attempt,
    require_game,
    require_room,
    save_game,
    save_room,
)
from ladderquiz.lock import game_lock, room_lock
from ladderquiz.moves import resolve_move
from ladderquiz.settings import get_settings
from ladderquiz.streams import Mailbox, publish_to_mailbox
from ladderquiz.turn_processing.turns import advance_turn, current_player
from ladderquiz.turn_processing.validators import ValidationContext, pipeline_for_action, require_player

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MoveResult:
    state: GameState
    outcome: MoveOutcome
    # True when an earlier attempt with the same id was returned instead of rolling again.
    replayed: bool = False


@dataclass(frozen=True, slots=True)
class QuizAnswerResult:
    state: GameState
    result: QuizResult


@dataclass(frozen=True, slots=True)
class SurrenderResult:
    state: GameState
    player: PlayerState
    winner: PlayerState | None


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _declare_winner(*, state: GameState, player: PlayerState) -> None:
    player.status = PlayerStatus.winner
    state.winner_player_id = player.player_id
    state.finished_at = _now()
    state.pending_quiz_tile = None


def _validate(*, state: GameState, user_id: str, action: str) -> PlayerState:
    ctx = ValidationContext(game_id=str(state.game_id), user_id=user_id, action=action)
    pipeline_for_action(action).validate(ctx=ctx, state=state)
    return require_player(state=state, user_id=user_id)


def create_game(
    *,
    r: redis.Redis,
    room_id: UUID,
    catalog: BoardCatalog | None = None,
    board_size: int | None = None,
) -> GameState:
    """Start a game with every room member not already placed in one.

    Turn order follows room membership order.
    """

    settings = get_settings()

    with room_lock(r=r, room_id=str(room_id)):
        room = require_room(r=r, room_id=room_id)
        eligible = [m for m in room.members if m.game_id is None]
        if len(eligible) < settings.min_players:
            raise InsufficientPlayers(f"Need at least {settings.min_players} players (current: {len(eligible)})")

        board = generate_board(
            catalog=catalog if catalog is not None else get_catalog(),
            size=board_size if board_size is not None else settings.board_size,
        )

        game_id = uuid4()
        now = _now()
        players = [
            PlayerState(player_id=f"p{i + 1}", user_id=m.user_id, username=m.username, turn_order=i)
            for i, m in enumerate(eligible)
        ]
        state = GameState(
            game_id=game_id,
            room_id=room.room_id,
            created_at=now,
            last_updated_at=now,
            current_turn_player_index=0,
            current_turn_phase=TurnPhase.waiting_for_dice,
            players=players,
            board=board,
        )
        insert_game(r=r, state=state)

        for m in eligible:
            m.game_id = game_id
        room.status = RoomStatus.in_game
        save_room(r=r, room=room)

    logger.info("game %s created from room %s with %d players", game_id, room_id, len(players))
    return state


def execute_move(
    *,
    r: redis.Redis,
    game_id: UUID,
    user_id: str,
    die: DieLike,
    attempt_id: str | None = None,
) -> MoveResult:
    settings = get_settings()

    with game_lock(r=r, game_id=str(game_id)):
        state = require_game(r=r, game_id=game_id)

        if attempt_id is not None:
            previous = recall_attempt(r=r, game_id=game_id, user_id=user_id, attempt_id=attempt_id)
            if previous is not None:
                if previous.quiz is not None and _pending_quiz(state=state, user_id=user_id) is None:
                    # Quiz already answered or forfeited.
                    previous = previous.model_copy(update={"quiz": None})
                return MoveResult(state=state, outcome=previous, replayed=True)

        player = _validate(state=state, user_id=user_id, action="move")
        fsm = GameFSM(state)

        outcome = resolve_move(board=state.board, from_position=player.position, die_value=die.roll())
        player.position = outcome.final_position

        if outcome.kind == MoveKind.quiz_pending:
            fsm.quiz_pending()
            state.pending_quiz_tile = outcome.landing_position
        elif outcome.kind == MoveKind.won:
            fsm.won()
            _declare_winner(state=state, player=player)
        else:
            fsm.rolled()
            advance_turn(state=state)

        fsm.sync_phase_to_model()
        save_game(r=r, state=state)

        if attempt_id is not None:
            remember_attempt(
                r=r,
                game_id=game_id,
                user_id=user_id,
                attempt_id=attempt_id,
                outcome=outcome,
                ttl_sec=settings.attempt_ttl_sec,
            )

        if outcome.quiz is not None:
            publish_to_mailbox(
                r=r,
                mailbox=Mailbox(game_id=str(game_id), user_id=user_id),
                fields={
                    "type": "ReceiveQuizQuestion",
                    "game_id": str(game_id),
                    "tile": str(outcome.quiz.tile),
                    "professor": outcome.quiz.professor,
                    "prompt": outcome.quiz.prompt,
                    "options": json.dumps(outcome.quiz.options),
                },
            )

    logger.info(
        "game %s: %s rolled %d, %d -> %d (%s)",
        game_id,
        player.player_id,
        outcome.die_value,
        outcome.from_position,
        outcome.final_position,
        outcome.kind.value,
    )
    if outcome.kind == MoveKind.won:
        logger.info("game %s finished, winner %s", game_id, player.player_id)
    return MoveResult(state=state, outcome=outcome)


def answer_quiz(*, r: redis.Redis, game_id: UUID, user_id: str, option: str) -> QuizAnswerResult:
    """Resolve the quiz the current player is parked on.

    A wrong answer applies the hazard's drop; a right one leaves the player where they
    are. Either way the turn passes.
    """

    with game_lock(r=r, game_id=str(game_id)):
        state = require_game(r=r, game_id=game_id)
        player = _validate(state=state, user_id=user_id, action="answer_quiz")

        tile = player.position
        quiz = quiz_for(state.board, tile)
        if quiz is None:
            raise InvalidStateError(f"No quiz on tile {tile}")
        if option not in quiz.options:
            allowed = ",".join(quiz.options)
            raise InvalidQuizOption(f"Unknown option {option!r} (allowed: {allowed})")

        fsm = GameFSM(state)
        correct = check_answer(state.board, tile, option)
        if correct:
            message = f"Correct! Professor {quiz.professor} lets you stay on {tile}"
        else:
            tail = hazard_destination(state.board, tile)
            player.position = tail if tail is not None else tile
            message = f"Wrong! Professor {quiz.professor} sends you down to {player.position}"

        result = QuizResult(
            tile=tile,
            option=option,
            correct=correct,
            from_position=tile,
            final_position=player.position,
            message=message,
        )

        state.pending_quiz_tile = None
        fsm.quiz_resolved()
        advance_turn(state=state)
        fsm.sync_phase_to_model()
        save_game(r=r, state=state)

    logger.info("game %s: %s answered quiz on %d (%s)", game_id, player.player_id, tile, "correct" if correct else "wrong")
    return QuizAnswerResult(state=state, result=result)


def surrender(*, r: redis.Redis, game_id: UUID, user_id: str) -> SurrenderResult:
    """Take a player out of the game. The last one still playing wins."""

    with game_lock(r=r, game_id=str(game_id)):
        state = require_game(r=r, game_id=game_id)
        player = _validate(state=state, user_id=user_id, action="surrender")

        fsm = GameFSM(state)
        held_turn = current_player(state=state) is player
        player.status = PlayerStatus.surrendered

        active = [p for p in state.players if p.status == PlayerStatus.playing]
        winner: PlayerState | None = None
        if len(active) == 1:
            winner = active[0]
            fsm.last_player_standing()
            _declare_winner(state=state, player=winner)
        elif held_turn:
            if state.current_turn_phase == TurnPhase.waiting_for_quiz_answer:
                fsm.quiz_resolved()
            state.pending_quiz_tile = None
            advance_turn(state=state)

        fsm.sync_phase_to_model()
        save_game(r=r, state=state)

    logger.info("game %s: %s surrendered", game_id, player.player_id)
    if winner is not None:
        logger.info("game %s finished, winner %s", game_id, winner.player_id)
    return SurrenderResult(state=state, player=player, winner=winner)


def build_view(*, state: GameState) -> GameStateView:
    """Read-only projection of a game. Quiz answers are never included."""

    cur = current_player(state=state)
    winner = next((p for p in state.players if p.player_id == state.winner_player_id), None)
    return GameStateView(
        game_id=state.game_id,
        room_id=state.room_id,
        status=state.status,
        current_turn_phase=state.current_turn_phase,
        current_turn_player_index=state.current_turn_player_index,
        current_player_id=cur.player_id if cur else None,
        current_player_name=cur.username if cur else None,
        players=[
            PlayerView(
                player_id=p.player_id,
                user_id=p.user_id,
                username=p.username,
                position=p.position,
                turn_order=p.turn_order,
                status=p.status,
                is_current_turn=cur is not None and p.player_id == cur.player_id,
            )
            for p in sorted(state.players, key=lambda p: p.turn_order)
        ],
        board=BoardView(
            size=state.board.size,
            hazards=[
                HazardView(head=h.head, tail=h.tail, professor=h.quiz.professor if h.quiz else None)
                for h in state.board.hazards
            ],
            shortcuts=list(state.board.shortcuts),
        ),
        winner_player_id=state.winner_player_id,
        winner_name=winner.username if winner else None,
        finished_at=state.finished_at,
    )


def _pending_quiz(*, state: GameState, user_id: str) -> QuizPrompt | None:
    cur = current_player(state=state)
    if (
        state.current_turn_phase != TurnPhase.waiting_for_quiz_answer
        or cur is None
        or cur.user_id != user_id
        or state.pending_quiz_tile is None
    ):
        return None
    return quiz_prompt_for(state.board, state.pending_quiz_tile)


def snapshot(*, r: redis.Redis, game_id: UUID) -> GameStateView:
    return build_view(state=require_game(r=r, game_id=game_id))


def get_pending_quiz(*, r: redis.Redis, game_id: UUID, user_id: str) -> QuizPrompt | None:
    """The quiz `user_id` is currently parked on, if the game is waiting for their answer."""

    state = require_game(r=r, game_id=game_id)
    require_player(state=state, user_id=user_id)
    return _pending_quiz(state=state, user_id=user_id)
