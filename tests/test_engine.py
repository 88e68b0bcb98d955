from __future__ import annotations

import json
import threading
from collections.abc import Callable
from uuid import UUID, uuid4

import fakeredis
import pytest

from ladderquiz import engine
from ladderquiz.api.models import GameState, GameStatus, MoveKind, PlayerState, PlayerStatus, RoomStatus, TurnPhase
from ladderquiz.assets.registry import BoardCatalog, HazardSpec, ShortcutSpec
from ladderquiz.errors import (
    GameError,
    GameNotFound,
    GameNotInProgress,
    InsufficientPlayers,
    InvalidQuizOption,
    NotPlayersTurn,
    PhaseMismatch,
    PlayerNotActive,
    PlayerNotInGame,
    RoomNotFound,
)
from ladderquiz.game_store import create_room, join_room, list_games, require_game, require_room
from ladderquiz.streams import Mailbox, read_mailbox

from conftest import ScriptedDie

Place = Callable[[UUID, str, int], None]


def _player(state: GameState, user_id: str) -> PlayerState:
    return next(p for p in state.players if p.user_id == user_id)


# ---- Creation ----


def test_create_game_from_room(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2")

    assert state.status == GameStatus.in_progress
    assert state.current_turn_phase == TurnPhase.waiting_for_dice
    assert [(p.player_id, p.user_id, p.position, p.turn_order) for p in state.players] == [
        ("p1", "u1", 0, 0),
        ("p2", "u2", 0, 1),
    ]
    assert require_game(r=r, game_id=state.game_id) == state

    room = require_room(r=r, room_id=state.room_id)
    assert room.status == RoomStatus.in_game
    assert all(m.game_id == state.game_id for m in room.members)
    assert [s.game_id for s in list_games(r=r)] == [state.game_id]


def test_create_game_needs_two_players(r: fakeredis.FakeRedis) -> None:
    room = create_room(r=r, name="solo")
    join_room(r=r, room_id=room.room_id, user_id="u1")

    with pytest.raises(InsufficientPlayers, match="current: 1"):
        engine.create_game(r=r, room_id=room.room_id)


def test_room_members_are_placed_only_once(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2")

    with pytest.raises(InsufficientPlayers):
        engine.create_game(r=r, room_id=state.room_id)


def test_joining_a_room_twice_is_a_no_op(r: fakeredis.FakeRedis) -> None:
    room = create_room(r=r, name="twice")
    join_room(r=r, room_id=room.room_id, user_id="u1")
    room = join_room(r=r, room_id=room.room_id, user_id="u1")

    assert [m.user_id for m in room.members] == ["u1"]


def test_create_game_unknown_room(r: fakeredis.FakeRedis) -> None:
    with pytest.raises(RoomNotFound):
        engine.create_game(r=r, room_id=uuid4())


# ---- Moves ----


def test_plain_move_advances_turn(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2")
    die = ScriptedDie([4])

    res = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=die)

    assert res.outcome.kind == MoveKind.moved
    assert res.outcome.final_position == 4
    assert _player(res.state, "u1").position == 4
    assert res.state.current_turn_player_index == 1
    assert require_game(r=r, game_id=state.game_id).current_turn_player_index == 1


def test_shortcut_move(r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place) -> None:
    state = new_game("u1", "u2")
    place(state.game_id, "u1", 10)

    res = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([3]))

    assert res.outcome.special_event == "shortcut"
    assert _player(res.state, "u1").position == 28


def test_overshoot_keeps_position_and_passes_turn(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = new_game("u1", "u2")
    place(state.game_id, "u1", 95)

    res = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([6]))

    assert res.outcome.kind == MoveKind.bounce
    assert _player(res.state, "u1").position == 95
    assert res.state.current_turn_player_index == 1


def test_exact_landing_wins(r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place) -> None:
    state = new_game("u1", "u2")
    place(state.game_id, "u1", 94)

    res = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([6]))

    assert res.outcome.is_winner
    assert res.state.status == GameStatus.finished
    assert res.state.winner_player_id == "p1"
    assert res.state.finished_at is not None
    assert _player(res.state, "u1").status == PlayerStatus.winner

    die = ScriptedDie([1])
    with pytest.raises(GameNotInProgress):
        engine.execute_move(r=r, game_id=state.game_id, user_id="u2", die=die)
    assert die.rolls == 0


def test_rejected_moves_do_not_roll(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2")
    die = ScriptedDie([1])

    with pytest.raises(NotPlayersTurn):
        engine.execute_move(r=r, game_id=state.game_id, user_id="u2", die=die)
    with pytest.raises(PlayerNotInGame):
        engine.execute_move(r=r, game_id=state.game_id, user_id="stranger", die=die)
    with pytest.raises(GameNotFound):
        engine.execute_move(r=r, game_id=uuid4(), user_id="u1", die=die)

    assert die.rolls == 0
    assert require_game(r=r, game_id=state.game_id).model_dump(exclude={"last_updated_at"}) == state.model_dump(
        exclude={"last_updated_at"}
    )


def test_hazard_without_quiz_drops_player(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    catalog = BoardCatalog.from_rows(
        hazards=[HazardSpec(head=5, tail=1)],
        shortcuts=[ShortcutSpec(bottom=3, top=8)],
    )
    state = new_game("u1", "u2", catalog=catalog, board_size=10)

    res = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([5]))

    assert res.state.board.size == 10
    assert res.outcome.special_event == "hazard"
    assert _player(res.state, "u1").position == 1
    assert res.state.current_turn_phase == TurnPhase.waiting_for_dice


# ---- Quiz hazards ----


def _land_on_quiz(r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place) -> GameState:
    state = new_game("u1", "u2")
    place(state.game_id, "u1", 20)
    res = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([3]))
    assert res.outcome.kind == MoveKind.quiz_pending
    return res.state


def test_quiz_hazard_parks_player(r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place) -> None:
    state = _land_on_quiz(r, new_game, place)

    assert _player(state, "u1").position == 23
    assert state.current_turn_phase == TurnPhase.waiting_for_quiz_answer
    assert state.pending_quiz_tile == 23
    assert state.current_turn_player_index == 0

    # Only the mover can see the pending quiz.
    prompt = engine.get_pending_quiz(r=r, game_id=state.game_id, user_id="u1")
    assert prompt is not None
    assert prompt.tile == 23
    assert engine.get_pending_quiz(r=r, game_id=state.game_id, user_id="u2") is None


def test_quiz_is_delivered_to_movers_mailbox(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = _land_on_quiz(r, new_game, place)

    entries = read_mailbox(r=r, mailbox=Mailbox(game_id=str(state.game_id), user_id="u1"))
    assert len(entries) == 1
    _, fields = entries[0]
    assert fields["type"] == "ReceiveQuizQuestion"
    assert fields["tile"] == "23"
    assert json.loads(fields["options"]) == {"A": "x=4", "B": "x=3", "C": "x=2"}
    assert "correct_option" not in fields

    assert read_mailbox(r=r, mailbox=Mailbox(game_id=str(state.game_id), user_id="u2")) == []


def test_moving_again_while_quiz_pending_is_rejected(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = _land_on_quiz(r, new_game, place)

    with pytest.raises(PhaseMismatch):
        engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([1]))


def test_wrong_answer_drops_player(r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place) -> None:
    state = _land_on_quiz(r, new_game, place)

    res = engine.answer_quiz(r=r, game_id=state.game_id, user_id="u1", option="A")

    assert res.result.correct is False
    assert res.result.final_position == 4
    assert _player(res.state, "u1").position == 4
    assert res.state.current_turn_player_index == 1
    assert res.state.current_turn_phase == TurnPhase.waiting_for_dice
    assert res.state.pending_quiz_tile is None


def test_right_answer_keeps_player(r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place) -> None:
    state = _land_on_quiz(r, new_game, place)

    res = engine.answer_quiz(r=r, game_id=state.game_id, user_id="u1", option="B")

    assert res.result.correct is True
    assert _player(res.state, "u1").position == 23
    assert res.state.current_turn_player_index == 1
    assert res.state.status == GameStatus.in_progress


def test_unknown_option_changes_nothing(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = _land_on_quiz(r, new_game, place)
    before = require_game(r=r, game_id=state.game_id)

    with pytest.raises(InvalidQuizOption):
        engine.answer_quiz(r=r, game_id=state.game_id, user_id="u1", option="D")

    assert require_game(r=r, game_id=state.game_id) == before


def test_answer_rejections(r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place) -> None:
    state = _land_on_quiz(r, new_game, place)

    with pytest.raises(NotPlayersTurn):
        engine.answer_quiz(r=r, game_id=state.game_id, user_id="u2", option="B")

    engine.answer_quiz(r=r, game_id=state.game_id, user_id="u1", option="B")
    with pytest.raises(NotPlayersTurn):
        engine.answer_quiz(r=r, game_id=state.game_id, user_id="u1", option="B")
    with pytest.raises(PhaseMismatch):
        engine.answer_quiz(r=r, game_id=state.game_id, user_id="u2", option="B")


# ---- Surrender ----


def test_surrender_out_of_turn_keeps_turn(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2", "u3")

    res = engine.surrender(r=r, game_id=state.game_id, user_id="u2")

    assert res.winner is None
    assert res.player.status == PlayerStatus.surrendered
    assert res.state.status == GameStatus.in_progress
    assert res.state.current_turn_player_index == 0

    # The surrendered player's turn is skipped.
    moved = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([2]))
    assert moved.state.current_turn_player_index == 2


def test_surrendering_twice_is_rejected(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2", "u3")
    engine.surrender(r=r, game_id=state.game_id, user_id="u2")

    with pytest.raises(PlayerNotActive):
        engine.surrender(r=r, game_id=state.game_id, user_id="u2")


def test_last_player_standing_wins(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2", "u3")
    engine.surrender(r=r, game_id=state.game_id, user_id="u2")

    res = engine.surrender(r=r, game_id=state.game_id, user_id="u3")

    assert res.winner is not None
    assert res.winner.user_id == "u1"
    assert res.state.status == GameStatus.finished
    assert res.state.winner_player_id == "p1"

    with pytest.raises(GameNotInProgress):
        engine.surrender(r=r, game_id=state.game_id, user_id="u1")


def test_surrender_on_own_turn_passes_it(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2", "u3")

    res = engine.surrender(r=r, game_id=state.game_id, user_id="u1")

    assert res.state.current_turn_player_index == 1
    assert res.state.current_turn_phase == TurnPhase.waiting_for_dice


def test_surrender_with_quiz_pending_discards_it(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = new_game("u1", "u2", "u3")
    place(state.game_id, "u1", 20)
    engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([3]))

    res = engine.surrender(r=r, game_id=state.game_id, user_id="u1")

    assert res.state.pending_quiz_tile is None
    assert res.state.current_turn_phase == TurnPhase.waiting_for_dice
    assert res.state.current_turn_player_index == 1


def test_two_player_surrender_mid_quiz_finishes(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = _land_on_quiz(r, new_game, place)

    res = engine.surrender(r=r, game_id=state.game_id, user_id="u1")

    assert res.state.status == GameStatus.finished
    assert res.state.winner_player_id == "p2"
    assert res.state.pending_quiz_tile is None


# ---- Snapshots ----


def test_snapshot_is_read_only_and_hides_answers(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = _land_on_quiz(r, new_game, place)

    first = engine.snapshot(r=r, game_id=state.game_id)
    second = engine.snapshot(r=r, game_id=state.game_id)

    assert first == second
    assert first.current_player_id == "p1"
    assert first.current_player_name == "U1"
    assert [p.is_current_turn for p in first.players] == [True, False]
    assert "correct_option" not in first.model_dump_json()
    assert {h.professor for h in first.board.hazards if h.head == 23} == {"Huanca"}


def test_snapshot_unknown_game(r: fakeredis.FakeRedis) -> None:
    with pytest.raises(GameNotFound):
        engine.snapshot(r=r, game_id=uuid4())


# ---- Idempotency and concurrency ----


def test_retried_attempt_returns_committed_outcome(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState]
) -> None:
    state = new_game("u1", "u2")
    die = ScriptedDie([4, 6])

    first = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=die, attempt_id="a1")
    again = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=die, attempt_id="a1")

    assert again.replayed is True
    assert again.outcome == first.outcome
    assert die.rolls == 1
    assert _player(again.state, "u1").position == 4


def test_attempt_id_of_another_player_is_not_replayed(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = new_game("u1", "u2")
    place(state.game_id, "u1", 20)
    first = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=ScriptedDie([3]), attempt_id="a1")
    assert first.outcome.quiz is not None

    die = ScriptedDie([1])
    with pytest.raises(NotPlayersTurn):
        engine.execute_move(r=r, game_id=state.game_id, user_id="u2", die=die, attempt_id="a1")

    assert die.rolls == 0
    assert read_mailbox(r=r, mailbox=Mailbox(game_id=str(state.game_id), user_id="u2")) == []


def test_replay_after_answer_drops_the_stale_quiz(
    r: fakeredis.FakeRedis, new_game: Callable[..., GameState], place: Place
) -> None:
    state = new_game("u1", "u2")
    place(state.game_id, "u1", 20)
    die = ScriptedDie([3])
    first = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=die, attempt_id="a1")
    assert first.outcome.quiz is not None

    # Still waiting: the replay carries the quiz.
    pending = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=die, attempt_id="a1")
    assert pending.replayed is True
    assert pending.outcome.quiz == first.outcome.quiz

    engine.answer_quiz(r=r, game_id=state.game_id, user_id="u1", option="B")
    again = engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=die, attempt_id="a1")

    assert again.replayed is True
    assert again.outcome.quiz is None
    assert again.outcome.final_position == first.outcome.final_position
    assert die.rolls == 1


def test_concurrent_moves_commit_exactly_one(r: fakeredis.FakeRedis, new_game: Callable[..., GameState]) -> None:
    state = new_game("u1", "u2")
    die = ScriptedDie([2, 2])
    barrier = threading.Barrier(2)
    results: list[object] = []

    def _move() -> None:
        barrier.wait()
        try:
            results.append(engine.execute_move(r=r, game_id=state.game_id, user_id="u1", die=die))
        except GameError as e:
            results.append(e)

    threads = [threading.Thread(target=_move) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    committed = [x for x in results if isinstance(x, engine.MoveResult)]
    rejected = [x for x in results if isinstance(x, GameError)]
    assert len(committed) == 1
    assert len(rejected) == 1
    assert isinstance(rejected[0], NotPlayersTurn)
    assert die.rolls == 1
    assert _player(require_game(r=r, game_id=state.game_id), "u1").position == 2
