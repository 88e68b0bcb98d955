from __future__ import annotations

from ladderquiz.api.models import GameState, PlayerState, PlayerStatus, TurnPhase
from ladderquiz.errors import InvalidStateError, NotPlayersTurn


def player_by_turn_order(*, state: GameState, turn_order: int) -> PlayerState | None:
    return next((p for p in state.players if p.turn_order == turn_order), None)


def current_player(*, state: GameState) -> PlayerState | None:
    """Return the player whose turn_order equals the game's turn pointer."""

    return player_by_turn_order(state=state, turn_order=state.current_turn_player_index)


def is_players_turn(*, state: GameState, player_id: str) -> bool:
    player = current_player(state=state)
    return player is not None and player.player_id == player_id


def assert_is_players_turn(*, state: GameState, player_id: str) -> None:
    if not is_players_turn(state=state, player_id=player_id):
        raise NotPlayersTurn("Not your turn")


def advance_turn(*, state: GameState) -> PlayerState:
    """Move the turn pointer to the next player still playing and reset the phase.

    Surrendered and winning players are skipped. The engine finishes the game before
    nobody is left playing, so reaching that case here is an error.
    """

    n = len(state.players)
    if n == 0:
        raise InvalidStateError("No players")

    for step in range(1, n + 1):
        idx = (state.current_turn_player_index + step) % n
        candidate = player_by_turn_order(state=state, turn_order=idx)
        if candidate is not None and candidate.status == PlayerStatus.playing:
            state.current_turn_player_index = idx
            state.current_turn_phase = TurnPhase.waiting_for_dice
            return candidate

    raise InvalidStateError("No player left to take a turn")
