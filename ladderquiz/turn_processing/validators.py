from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ladderquiz.api.models import GameState, GameStatus, PlayerState, PlayerStatus, TurnPhase
from ladderquiz.errors import (
    GameNotInProgress,
    PhaseMismatch,
    PlayerNotActive,
    PlayerNotInGame,
)
from ladderquiz.turn_processing.turns import assert_is_players_turn


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Inputs available to validators.

    Keep this tight and serializable-ish so we can safely log it.
    """

    game_id: str
    user_id: str
    action: str


def find_player(*, state: GameState, user_id: str) -> PlayerState | None:
    return next((p for p in state.players if p.user_id == user_id), None)


def require_player(*, state: GameState, user_id: str) -> PlayerState:
    player = find_player(state=state, user_id=user_id)
    if player is None:
        raise PlayerNotInGame("Player not in game")
    return player


class TurnValidator(ABC):
    """A small, composable validation unit for an incoming action."""

    @abstractmethod
    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class InProgressValidator(TurnValidator):
    """Deny every mutating action once the game is finished."""

    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        if state.status != GameStatus.in_progress:
            raise GameNotInProgress("Game is not in progress")


@dataclass(frozen=True, slots=True)
class MembershipValidator(TurnValidator):
    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        require_player(state=state, user_id=ctx.user_id)


@dataclass(frozen=True, slots=True)
class ActivePlayerValidator(TurnValidator):
    """The acting player must still be playing (not surrendered, not already the winner)."""

    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        player = require_player(state=state, user_id=ctx.user_id)
        if player.status != PlayerStatus.playing:
            raise PlayerNotActive(f"Player is {player.status.value}")


@dataclass(frozen=True, slots=True)
class TurnOwnerValidator(TurnValidator):
    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        player = require_player(state=state, user_id=ctx.user_id)
        assert_is_players_turn(state=state, player_id=player.player_id)


@dataclass(frozen=True, slots=True)
class PhaseValidator(TurnValidator):
    allowed_phases: frozenset[TurnPhase]
    message: str

    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        if state.current_turn_phase not in self.allowed_phases:
            raise PhaseMismatch(self.message)


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[TurnValidator, ...]

    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        for v in self.validators:
            v.validate(ctx=ctx, state=state)


# Order matters: callers see the first failing check.
DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    "move": ValidatorPipeline(
        validators=(
            InProgressValidator(),
            MembershipValidator(),
            TurnOwnerValidator(),
            PhaseValidator(
                allowed_phases=frozenset({TurnPhase.waiting_for_dice}),
                message="Dice already rolled",
            ),
        )
    ),
    "answer_quiz": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            InProgressValidator(),
            TurnOwnerValidator(),
            PhaseValidator(
                allowed_phases=frozenset({TurnPhase.waiting_for_quiz_answer}),
                message="No quiz is waiting for an answer",
            ),
        )
    ),
    "surrender": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            InProgressValidator(),
            ActivePlayerValidator(),
        )
    ),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise ValueError(f"Unknown action: {action}")
    return pipe
