from __future__ import annotations

from statemachine import State, StateMachine

from ladderquiz.api.models import GameState, GameStatus, TurnPhase

FINISHED = "finished"


class GameFSM(StateMachine):
    """FSM wrapper around GameState.

    - waiting_for_dice -> waiting_for_dice (roll resolved, turn passes)
    - waiting_for_dice -> waiting_for_quiz_answer (landed on a professor with a quiz)
    - waiting_for_quiz_answer -> waiting_for_dice (quiz answered or forfeited)
    - any in-progress phase -> finished (winner decided)

    Actions are applied by the engine; the FSM only guards transitions.
    """

    waiting_for_dice = State(
        TurnPhase.waiting_for_dice.value,
        value=TurnPhase.waiting_for_dice.value,
        initial=True,
    )
    waiting_for_quiz_answer = State(
        TurnPhase.waiting_for_quiz_answer.value,
        value=TurnPhase.waiting_for_quiz_answer.value,
    )
    finished = State(FINISHED, value=FINISHED, final=True)

    rolled = waiting_for_dice.to.itself()
    quiz_pending = waiting_for_dice.to(waiting_for_quiz_answer)
    quiz_resolved = waiting_for_quiz_answer.to(waiting_for_dice)
    won = waiting_for_dice.to(finished)
    last_player_standing = waiting_for_dice.to(finished) | waiting_for_quiz_answer.to(finished)

    def __init__(self, game: GameState):
        self.game = game
        start = FINISHED if game.status == GameStatus.finished else game.current_turn_phase.value
        super().__init__(start_value=start)

    def sync_phase_to_model(self) -> None:
        value = str(self.current_state.value)
        if value == FINISHED:
            self.game.status = GameStatus.finished
            return
        self.game.status = GameStatus.in_progress
        self.game.current_turn_phase = TurnPhase(value)
