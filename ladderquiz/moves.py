from __future__ import annotations

from ladderquiz.api.models import Board, MoveKind, MoveOutcome
from ladderquiz.board import hazard_at, quiz_prompt_for, shortcut_destination


def resolve_move(*, board: Board, from_position: int, die_value: int) -> MoveOutcome:
    """Compute where a roll takes a player. Does NOT mutate anything.

    Decision order: overshoot bounce, hazard (quiz or drop), shortcut, plain landing,
    then the win check on the final tile. Hazards are checked before shortcuts.
    """

    size = board.size
    landing = from_position + die_value

    if landing > size:
        return MoveOutcome(
            kind=MoveKind.bounce,
            die_value=die_value,
            from_position=from_position,
            landing_position=from_position,
            final_position=from_position,
            message=f"Roll of {die_value} overshoots the board ({landing} > {size}); staying on {from_position}",
        )

    final = landing
    special = None
    hazard = hazard_at(board, landing)

    if hazard is not None and hazard.quiz is not None:
        return MoveOutcome(
            kind=MoveKind.quiz_pending,
            die_value=die_value,
            from_position=from_position,
            landing_position=landing,
            final_position=landing,
            special_event="hazard",
            message=f"Professor {hazard.quiz.professor} stops you on {landing}: answer correctly or fall to {hazard.tail}",
            quiz=quiz_prompt_for(board, landing),
        )

    if hazard is not None:
        final = hazard.tail
        special = "hazard"
        message = f"Hit a professor! Moved from {landing} to {final}"
    elif (top := shortcut_destination(board, landing)) is not None:
        final = top
        special = "shortcut"
        message = f"Climbed a bully! Moved from {landing} to {final}"
    else:
        message = f"Moved from {from_position} to {landing}"

    won = final >= size
    return MoveOutcome(
        kind=MoveKind.won if won else MoveKind.moved,
        die_value=die_value,
        from_position=from_position,
        landing_position=landing,
        final_position=final,
        special_event=special,
        message="You won!" if won else message,
    )
