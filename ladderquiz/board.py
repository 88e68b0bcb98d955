"""Board topology: layout generation plus hazard/shortcut/quiz lookups.

A board is generated once per game from the reference `BoardCatalog` and stored
inside the game document; every lookup here reads that stored board, so answering
a quiz never depends on the catalog still being loaded.
"""

from __future__ import annotations

from ladderquiz.api.models import Board, Hazard, Quiz, QuizPrompt, Shortcut
from ladderquiz.assets.registry import BoardCatalog


def generate_board(*, catalog: BoardCatalog, size: int = 100) -> Board:
    """Build a board of `size` tiles from the catalog.

    Catalog edges that start or end beyond `size` are left out.
    """

    if size < 2:
        raise ValueError("Board size must be at least 2")

    hazards = [
        Hazard(
            head=h.head,
            tail=h.tail,
            quiz=(
                Quiz(
                    professor=h.quiz.professor,
                    prompt=h.quiz.prompt,
                    options=dict(h.quiz.options),
                    correct_option=h.quiz.correct_option,
                )
                if h.quiz is not None
                else None
            ),
        )
        for h in catalog.hazards
        if h.head <= size
    ]
    shortcuts = [Shortcut(bottom=s.bottom, top=s.top) for s in catalog.shortcuts if s.top <= size]

    return Board(size=size, hazards=hazards, shortcuts=shortcuts)


def hazard_at(board: Board, tile: int) -> Hazard | None:
    return next((h for h in board.hazards if h.head == tile), None)


def hazard_destination(board: Board, tile: int) -> int | None:
    hazard = hazard_at(board, tile)
    return hazard.tail if hazard is not None else None


def shortcut_destination(board: Board, tile: int) -> int | None:
    return next((s.top for s in board.shortcuts if s.bottom == tile), None)


def quiz_for(board: Board, tile: int) -> Quiz | None:
    hazard = hazard_at(board, tile)
    return hazard.quiz if hazard is not None else None


def quiz_prompt_for(board: Board, tile: int) -> QuizPrompt | None:
    quiz = quiz_for(board, tile)
    if quiz is None:
        return None
    return QuizPrompt(tile=tile, professor=quiz.professor, prompt=quiz.prompt, options=dict(quiz.options))


def check_answer(board: Board, tile: int, option: str) -> bool:
    """Exact, case-sensitive match against the quiz's correct option label."""

    quiz = quiz_for(board, tile)
    return quiz is not None and quiz.correct_option == option
