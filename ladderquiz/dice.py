from __future__ import annotations

import random
from typing import Protocol


class DieLike(Protocol):
    def roll(self) -> int: ...


class Die:
    """Six-sided die. Pass a seeded `random.Random` for reproducible rolls."""

    def __init__(self, rng: random.Random | None = None, *, sides: int = 6) -> None:
        if sides < 1:
            raise ValueError("A die needs at least one side")
        self._rng = rng if rng is not None else random.SystemRandom()
        self.sides = sides

    def roll(self) -> int:
        return self._rng.randint(1, self.sides)
