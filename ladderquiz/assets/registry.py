from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path


class AssetLoadError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class QuizSpec:
    professor: str
    prompt: str
    # Ordered (label, text) pairs, e.g. (("A", "x=4"), ("B", "x=3")).
    options: tuple[tuple[str, str], ...]
    correct_option: str


@dataclass(frozen=True, slots=True)
class HazardSpec:
    head: int
    tail: int
    quiz: QuizSpec | None = None


@dataclass(frozen=True, slots=True)
class ShortcutSpec:
    bottom: int
    top: int


@dataclass(frozen=True, slots=True)
class BoardCatalog:
    """Reference layout every board is generated from.

    Hazards ("professors") drop a player from `head` to `tail`, optionally after a quiz.
    Shortcuts ("bullies") lift a player from `bottom` to `top`.
    """

    hazards: tuple[HazardSpec, ...]
    shortcuts: tuple[ShortcutSpec, ...]

    @staticmethod
    def from_rows(*, hazards: list[HazardSpec], shortcuts: list[ShortcutSpec]) -> "BoardCatalog":
        heads: set[int] = set()
        for h in hazards:
            if h.head in heads:
                raise AssetLoadError(f"Duplicate hazard head: {h.head}")
            if h.tail >= h.head or h.tail < 0:
                raise AssetLoadError(f"Hazard at {h.head} must drop to a lower tile (got {h.tail})")
            if h.quiz is not None:
                labels = [label for label, _ in h.quiz.options]
                if len(set(labels)) != len(labels):
                    raise AssetLoadError(f"Duplicate quiz option label for hazard {h.head}")
                if h.quiz.correct_option not in labels:
                    raise AssetLoadError(
                        f"Quiz for hazard {h.head} has correct option {h.quiz.correct_option!r} not among {labels}"
                    )
            heads.add(h.head)

        bottoms: set[int] = set()
        for s in shortcuts:
            if s.bottom in bottoms:
                raise AssetLoadError(f"Duplicate shortcut bottom: {s.bottom}")
            if s.top <= s.bottom or s.bottom < 1:
                raise AssetLoadError(f"Shortcut at {s.bottom} must lead to a higher tile (got {s.top})")
            if s.bottom in heads:
                raise AssetLoadError(f"Tile {s.bottom} is both a hazard head and a shortcut bottom")
            bottoms.add(s.bottom)

        return BoardCatalog(hazards=tuple(hazards), shortcuts=tuple(shortcuts))


def _read_csv_rows(path: Path) -> list[list[str]]:
    try:
        with path.open(encoding="utf-8-sig", newline="") as f:
            rows = [[c.strip() for c in row if c is not None] for row in csv.reader(f)]
    except FileNotFoundError as e:
        raise AssetLoadError(f"Asset file not found: {path}") from e

    return [row for row in rows if any(cell.strip() for cell in row)]


def _expect_header(path: Path, rows: list[list[str]], expected: list[str]) -> None:
    if not rows:
        raise AssetLoadError(f"Empty CSV: {path}")
    header = [c.casefold() for c in rows[0]]
    if header[: len(expected)] != expected:
        raise AssetLoadError(f"Unexpected header in {path}: {rows[0]}")


def _int(path: Path, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise AssetLoadError(f"Expected a tile number in {path}, got {value!r}") from e


def load_quiz_options_csv(path: Path) -> dict[int, list[tuple[str, str]]]:
    rows = _read_csv_rows(path)
    _expect_header(path, rows, ["head", "label", "text"])

    out: dict[int, list[tuple[str, str]]] = {}
    for row in rows[1:]:
        if len(row) < 3:
            continue
        out.setdefault(_int(path, row[0]), []).append((row[1], row[2]))
    return out


def load_hazards_csv(path: Path, *, options_by_head: dict[int, list[tuple[str, str]]]) -> list[HazardSpec]:
    rows = _read_csv_rows(path)
    _expect_header(path, rows, ["head", "tail", "professor", "prompt", "correct_option"])

    out: list[HazardSpec] = []
    for row in rows[1:]:
        row = row + [""] * (5 - len(row))
        head, tail = _int(path, row[0]), _int(path, row[1])
        professor, prompt, correct = row[2], row[3], row[4]

        # A hazard without a prompt drops the player unconditionally.
        quiz = None
        if prompt:
            options = options_by_head.get(head)
            if not options:
                raise AssetLoadError(f"Hazard {head} has a quiz but no options")
            quiz = QuizSpec(professor=professor, prompt=prompt, options=tuple(options), correct_option=correct)
        out.append(HazardSpec(head=head, tail=tail, quiz=quiz))
    return out


def load_shortcuts_csv(path: Path) -> list[ShortcutSpec]:
    rows = _read_csv_rows(path)
    _expect_header(path, rows, ["bottom", "top"])
    return [ShortcutSpec(bottom=_int(path, row[0]), top=_int(path, row[1])) for row in rows[1:] if len(row) >= 2]


def load_board_catalog(*, root: Path) -> BoardCatalog:
    assets_dir = root / "assets"
    options = load_quiz_options_csv(assets_dir / "quiz_options.csv")
    return BoardCatalog.from_rows(
        hazards=load_hazards_csv(assets_dir / "hazards.csv", options_by_head=options),
        shortcuts=load_shortcuts_csv(assets_dir / "shortcuts.csv"),
    )
