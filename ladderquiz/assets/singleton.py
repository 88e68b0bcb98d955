from __future__ import annotations

from pathlib import Path

from ladderquiz.assets.registry import BoardCatalog, load_board_catalog


_CATALOG: BoardCatalog | None = None


def init_catalog(*, project_root: Path) -> BoardCatalog:
    """Load the board catalog once and cache it.

    Safe to call multiple times; subsequent calls return the already loaded instance.
    """

    global _CATALOG
    if _CATALOG is None:
        _CATALOG = load_board_catalog(root=project_root)
    return _CATALOG


def reset_catalog_for_tests() -> None:
    global _CATALOG
    _CATALOG = None


def get_catalog() -> BoardCatalog:
    if _CATALOG is None:
        raise RuntimeError("Board catalog not initialized. Call init_catalog() at startup.")
    return _CATALOG
