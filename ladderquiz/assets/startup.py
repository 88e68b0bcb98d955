from __future__ import annotations

from ladderquiz.assets.singleton import init_catalog
from ladderquiz.settings import get_settings


def init_assets_for_app() -> None:
    # Defaults to the project root (two levels up from ladderquiz/assets/startup.py).
    init_catalog(project_root=get_settings().assets_dir)
