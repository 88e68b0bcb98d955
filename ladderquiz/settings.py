from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _project_root() -> Path:
    # ladderquiz/settings.py -> ladderquiz/ -> project root
    return Path(__file__).resolve().parents[1]


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str = "redis://localhost:6379/0"
    board_size: int = 100
    min_players: int = 2
    # Per-game lock: how long a holder may keep it, and how long a waiter queues for it.
    lock_ttl_ms: int = 5_000
    lock_wait_ms: int = 3_000
    # How long a committed move is remembered for idempotent retries.
    attempt_ttl_sec: int = 3_600
    log_level: str = "INFO"
    assets_dir: Path = _project_root()


def get_settings() -> Settings:
    env = os.environ
    defaults = Settings()
    return Settings(
        redis_url=env.get("REDIS_URL", defaults.redis_url),
        board_size=int(env.get("LADDERQUIZ_BOARD_SIZE", defaults.board_size)),
        min_players=int(env.get("LADDERQUIZ_MIN_PLAYERS", defaults.min_players)),
        lock_ttl_ms=int(env.get("LADDERQUIZ_LOCK_TTL_MS", defaults.lock_ttl_ms)),
        lock_wait_ms=int(env.get("LADDERQUIZ_LOCK_WAIT_MS", defaults.lock_wait_ms)),
        attempt_ttl_sec=int(env.get("LADDERQUIZ_ATTEMPT_TTL_SEC", defaults.attempt_ttl_sec)),
        log_level=env.get("LADDERQUIZ_LOG_LEVEL", defaults.log_level).upper(),
        assets_dir=Path(env.get("LADDERQUIZ_ASSETS_DIR", str(defaults.assets_dir))),
    )
