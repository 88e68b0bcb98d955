from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import redis
from redis.exceptions import LockNotOwnedError

from ladderquiz.errors import GameBusy
from ladderquiz.settings import get_settings

logger = logging.getLogger(__name__)


@contextmanager
def keyed_lock(
    *,
    r: redis.Redis,
    key: str,
    ttl_ms: int | None = None,
    wait_ms: int | None = None,
    retry_ms: int = 5,
) -> Iterator[None]:
    """Exclusive section keyed in Redis.

    Waiters poll until the holder releases or `wait_ms` elapses, then fail with GameBusy.
    The TTL bounds how long a crashed holder can block everyone else.
    """

    settings = get_settings()
    ttl_ms = settings.lock_ttl_ms if ttl_ms is None else ttl_ms
    wait_ms = settings.lock_wait_ms if wait_ms is None else wait_ms

    lock = r.lock(key, timeout=ttl_ms / 1000, sleep=retry_ms / 1000, blocking_timeout=wait_ms / 1000)
    if not lock.acquire():
        raise GameBusy("Game is busy")

    try:
        yield
    finally:
        try:
            lock.release()
        except LockNotOwnedError:
            # Expired mid-section; whoever holds it now keeps it.
            logger.warning("lock %s expired before release", key)


def game_lock(*, r: redis.Redis, game_id: str, ttl_ms: int | None = None, wait_ms: int | None = None):
    return keyed_lock(r=r, key=f"lock:game:{game_id}", ttl_ms=ttl_ms, wait_ms=wait_ms)


def room_lock(*, r: redis.Redis, room_id: str, ttl_ms: int | None = None, wait_ms: int | None = None):
    return keyed_lock(r=r, key=f"lock:room:{room_id}", ttl_ms=ttl_ms, wait_ms=wait_ms)
