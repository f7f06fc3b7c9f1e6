import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Hashable, Optional
from django.conf import settings

import redis

logger = logging.getLogger(__name__)

_redis_client = None


def get_redis_client():
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    url = getattr(settings, "REDIS_URL", None) or getattr(settings, "CELERY_BROKER_URL", None)
    if not url or not str(url).startswith("redis://"):
        return None
    try:
        _redis_client = redis.Redis.from_url(url, decode_responses=True)
        # Try a ping to verify connectivity
        _redis_client.ping()
        return _redis_client
    except redis.RedisError as e:  # pragma: no cover
        logger.warning(f"Redis client init failed: {e}")
        _redis_client = None
        return None


def mark_once(key: str, ttl_seconds: int) -> bool:
    """Return True the first time ``key`` is seen within ``ttl_seconds``.

    Without Redis every call is treated as first-seen so callers proceed unchanged.
    """
    client = get_redis_client()
    if not client:
        return True
    try:
        return bool(client.set(key, "1", nx=True, ex=int(ttl_seconds)))
    except redis.RedisError as e:  # pragma: no cover
        logger.warning(f"Dedupe mark failed for {key}: {e}")
        return True


def forget(key: str) -> None:
    client = get_redis_client()
    if not client:
        return
    try:
        client.delete(key)
    except redis.RedisError as e:  # pragma: no cover
        logger.warning(f"Dedupe clear failed for {key}: {e}")


class KeyedLock:
    """Per-key asyncio lock (single-flight per key within one process).

    Locks are created on demand and dropped once no task holds or waits on them,
    so the registry never outlives the event loop that used it.

    Usage:
        locks = KeyedLock()
        async with locks.hold(key):
            ...
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_held(self, key: Hashable) -> bool:
        lock: Optional[asyncio.Lock] = self._locks.get(key)
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)
