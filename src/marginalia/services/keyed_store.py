"""Short-lived key/value storage for ephemeral pipeline state.

Challenges live here rather than in SQL: they are written once, read once or
twice, and forgotten within minutes. Two backends share one small interface so
the captcha logic never cares where its records go.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import lru_cache
from threading import Lock
from typing import Protocol

import redis

from marginalia.core.settings import settings


class KeyedStore(Protocol):
    """Minimal TTL-aware key/value contract."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> None: ...

    def set_if_exists(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Overwrite ``key`` only while it is still present; False if it was gone."""
        ...

    def pop(self, key: str) -> str | None:
        """Atomically return and remove the value stored at ``key``."""
        ...


class MemoryStore:
    """In-process store guarded by a lock.

    Expiry is evaluated lazily on access. Keys nobody reads again are dropped in
    bulk once the store grows past ``purge_threshold`` entries.
    """

    def __init__(
        self,
        monotonic: Callable[[], float] = time.monotonic,
        purge_threshold: int = 1024,
    ) -> None:
        self._monotonic = monotonic
        self._purge_threshold = purge_threshold
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = Lock()

    def _live(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline <= self._monotonic():
            self._entries.pop(key, None)
            return None
        return value

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            self.delete(key)
            return
        with self._lock:
            now = self._monotonic()
            if len(self._entries) >= self._purge_threshold:
                self._purge_locked(now)
            self._entries[key] = (value, now + ttl_seconds)

    def set_if_exists(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._lock:
            if self._live(key) is None:
                return False
            if ttl_seconds <= 0:
                del self._entries[key]
            else:
                self._entries[key] = (value, self._monotonic() + ttl_seconds)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def pop(self, key: str) -> str | None:
        with self._lock:
            value = self._live(key)
            self._entries.pop(key, None)
            return value

    def _purge_locked(self, now: float) -> int:
        stale = [key for key, (_, deadline) in self._entries.items() if deadline <= now]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def purge_expired(self) -> int:
        """Remove every expired key and return how many were dropped."""
        with self._lock:
            return self._purge_locked(self._monotonic())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisStore:
    """Redis-backed store; expiry is delegated to Redis key TTLs."""

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisStore:
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> str | None:
        value = self._redis.get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            self._redis.delete(key)
            return
        self._redis.set(key, value, ex=int(ttl_seconds))

    def set_if_exists(self, key: str, value: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return bool(self._redis.delete(key))
        # SET XX only writes when the key exists; a consumed challenge stays gone.
        return bool(self._redis.set(key, value, ex=int(ttl_seconds), xx=True))

    def delete(self, key: str) -> None:
        self._redis.delete(key)

    def pop(self, key: str) -> str | None:
        # GETDEL is a single command, so two consumers can never both see the value.
        value = self._redis.getdel(key)
        return None if value is None else str(value)


_MEMORY_STORE = MemoryStore()


@lru_cache(maxsize=4)
def _redis_store(url: str) -> RedisStore:
    return RedisStore.from_url(url)


def get_keyed_store() -> KeyedStore:
    """Return the challenge store selected by configuration."""
    if settings.challenge_store_backend == "redis":
        return _redis_store(settings.redis_url)
    return _MEMORY_STORE
