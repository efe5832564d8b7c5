"""Expiring counter store for per-session, per-field retry tracking.

Keys are composite ``"{session_id}:{field}"`` strings. An entry that has not
been touched for ``ttl_seconds`` behaves exactly like a missing one, which
gives a returning user a fresh start instead of stale failure counts.

Two backends share the same async interface:
- InMemoryCounterStore: process-local dict, lazy expiry on access plus a
  sweep of every expired entry at most once per TTL interval.
- RedisCounterStore: INCR + EXPIRE, expiry handled by Redis itself.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from src.config import settings

logger = logging.getLogger(__name__)

_MAX_ERRORS_KEPT = 5


class CounterStore(Protocol):
    async def get_count(self, key: str) -> int: ...

    async def record_failure(self, key: str, error: str) -> int: ...

    async def reset(self, key: str) -> None: ...

    async def reset_session(self, session_id: str) -> None: ...

    async def recent_errors(self, key: str) -> list[str]: ...


@dataclass
class _Entry:
    count: int = 0
    errors: deque[str] = field(default_factory=lambda: deque(maxlen=_MAX_ERRORS_KEPT))
    last_updated: float = 0.0


class InMemoryCounterStore:
    """Dict-backed store. Not shared between worker processes."""

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.interview.retry_ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._last_sweep = clock()

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.last_updated > self._ttl:
            del self._entries[key]
            logger.debug("Validation context expired: %s", key)
            return None
        return entry

    async def get_count(self, key: str) -> int:
        entry = self._live(key)
        return entry.count if entry else 0

    async def record_failure(self, key: str, error: str) -> int:
        self._sweep()
        entry = self._live(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        entry.count += 1
        entry.errors.append(error)
        entry.last_updated = self._clock()
        return entry.count

    def _sweep(self) -> None:
        """Drop abandoned sessions' entries, which lazy expiry alone never revisits."""
        now = self._clock()
        if now - self._last_sweep < self._ttl:
            return
        self._last_sweep = now
        expired = [k for k, e in self._entries.items() if now - e.last_updated > self._ttl]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired validation contexts", len(expired))

    async def reset(self, key: str) -> None:
        self._entries.pop(key, None)

    async def reset_session(self, session_id: str) -> None:
        prefix = f"{session_id}:"
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    async def recent_errors(self, key: str) -> list[str]:
        entry = self._live(key)
        return list(entry.errors) if entry else []


class RedisCounterStore:
    """Redis-backed store, shared across processes.

    Uses INCR + EXPIRE like the rate limiter; every failure refreshes the TTL
    so expiry measures inactivity rather than age.
    """

    def __init__(self, redis: object, ttl_seconds: int | None = None, namespace: str = "validation") -> None:
        self._redis = redis
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.interview.retry_ttl_seconds
        self._ns = namespace

    def _count_key(self, key: str) -> str:
        return f"{self._ns}:{key}:count"

    def _errors_key(self, key: str) -> str:
        return f"{self._ns}:{key}:errors"

    async def get_count(self, key: str) -> int:
        raw = await self._redis.get(self._count_key(key))
        return int(raw) if raw is not None else 0

    async def record_failure(self, key: str, error: str) -> int:
        count_key = self._count_key(key)
        errors_key = self._errors_key(key)
        pipe = self._redis.pipeline()
        pipe.incr(count_key)
        pipe.expire(count_key, self._ttl)
        pipe.rpush(errors_key, error)
        pipe.ltrim(errors_key, -_MAX_ERRORS_KEPT, -1)
        pipe.expire(errors_key, self._ttl)
        results = await pipe.execute()
        return int(results[0])

    async def reset(self, key: str) -> None:
        await self._redis.delete(self._count_key(key), self._errors_key(key))

    async def reset_session(self, session_id: str) -> None:
        keys = [k async for k in self._redis.scan_iter(match=f"{self._ns}:{session_id}:*")]
        if keys:
            await self._redis.delete(*keys)
            logger.info("Reset %d validation keys for session %s", len(keys), session_id)

    async def recent_errors(self, key: str) -> list[str]:
        return list(await self._redis.lrange(self._errors_key(key), 0, -1))


def build_counter_store() -> CounterStore:
    """Create the backend selected by ``settings.interview.validation_store``."""
    if settings.interview.validation_store == "redis":
        from src.db.engine import get_redis

        logger.info("Using Redis validation store")
        return RedisCounterStore(get_redis())
    return InMemoryCounterStore()
