"""
Redis Test Factory

In-memory stand-in for ``redis.asyncio.Redis`` covering the commands the
service uses: strings with TTLs, sorted sets, SCAN and MULTI/EXEC pipelines.

A pipeline's ``execute()`` applies all queued commands without yielding to the
event loop, which gives it the same all-or-nothing visibility as MULTI/EXEC
for concurrent coroutines.

Set ``fail_with`` to an exception instance to make every command raise it.
"""

import fnmatch
import time
from collections.abc import Callable
from typing import Any

from redis.exceptions import ConnectionError as RedisConnectionError


def _score_bound(value: Any) -> float:
    if isinstance(value, str):
        if value in ("-inf", "+inf", "inf"):
            return float(value)
        if value.startswith("("):
            raise NotImplementedError("exclusive bounds are not supported by FakeRedis")
    return float(value)


class FakePipeline:
    """Queues commands and applies them in one step on ``execute()``."""

    def __init__(self, redis: "FakeRedis", transaction: bool = True):
        self._redis = redis
        self.transaction = transaction
        self._queue: list[tuple[str, tuple, dict]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._queue.clear()

    def __getattr__(self, name: str):
        if name.startswith("_") or not hasattr(self._redis, f"_do_{name}"):
            raise AttributeError(name)

        def queue(*args, **kwargs) -> "FakePipeline":
            self._queue.append((name, args, kwargs))
            return self

        return queue

    async def execute(self) -> list[Any]:
        self._redis._check_failure()
        queued, self._queue = self._queue, []
        self._redis.executed_pipelines += 1
        return [getattr(self._redis, f"_do_{name}")(*args, **kwargs) for name, args, kwargs in queued]


class FakeRedis:
    """
    Minimal async Redis double.

    Args:
        clock: Seconds-based clock used for key expiry (defaults to monotonic)
    """

    def __init__(self, clock: Callable[[], float] | None = None):
        self.strings: dict[str, str] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.expiry: dict[str, float] = {}
        self.fail_with: Exception | None = None
        self.closed = False
        self.executed_pipelines = 0
        self._clock = clock or time.monotonic

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_failure(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and self._clock() >= deadline:
            self.strings.pop(key, None)
            self.zsets.pop(key, None)
            self.expiry.pop(key, None)

    def _exists(self, key: str) -> bool:
        self._purge(key)
        return key in self.strings or key in self.zsets

    def fail(self, error: Exception | None = None) -> None:
        self.fail_with = error or RedisConnectionError("Connection refused")

    def recover(self) -> None:
        self.fail_with = None

    # -------------------------------------------------------------------------
    # Command implementations (synchronous, shared with pipelines)
    # -------------------------------------------------------------------------

    def _do_get(self, key: str) -> str | None:
        self._purge(key)
        return self.strings.get(key)

    def _do_set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self.zsets.pop(key, None)
        self.strings[key] = value if isinstance(value, str) else str(value)
        if ex:
            self.expiry[key] = self._clock() + ex
        else:
            self.expiry.pop(key, None)
        return True

    def _do_delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._exists(key):
                removed += 1
            self.strings.pop(key, None)
            self.zsets.pop(key, None)
            self.expiry.pop(key, None)
        return removed

    def _do_exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._exists(key))

    def _do_expire(self, key: str, seconds: int) -> bool:
        if not self._exists(key):
            return False
        self.expiry[key] = self._clock() + seconds
        return True

    def _do_zadd(self, key: str, mapping: dict[str, float]) -> int:
        self._purge(key)
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        return added

    def _do_zremrangebyscore(self, key: str, min_score: Any, max_score: Any) -> int:
        self._purge(key)
        zset = self.zsets.get(key)
        if not zset:
            return 0
        low, high = _score_bound(min_score), _score_bound(max_score)
        doomed = [member for member, score in zset.items() if low <= score <= high]
        for member in doomed:
            del zset[member]
        if not zset:
            self.zsets.pop(key, None)
        return len(doomed)

    def _do_zcard(self, key: str) -> int:
        self._purge(key)
        return len(self.zsets.get(key, {}))

    def _do_zcount(self, key: str, min_score: Any, max_score: Any) -> int:
        self._purge(key)
        low, high = _score_bound(min_score), _score_bound(max_score)
        return sum(1 for score in self.zsets.get(key, {}).values() if low <= score <= high)

    def _do_zrange(self, key: str, start: int, end: int, withscores: bool = False) -> list:
        self._purge(key)
        ordered = sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
        stop = len(ordered) if end == -1 else end + 1
        window = ordered[start:stop]
        if withscores:
            return [(member, score) for member, score in window]
        return [member for member, _ in window]

    # -------------------------------------------------------------------------
    # Async client surface
    # -------------------------------------------------------------------------

    async def ping(self) -> bool:
        self._check_failure()
        return True

    async def aclose(self) -> None:
        self.closed = True

    async def get(self, key):
        self._check_failure()
        return self._do_get(key)

    async def set(self, key, value, ex=None):
        self._check_failure()
        return self._do_set(key, value, ex=ex)

    async def delete(self, *keys):
        self._check_failure()
        return self._do_delete(*keys)

    async def exists(self, *keys):
        self._check_failure()
        return self._do_exists(*keys)

    async def expire(self, key, seconds):
        self._check_failure()
        return self._do_expire(key, seconds)

    async def zadd(self, key, mapping):
        self._check_failure()
        return self._do_zadd(key, mapping)

    async def zremrangebyscore(self, key, min_score, max_score):
        self._check_failure()
        return self._do_zremrangebyscore(key, min_score, max_score)

    async def zcard(self, key):
        self._check_failure()
        return self._do_zcard(key)

    async def zcount(self, key, min_score, max_score):
        self._check_failure()
        return self._do_zcount(key, min_score, max_score)

    async def zrange(self, key, start, end, withscores=False):
        self._check_failure()
        return self._do_zrange(key, start, end, withscores=withscores)

    async def scan_iter(self, match: str | None = None, count: int | None = None):
        self._check_failure()
        for key in list(self.strings) + list(self.zsets):
            if self._exists(key) and (match is None or fnmatch.fnmatchcase(key, match)):
                yield key

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self, transaction=transaction)
