"""
Sliding Window Rate Limiter

Provides distributed rate limiting backed by Redis sorted sets.

Features:
- Exact sliding window: every admitted or rejected hit is a sorted-set member
  scored by its arrival time in milliseconds
- One MULTI/EXEC round trip per check, so concurrent checks on one key
  serialise inside Redis
- Fail-open: a Redis failure admits the request and logs a warning
- Named presets for the platform's endpoint families (DEFAULT_CONFIGS)

Algorithm (per check):
1. ZREMRANGEBYSCORE key 0 (now - window)   drop hits that left the window
2. ZADD key {"<now>-<nonce>": now}         record this hit
3. ZCARD key                               hits in the window, this one included
4. ZRANGE key 0 0 WITHSCORES               oldest hit, for the reset time
5. EXPIRE key ceil(window / 1000)          idle keys disappear on their own

Rejected hits are recorded too, so a client hammering a closed window keeps
it closed.
"""

import math
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from fastapi import Request
from redis.exceptions import RedisError
from slowapi.util import get_remote_address

from src.core.clock import Clock, epoch_ms
from src.core.config.constants import REDIS_KEY_RATE_LIMIT, Stage
from src.core.exceptions import CacheError
from src.core.logging.logger import get_logger, log_stage
from src.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


@dataclass(frozen=True)
class RateLimitConfig:
    """
    A quota: at most ``max_requests`` hits per ``window_ms`` for one key.

    ``key_generator`` overrides the default caller/route key and
    ``on_limit_reached`` is called (never awaited) when a request is rejected.
    """

    window_ms: int
    max_requests: int
    message: str = "Too many requests, please try again later."
    name: str = "custom"
    key_generator: Callable[[Request], str] | None = field(default=None, compare=False)
    on_limit_reached: Callable[[Request], None] | None = field(default=None, compare=False)

    def __post_init__(self):
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if self.max_requests < 0:
            raise ValueError("max_requests must not be negative")


@dataclass(frozen=True)
class RateLimitInfo:
    total_hits: int
    total_hits_in_window: int
    remaining_points: int
    ms_before_next: float
    is_first_in_window: bool

    @property
    def allowed(self) -> bool:
        return self.remaining_points >= 0


DEFAULT_CONFIGS: dict[str, RateLimitConfig] = {
    "analytics": RateLimitConfig(
        name="analytics",
        window_ms=MINUTE_MS,
        max_requests=30,
        message="Too many analytics requests. Please wait before trying again.",
    ),
    "enhanced_analytics": RateLimitConfig(
        name="enhanced_analytics",
        window_ms=MINUTE_MS,
        max_requests=15,
        message="Too many enhanced analytics requests. These are resource-intensive operations.",
    ),
    "messaging": RateLimitConfig(
        name="messaging",
        window_ms=MINUTE_MS,
        max_requests=50,
        message="Too many messaging requests. Please slow down.",
    ),
    "message_creation": RateLimitConfig(
        name="message_creation",
        window_ms=MINUTE_MS,
        max_requests=10,
        message="Too many messages sent. Please wait before sending more.",
    ),
    "conversation_creation": RateLimitConfig(
        name="conversation_creation",
        window_ms=HOUR_MS,
        max_requests=5,
        message="Too many conversations created. Please wait before creating more.",
    ),
    "activities": RateLimitConfig(
        name="activities",
        window_ms=MINUTE_MS,
        max_requests=100,
        message="Too many activity requests. Please slow down.",
    ),
    "bulk_operations": RateLimitConfig(
        name="bulk_operations",
        window_ms=MINUTE_MS,
        max_requests=5,
        message="Too many bulk operations. These are resource-intensive.",
    ),
    "search": RateLimitConfig(
        name="search",
        window_ms=MINUTE_MS,
        max_requests=20,
        message="Too many search requests. Please wait before searching again.",
    ),
    "file_upload": RateLimitConfig(
        name="file_upload",
        window_ms=MINUTE_MS,
        max_requests=10,
        message="Too many file uploads. Please wait before uploading more files.",
    ),
    "general": RateLimitConfig(
        name="general",
        window_ms=MINUTE_MS,
        max_requests=100,
        message="Too many requests. Please slow down.",
    ),
}


def resolve_config(name_or_config: str | RateLimitConfig, **overrides) -> RateLimitConfig:
    """
    Look up a preset by name (or take a config as is) and apply overrides.

    Raises:
        KeyError: Unknown preset name
    """
    if isinstance(name_or_config, RateLimitConfig):
        base = name_or_config
    else:
        try:
            base = DEFAULT_CONFIGS[name_or_config]
        except KeyError:
            raise KeyError(f"Unknown rate limit config: {name_or_config}") from None

    if not overrides:
        return base
    return replace(base, **overrides)


def _request_user_id(request: Request) -> str | None:
    user = getattr(request.state, "user", None)
    if not user:
        return None
    for attr in ("user_id", "teacher_id", "student_id"):
        value = user.get(attr) if isinstance(user, dict) else getattr(user, attr, None)
        if value:
            return str(value)
    return None


class SlidingWindowRateLimiter:
    """
    Redis sorted-set sliding window limiter.

    STAGE-3.1: Rate limit check

    Usage:
        limiter = SlidingWindowRateLimiter(redis_client)
        config = DEFAULT_CONFIGS["search"]
        info = await limiter.check(limiter.generate_key(request, config), config)
        if not info.allowed:
            ...
    """

    def __init__(self, redis_client: RedisClient, metrics=None, clock: Clock = epoch_ms):
        self._redis = redis_client
        self._metrics = metrics
        self._clock = clock

    def generate_key(self, request: Request, config: RateLimitConfig) -> str:
        """
        Build the Redis key for a request.

        ``ratelimit:<custom>`` when the config has a key generator, otherwise
        ``ratelimit:<user id or client ip>:<route path>``.
        """
        if config.key_generator is not None:
            return f"{REDIS_KEY_RATE_LIMIT}:{config.key_generator(request)}"

        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or request.url.path
        return self.key_for(self.identify(request), endpoint)

    @staticmethod
    def identify(request: Request) -> str:
        """Authenticated user id, or the client address for anonymous callers."""
        return _request_user_id(request) or get_remote_address(request)

    @staticmethod
    def key_for(identifier: str, endpoint: str) -> str:
        return f"{REDIS_KEY_RATE_LIMIT}:{identifier}:{endpoint}"

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitInfo:
        """
        Record a hit for ``key`` and report the window state.

        Never raises; Redis failures admit the request.
        """
        started = time.perf_counter()
        now = self._clock()
        window_start = now - config.window_ms
        member = f"{int(now)}-{secrets.token_hex(6)}"

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, window_start)
                pipe.zadd(key, {member: now})
                pipe.zcard(key)
                pipe.zrange(key, 0, 0, withscores=True)
                pipe.expire(key, math.ceil(config.window_ms / 1000))
                _, _, count, oldest, _ = await pipe.execute()
        except (RedisError, CacheError, OSError) as e:
            log_stage(
                logger,
                Stage.RL_CHECK,
                "Rate limit check failed, allowing request",
                level="warning",
                key=key,
                error=str(e),
            )
            if self._metrics:
                self._metrics.record_rate_limit_decision(config.name, "fail_open")
            return RateLimitInfo(
                total_hits=0,
                total_hits_in_window=0,
                remaining_points=config.max_requests,
                ms_before_next=0,
                is_first_in_window=True,
            )

        info = RateLimitInfo(
            total_hits=count,
            total_hits_in_window=count,
            remaining_points=config.max_requests - count,
            ms_before_next=self._ms_before_next(oldest, now, config),
            is_first_in_window=count == 1,
        )

        if self._metrics:
            self._metrics.record_rate_limit_decision(
                config.name, "allowed" if info.allowed else "rejected"
            )
            self._metrics.record_rate_limit_duration(time.perf_counter() - started)

        if not info.allowed:
            log_stage(
                logger,
                Stage.RL_CHECK,
                "Rate limit exceeded",
                level="warning",
                key=key,
                config=config.name,
                limit=config.max_requests,
                hits=count,
            )
        return info

    async def status(self, key: str, config: RateLimitConfig) -> RateLimitInfo | None:
        """Window state for ``key`` without recording a hit; ``None`` on error."""
        now = self._clock()
        try:
            count = await self._redis.zcount(key, now - config.window_ms, now)
            oldest = await self._redis.zrange_withscores(key, 0, 0)
        except (RedisError, CacheError, OSError) as e:
            log_stage(
                logger, Stage.RL_CHECK, "Rate limit status failed", level="warning",
                key=key, error=str(e),
            )
            return None

        return RateLimitInfo(
            total_hits=count,
            total_hits_in_window=count,
            remaining_points=config.max_requests - count,
            ms_before_next=self._ms_before_next(oldest, now, config),
            is_first_in_window=count == 0,
        )

    async def reset(self, key: str) -> bool:
        """Forget every hit recorded for ``key``."""
        try:
            deleted = await self._redis.delete(key)
        except (CacheError, RedisError, OSError) as e:
            log_stage(
                logger, Stage.RL_RESET, "Rate limit reset failed", level="warning",
                key=key, error=str(e),
            )
            return False

        log_stage(logger, Stage.RL_RESET, "Rate limit reset", key=key, deleted=deleted)
        return deleted > 0

    @staticmethod
    def _ms_before_next(oldest, now: float, config: RateLimitConfig) -> float:
        if not oldest:
            return config.window_ms
        _, oldest_score = oldest[0]
        return max(0, config.window_ms - (now - float(oldest_score)))
