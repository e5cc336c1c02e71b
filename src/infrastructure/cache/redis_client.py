"""
Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API)
        ├── ConnectionManager (Connection lifecycle)
        ├── OperationExecutor (Command execution with error handling)
        └── HealthMonitor (Health checks and latency probes)

The client serves two consumers with different needs:
    - The remote cache tier uses plain string GET/SET/DEL/EXISTS with TTLs.
    - The sliding-window rate limiter uses sorted-set commands batched into a
      MULTI/EXEC pipeline (``pipeline(transaction=True)``).

Any redis-py asyncio compatible client can be injected instead of building a
pool from settings, which is how tests run against an in-memory stand-in.

Author: System Architect
Date: 2025-12-13
"""

import time
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from src.core.config.constants import Stage
from src.core.config.settings import Settings, get_settings
from src.core.exceptions import CacheConnectionError, CacheKeyError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Handles connection lifecycle and pooling
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Responsibility: Connection establishment, pooling, and cleanup.

    Pool Configuration:
    - Max connections: REDIS_MAX_CONNECTIONS
    - Socket timeout: REDIS_SOCKET_TIMEOUT
    - Health check interval: REDIS_HEALTH_CHECK_INTERVAL
    - Decode responses: True (strings, not bytes)
    """

    def __init__(self, settings: Settings, client: redis.Redis | None = None):
        """
        Initialize connection manager.

        Args:
            settings: Application settings
            client: Pre-built client (skips pool creation)
        """
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = client
        self._owns_client = client is None
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-REDIS.2: Connection establishment

        Returns:
            redis.Redis: Connected Redis client

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        try:
            if self._client is None:
                self._pool = ConnectionPool(
                    host=self._settings.redis.REDIS_HOST,
                    port=self._settings.redis.REDIS_PORT,
                    db=self._settings.redis.REDIS_DB,
                    password=self._settings.redis.REDIS_PASSWORD,
                    max_connections=self._settings.redis.REDIS_MAX_CONNECTIONS,
                    socket_connect_timeout=self._settings.redis.REDIS_SOCKET_CONNECT_TIMEOUT,
                    socket_timeout=self._settings.redis.REDIS_SOCKET_TIMEOUT,
                    retry_on_timeout=True,
                    health_check_interval=self._settings.redis.REDIS_HEALTH_CHECK_INTERVAL,
                    decode_responses=True,
                )
                self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()
            self._is_connected = True

            logger.info(
                "Redis connected successfully",
                stage="REDIS.2",
                host=self._settings.redis.REDIS_HOST,
                port=self._settings.redis.REDIS_PORT,
                max_connections=self._settings.redis.REDIS_MAX_CONNECTIONS,
            )
            return self._client

        except (ConnectionError, TimeoutError, OSError) as e:
            logger.error("Failed to connect to Redis", stage="REDIS.2", error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={
                    "host": self._settings.redis.REDIS_HOST,
                    "port": self._settings.redis.REDIS_PORT,
                },
            ) from e

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-REDIS.3: Connection cleanup

        Injected clients are left open; their owner closes them.
        """
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

        if self._pool:
            await self._pool.disconnect()
            self._pool = None

        self._is_connected = False
        logger.info("Redis disconnected", stage="REDIS.3")

    async def ping(self) -> bool:
        try:
            if self._client and self._is_connected:
                await self._client.ping()
                return True
        except (ConnectionError, TimeoutError, OSError):
            pass
        return False

    def get_client(self) -> redis.Redis | None:
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# Executes Redis commands with error handling and logging
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with consistent error handling.

    Responsibility: Command execution with error handling and logging.

    Error Handling Strategy:
    - Catch RedisError exceptions
    - Log error with context (stage, key, etc.)
    - Raise CacheKeyError with details, chaining the original
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    async def _run(self, operation: str, key: str, coro) -> Any:
        try:
            return await coro
        except RedisError as e:
            logger.error(
                f"Redis {operation} failed", stage=Stage.REDIS.value, key=key, error=str(e)
            )
            raise CacheKeyError(
                message=f"Redis {operation} failed: {e}",
                details={"key": key, "operation": operation},
            ) from e

    # -------------------------------------------------------------------------
    # String Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """
        Get value from Redis.

        STAGE-REDIS.GET: Redis GET operation
        """
        return await self._run("GET", key, self._redis.get(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Set value in Redis.

        STAGE-REDIS.SET: Redis SET operation

        Args:
            key: Redis key
            value: Value to set
            ttl: Time-to-live in seconds (optional)
        """
        result = await self._run("SET", key, self._redis.set(key, value, ex=ttl))
        return bool(result)

    async def delete(self, *keys: str) -> int:
        return await self._run("DEL", ",".join(keys), self._redis.delete(*keys))

    async def exists(self, *keys: str) -> int:
        return await self._run("EXISTS", ",".join(keys), self._redis.exists(*keys))

    async def expire(self, key: str, ttl: int) -> bool:
        return bool(await self._run("EXPIRE", key, self._redis.expire(key, ttl)))

    async def scan_keys(self, pattern: str) -> list[str]:
        """Collect keys matching ``pattern`` with SCAN (non-blocking)."""
        try:
            return [key async for key in self._redis.scan_iter(match=pattern, count=500)]
        except RedisError as e:
            logger.error("Redis SCAN failed", stage=Stage.REDIS.value, pattern=pattern, error=str(e))
            raise CacheKeyError(
                message=f"Redis SCAN failed: {e}", details={"pattern": pattern}
            ) from e

    # -------------------------------------------------------------------------
    # Sorted Set Operations
    # -------------------------------------------------------------------------

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        return await self._run("ZADD", key, self._redis.zadd(key, mapping))

    async def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int:
        return await self._run(
            "ZREMRANGEBYSCORE", key, self._redis.zremrangebyscore(key, min_score, max_score)
        )

    async def zcard(self, key: str) -> int:
        return await self._run("ZCARD", key, self._redis.zcard(key))

    async def zcount(self, key: str, min_score: float, max_score: float) -> int:
        return await self._run("ZCOUNT", key, self._redis.zcount(key, min_score, max_score))

    async def zrange_withscores(self, key: str, start: int, end: int) -> list[tuple[str, float]]:
        return await self._run(
            "ZRANGE", key, self._redis.zrange(key, start, end, withscores=True)
        )

    # -------------------------------------------------------------------------
    # Pipelines
    # -------------------------------------------------------------------------

    def pipeline(self, transaction: bool = True):
        """
        Create a pipeline for batch operations.

        With ``transaction=True`` the queued commands are wrapped in
        MULTI/EXEC and applied atomically.

        Usage:
            async with executor.pipeline() as pipe:
                pipe.zadd(key, {member: score})
                pipe.zcard(key)
                added, count = await pipe.execute()
        """
        return self._redis.pipeline(transaction=transaction)


# =============================================================================
# LAYER 3: HEALTH MONITORING
# Health checks and latency probes
# =============================================================================


class HealthMonitor:
    """
    Monitors Redis health and connection pool metrics.

    Metrics Tracked:
    - Connection status
    - Ping latency
    - Pool size
    """

    def __init__(self, connection_manager: ConnectionManager, settings: Settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def measure_latency(self) -> float:
        """
        Round-trip a PING and return its latency in milliseconds.

        Raises:
            CacheConnectionError: If the client is missing or the ping fails
        """
        client = self._conn_mgr.get_client()
        if client is None:
            raise CacheConnectionError("Redis client not initialized")
        start = time.perf_counter()
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            raise CacheConnectionError.from_exception(e, message="Redis ping failed") from e
        return (time.perf_counter() - start) * 1000

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on Redis connection.

        STAGE-REDIS.HEALTH: Redis health check

        Returns:
            Dict with health status and metrics
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "pool_size": 0,
            "ping_latency_ms": None,
        }

        try:
            health["ping_latency_ms"] = round(await self.measure_latency(), 2)
            pool = self._conn_mgr.get_pool()
            if pool:
                health["pool_size"] = pool.max_connections
        except CacheConnectionError as e:
            health["status"] = "unhealthy"
            health["error"] = e.message

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# Clean interface that coordinates all layers
# =============================================================================


class RedisClient:
    """
    Redis client with connection pooling and health monitoring.

    Usage:
        client = RedisClient(settings)
        await client.connect()

        await client.set("key", "value", ttl=60)
        value = await client.get("key")

        async with client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore("ratelimit:u1:/search", 0, cutoff)
            pipe.zadd("ratelimit:u1:/search", {member: now})
            pipe.zcard("ratelimit:u1:/search")
            results = await pipe.execute()

        await client.disconnect()
    """

    def __init__(self, settings: Settings | None = None, client: redis.Redis | None = None):
        """
        Initialize Redis client.

        STAGE-REDIS.1: Client initialization

        Args:
            settings: Application settings (defaults to global settings)
            client: Optional pre-built redis-py asyncio compatible client
        """
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings, client)
        self._executor: OperationExecutor | None = (
            OperationExecutor(client) if client is not None else None
        )
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)

        logger.info(
            "Redis client initialized",
            stage="REDIS.1",
            host=self._settings.redis.REDIS_HOST,
            port=self._settings.redis.REDIS_PORT,
            injected=client is not None,
        )

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        Raises:
            CacheConnectionError: If connection fails
        """
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client)

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()
        self._executor = None

    async def ping(self) -> bool:
        return await self._conn_mgr.ping()

    async def measure_latency(self) -> float:
        """Ping round-trip in milliseconds."""
        return await self._health_monitor.measure_latency()

    @property
    def is_connected(self) -> bool:
        return self._conn_mgr.is_connected()

    def _require_executor(self) -> OperationExecutor:
        if self._executor is None:
            raise CacheConnectionError("Redis client is not connected")
        return self._executor

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._require_executor().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        return await self._require_executor().set(key, value, ttl)

    async def delete(self, *keys: str) -> int:
        return await self._require_executor().delete(*keys)

    async def exists(self, *keys: str) -> int:
        return await self._require_executor().exists(*keys)

    async def expire(self, key: str, ttl: int) -> bool:
        return await self._require_executor().expire(key, ttl)

    async def scan_keys(self, pattern: str) -> list[str]:
        return await self._require_executor().scan_keys(pattern)

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        return await self._require_executor().zadd(key, mapping)

    async def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int:
        return await self._require_executor().zremrangebyscore(key, min_score, max_score)

    async def zcard(self, key: str) -> int:
        return await self._require_executor().zcard(key)

    async def zcount(self, key: str, min_score: float, max_score: float) -> int:
        return await self._require_executor().zcount(key, min_score, max_score)

    async def zrange_withscores(self, key: str, start: int, end: int) -> list[tuple[str, float]]:
        return await self._require_executor().zrange_withscores(key, start, end)

    def pipeline(self, transaction: bool = True):
        """Create a (transactional by default) pipeline."""
        return self._require_executor().pipeline(transaction=transaction)

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()
