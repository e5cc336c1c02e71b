#!/usr/bin/env python3
"""
Remote Tier

Redis-backed cache tier shared by every worker.

STAGE-2.2: Remote tier

Values are serialized with orjson and stored under ``cache:{key}`` so the
tier can be cleared without touching rate limit counters. When the facade asks
for compression the serialized bytes are zlib-compressed and wrapped in an
envelope that ``get`` recognises and unwraps:

    {"__compressed": true, "data": "<base64 zlib payload>"}

Errors are not handled here; the facade decides how to degrade.

Author: System Architect
Date: 2025-12-13
"""

import base64
import zlib
from typing import Any

import orjson

from src.core.config.constants import COMPRESSED_MARKER
from src.core.logging.logger import get_logger
from src.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

REMOTE_KEY_PREFIX = "cache:"


def encode_value(value: Any, compress: bool = False) -> str:
    """Serialize ``value`` for storage, optionally inside a compressed envelope."""
    raw = orjson.dumps(value)
    if not compress:
        return raw.decode("utf-8")
    payload = base64.b64encode(zlib.compress(raw)).decode("ascii")
    return orjson.dumps({COMPRESSED_MARKER: True, "data": payload}).decode("utf-8")


def decode_value(stored: str | bytes) -> Any:
    """Reverse ``encode_value``."""
    parsed = orjson.loads(stored)
    if isinstance(parsed, dict) and parsed.get(COMPRESSED_MARKER) is True and "data" in parsed:
        return orjson.loads(zlib.decompress(base64.b64decode(parsed["data"])))
    return parsed


class RemoteTier:
    """
    Cache tier over ``RedisClient``.

    Usage:
        tier = RemoteTier(redis_client)
        await tier.set("user:42:profile", {"name": "A"}, ttl_seconds=1800)
        value = await tier.get("user:42:profile")
    """

    def __init__(self, redis_client: RedisClient, prefix: str = REMOTE_KEY_PREFIX):
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any | None:
        stored = await self._redis.get(self._key(key))
        if stored is None:
            return None
        return decode_value(stored)

    async def set(self, key: str, value: Any, ttl_seconds: int, compress: bool = False) -> bool:
        encoded = encode_value(value, compress=compress)
        stored = await self._redis.set(self._key(key), encoded, ttl=ttl_seconds)
        logger.debug(
            "Remote tier write",
            stage="2.2",
            key=key,
            ttl=ttl_seconds,
            compressed=compress,
            stored_bytes=len(encoded),
        )
        return stored

    async def delete(self, key: str) -> bool:
        return await self._redis.delete(self._key(key)) > 0

    async def exists(self, key: str) -> bool:
        return await self._redis.exists(self._key(key)) > 0

    async def clear(self) -> int:
        """Delete every key this tier owns."""
        keys = await self._redis.scan_keys(f"{self._prefix}*")
        if not keys:
            return 0
        return await self._redis.delete(*keys)

    async def health_check(self) -> dict[str, Any]:
        return await self._redis.health_check()
