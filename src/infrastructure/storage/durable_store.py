#!/usr/bin/env python3
"""
MongoDB Durable Store

Read-only adapter over the platform's MongoDB user records, used by the cache
facade as its last-resort tier.

STAGE-2.6: Durable store fallback

Architectural Decision: motor (async MongoDB driver)
- Non-blocking reads on the service's event loop
- Short server selection timeout so a down database degrades quickly

Author: System Architect
Date: 2025-12-13
"""

from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from src.core.config.settings import Settings, get_settings
from src.core.exceptions import DurableStoreUnavailableError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


def _as_object_id(record_id: str) -> ObjectId | str:
    """Mongo ids are ObjectIds when they parse as one, plain strings otherwise."""
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return record_id


class MongoDurableStore:
    """
    ``DurableStore`` backed by MongoDB.

    Usage:
        store = MongoDurableStore(settings)
        user = await store.find_by_id("users", "64b7f0c2e4b0a1a2b3c4d5e6")
        await store.close()
    """

    def __init__(self, settings: Settings | None = None, client: AsyncIOMotorClient | None = None):
        self._settings = settings or get_settings()
        mongo = self._settings.mongo
        self._client = client or AsyncIOMotorClient(
            mongo.MONGO_URI, serverSelectionTimeoutMS=mongo.MONGO_TIMEOUT_MS
        )
        self._db = self._client[mongo.MONGO_DATABASE]

    async def find_by_id(self, collection: str, record_id: str) -> dict[str, Any] | None:
        try:
            record = await self._db[collection].find_one({"_id": _as_object_id(record_id)})
        except PyMongoError as e:
            logger.error(
                "Durable store lookup failed",
                stage="2.6",
                collection=collection,
                record_id=record_id,
                error=str(e),
            )
            raise DurableStoreUnavailableError.from_exception(
                e, collection=collection, record_id=record_id
            ) from e

        if record is not None and isinstance(record.get("_id"), ObjectId):
            record["_id"] = str(record["_id"])
        return record

    async def exists_by_id(self, collection: str, record_id: str) -> bool:
        try:
            record = await self._db[collection].find_one(
                {"_id": _as_object_id(record_id)}, projection={"_id": 1}
            )
        except PyMongoError as e:
            raise DurableStoreUnavailableError.from_exception(
                e, collection=collection, record_id=record_id
            ) from e
        return record is not None

    async def ping(self) -> bool:
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    async def close(self) -> None:
        self._client.close()
        logger.info("MongoDB client closed", stage="2.6")
