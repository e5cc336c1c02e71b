"""
Durable Store Protocol

This module defines the protocol the cache facade uses to reach the durable
record store behind its memory and remote tiers.

Architectural Decision: Protocol-based abstraction
- The facade depends on two read operations only (find-by-id, exists-by-id)
- Production uses MongoDB (motor); tests use an in-memory dict
- Writes are intentionally absent: the durable tier is a read-only fallback

Author: System Architect
Date: 2025-12-08
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DurableStore(Protocol):
    """
    Read-only, id-keyed access to durable records.

    Implementations:
    - MongoDurableStore: Production MongoDB store
    - InMemoryDurableStore: Tests

    Implementations raise ``DurableStoreUnavailableError`` when the store
    cannot be reached and return ``None`` / ``False`` for unknown ids.
    """

    async def find_by_id(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """
        Fetch one record by primary key.

        Args:
            collection: Collection (table) name
            record_id: Record identifier

        Returns:
            The record as a dict, or None if not found
        """
        ...

    async def exists_by_id(self, collection: str, record_id: str) -> bool:
        """
        Check whether a record exists without loading it.

        Args:
            collection: Collection (table) name
            record_id: Record identifier
        """
        ...

    async def ping(self) -> bool:
        """Return True if the store answers."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
