#!/usr/bin/env python3
"""
Typed Publish/Subscribe Channel

State changes in the resource registry (and anything else that wants to
announce them) are published as small frozen dataclasses. Subscribers register
per event class, so a handler for ``ResourceRegistered`` can never be handed a
``MemoryThresholdExceeded`` by a typo in an event name.

Delivery rules:
    - Handlers run in subscription order, synchronously or awaited when they
      return an awaitable.
    - A handler that raises is logged and skipped; publishers never see it.
    - Subscribing to a base class receives every subclass event.

Author: System Architect
Date: 2025-12-14
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from src.core.config.constants import Stage
from src.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


# =============================================================================
# EVENT TYPES
# =============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """Base class of every published event."""

    occurred_at: datetime = field(default_factory=_utcnow, kw_only=True)


@dataclass(frozen=True)
class ResourceRegistered(Event):
    resource_id: str
    resource_type: str
    priority: str


@dataclass(frozen=True)
class ResourceUnregistered(Event):
    resource_id: str
    resource_type: str


@dataclass(frozen=True)
class ResourceDeactivated(Event):
    resource_id: str


@dataclass(frozen=True)
class ResourceCleanupFailed(Event):
    resource_id: str
    error: str


@dataclass(frozen=True)
class CleanupCompleted(Event):
    cleaned: int
    trigger: str


@dataclass(frozen=True)
class MemoryThresholdExceeded(Event):
    memory_usage: int
    threshold: int


@dataclass(frozen=True)
class ShutdownCompleted(Event):
    released: int


# =============================================================================
# BUS
# =============================================================================

E = TypeVar("E", bound=Event)
Handler = Callable[[Any], Awaitable[None] | None]


class EventBus:
    """
    In-process typed publish/subscribe channel.

    Usage:
        bus = EventBus()
        unsubscribe = bus.subscribe(ResourceRegistered, on_registered)
        await bus.publish(ResourceRegistered("res_1", "timer", "low"))
        unsubscribe()
    """

    def __init__(self) -> None:
        self._handlers: dict[type[Event], list[Handler]] = {}

    def subscribe(self, event_type: type[E], handler: Callable[[E], Awaitable[None] | None]) -> Callable[[], None]:
        """
        Register ``handler`` for ``event_type`` and its subclasses.

        Returns:
            A zero-argument callable that removes the subscription.
        """
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscriber_count(self, event_type: type[Event]) -> int:
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: Event) -> int:
        """
        Deliver ``event`` to every matching handler.

        Returns:
            Number of handlers that completed without raising.
        """
        delivered = 0
        for event_type in type(event).__mro__:
            for handler in list(self._handlers.get(event_type, ())):
                try:
                    result = handler(event)
                    if inspect.isawaitable(result):
                        await result
                    delivered += 1
                except Exception as e:
                    log_stage(
                        logger,
                        Stage.EVENTS,
                        "Event handler failed",
                        level="error",
                        event_type=type(event).__name__,
                        handler=getattr(handler, "__qualname__", repr(handler)),
                        error=str(e),
                    )
            if event_type is Event:
                break
        return delivered

    def clear(self) -> None:
        self._handlers.clear()
