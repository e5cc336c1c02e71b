"""
Test Fixtures Package

Shared test doubles: in-memory Redis, in-memory durable store and a manual
clock.
"""

from .clock import ManualClock
from .durable_factory import InMemoryDurableStore
from .redis_factory import FakePipeline, FakeRedis

__all__ = ["FakePipeline", "FakeRedis", "InMemoryDurableStore", "ManualClock"]
