"""
Core Module

Foundational components: configuration, logging, exceptions and events.
"""

from .events import EventBus
from .exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    ConfigurationError,
    DurableStoreUnavailableError,
    InvalidResourceError,
    OversizedValueError,
    PlatformBaseError,
    RateLimitExceededError,
    ResourceError,
    ResourceReleaseError,
    StorageError,
)
from .logging import (
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    set_request_id,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "set_request_id",
    "get_request_id",
    "clear_request_id",
    "log_stage",
    "EventBus",
    "PlatformBaseError",
    "ConfigurationError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "OversizedValueError",
    "StorageError",
    "DurableStoreUnavailableError",
    "RateLimitExceededError",
    "ResourceError",
    "InvalidResourceError",
    "ResourceReleaseError",
]
