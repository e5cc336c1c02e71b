"""
Exception Module

Structured exception hierarchy for the caching, rate limiting and resource
lifecycle service. Exceptions are organized by theme.

Module Structure:
-----------------
- **base.py**: PlatformBaseError base class + ConfigurationError
- **cache.py**: Cache tier and durable store exceptions
- **rate_limit.py**: Rate limiting exceptions
- **resource.py**: Resource registry exceptions

Usage:
------
```python
from src.core.exceptions import CacheConnectionError, RateLimitExceededError
from src.core.exceptions.resource import ResourceReleaseError
```

Author: System Architect
Date: 2025-12-08
"""

from src.core.exceptions.base import ConfigurationError, PlatformBaseError
from src.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    DurableStoreUnavailableError,
    OversizedValueError,
    StorageError,
)
from src.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError
from src.core.exceptions.resource import (
    InvalidResourceError,
    ResourceError,
    ResourceReleaseError,
)

__all__ = [
    # Base
    "PlatformBaseError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "OversizedValueError",
    # Storage
    "StorageError",
    "DurableStoreUnavailableError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
    # Resource
    "ResourceError",
    "InvalidResourceError",
    "ResourceReleaseError",
]
