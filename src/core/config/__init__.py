"""
Configuration Module

This module provides centralized, type-safe configuration management
for the caching, rate limiting and resource lifecycle service.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, and magic numbers

Usage:
------
```python
from src.core.config import get_settings
from src.core.config.constants import CachePriority, ResourceType

settings = get_settings()

# Access nested settings
redis_host = settings.redis.REDIS_HOST
max_entries = settings.cache.CACHE_MEMORY_MAX_ENTRIES
```

Environment Variables:
---------------------
Configuration is loaded from environment variables or `.env` file:

```bash
REDIS_HOST=localhost
MONGO_URI=mongodb://localhost:27017
CACHE_MEMORY_MAX_ENTRIES=500
RATE_LIMIT_ADAPTIVE=true
RESOURCE_CLEANUP_INTERVAL=300
LOG_LEVEL=INFO
```

Testing:
-------
```python
import os
from src.core.config import reload_settings

os.environ["REDIS_HOST"] = "test-redis"
settings = reload_settings()
assert settings.redis.REDIS_HOST == "test-redis"
```

Author: System Architect
Date: 2025-12-05
"""

from src.core.config.constants import (
    CACHE_MAX_VALUE_BYTES,
    COMPRESSION_THRESHOLD_BYTES,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_RATE_WINDOW,
    HEADER_REQUEST_ID,
    MEMORY_TIER_MAX_ENTRIES,
    MEMORY_TIER_MAX_VALUE_BYTES,
    REDIS_KEY_RATE_LIMIT,
    CachePriority,
    CacheTier,
    ResourcePriority,
    ResourceType,
    Stage,
)
from src.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "CacheTier",
    "CachePriority",
    "ResourceType",
    "ResourcePriority",
    # Cache limits
    "CACHE_MAX_VALUE_BYTES",
    "COMPRESSION_THRESHOLD_BYTES",
    "MEMORY_TIER_MAX_ENTRIES",
    "MEMORY_TIER_MAX_VALUE_BYTES",
    # Redis keys
    "REDIS_KEY_RATE_LIMIT",
    # HTTP headers
    "HEADER_REQUEST_ID",
    "HEADER_RATE_LIMIT",
    "HEADER_RATE_REMAINING",
    "HEADER_RATE_RESET",
    "HEADER_RATE_WINDOW",
]
