"""
Core Interfaces Module

This module provides protocols for components that have more than one
implementation, enabling dependency injection and testability.

Components:
-----------
- **storage.py**: DurableStore protocol for the durable record store

Usage:
------
```python
from src.core.interfaces import DurableStore

async def load_user(store: DurableStore, user_id: str):
    return await store.find_by_id("users", user_id)
```

Author: System Architect
Date: 2025-12-08
"""

from .storage import DurableStore

__all__ = ["DurableStore"]
