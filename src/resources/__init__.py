"""
Resources Module

Lifecycle registry for long-lived handles and their release callbacks.
"""

from .resource_manager import (
    CleanupCriteria,
    ManagedResource,
    ResourceManager,
    ResourceManagerConfig,
    ResourceStats,
)

__all__ = [
    "CleanupCriteria",
    "ManagedResource",
    "ResourceManager",
    "ResourceManagerConfig",
    "ResourceStats",
]
