"""
Resource Registry Exceptions

All exceptions related to the resource lifecycle registry

Author: System Architect
Date: 2025-12-08
"""

from src.core.exceptions.base import PlatformBaseError


class ResourceError(PlatformBaseError):
    """Base exception for resource registry errors."""
    pass


class InvalidResourceError(ResourceError):
    """
    Raised when a resource descriptor is rejected at registration.

    Common causes:
    - Missing or unknown resource type
    - Release callback is not callable
    """
    pass


class ResourceReleaseError(ResourceError):
    """
    Raised when a release callback fails.

    The registry catches this per resource, keeps the entry and counts the
    failure in its statistics.
    """
    pass
