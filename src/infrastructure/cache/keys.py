#!/usr/bin/env python3
"""
Cache Key Namespaces and Smart TTL

Every decision the cache facade makes from a key string (skip telemetry keys,
fall back to the durable store for user records, pick a TTL) goes through
``classify_key``. Callers build keys with ``CacheKeys`` so the shapes parsed
here are the only shapes produced.

Key layout:
    user:{id}                  user record
    user:{id}:profile          projected profile
    user:{id}:permissions      role / permission set
    api:courses[:...]          course listings
    api:categories[:...]       category listings
    metrics:... | monitoring:... | alert:...   telemetry (never cached)

Author: System Architect
Date: 2025-12-13
"""

from enum import Enum

from src.core.config.constants import DEFAULT_TTL, PRIORITY_TTL, CachePriority


class KeyNamespace(str, Enum):
    USER_PROFILE = "user_profile"
    USER_PERMISSIONS = "user_permissions"
    USER_RECORD = "user_record"
    API_COURSES = "api_courses"
    API_CATEGORIES = "api_categories"
    MONITORING = "monitoring"
    GENERIC = "generic"

    @property
    def is_user(self) -> bool:
        return self in _USER_NAMESPACES

    @property
    def is_telemetry(self) -> bool:
        return self is KeyNamespace.MONITORING


_USER_NAMESPACES = frozenset(
    {KeyNamespace.USER_PROFILE, KeyNamespace.USER_PERMISSIONS, KeyNamespace.USER_RECORD}
)

_TELEMETRY_ROOTS = frozenset({"metrics", "monitoring", "alert"})

_USER_SUFFIXES = {
    "profile": KeyNamespace.USER_PROFILE,
    "permissions": KeyNamespace.USER_PERMISSIONS,
}

# TTL (seconds) chosen by namespace before falling back to priority
NAMESPACE_TTL: dict[KeyNamespace, int] = {
    KeyNamespace.USER_PROFILE: 1800,
    KeyNamespace.USER_PERMISSIONS: 3600,
    KeyNamespace.API_COURSES: 1800,
    KeyNamespace.API_CATEGORIES: 3600,
}


def classify_key(key: str) -> KeyNamespace:
    """
    Map a cache key to its namespace.

    Examples:
        >>> classify_key("user:42:profile")
        <KeyNamespace.USER_PROFILE: 'user_profile'>
        >>> classify_key("metrics:cache:hits")
        <KeyNamespace.MONITORING: 'monitoring'>
    """
    parts = key.split(":")
    root = parts[0]

    if root in _TELEMETRY_ROOTS:
        return KeyNamespace.MONITORING

    if root == "user" and len(parts) >= 2 and parts[1]:
        # Both user:{id}:profile and user:profile:{id} are accepted
        if len(parts) >= 3:
            if parts[-1] in _USER_SUFFIXES:
                return _USER_SUFFIXES[parts[-1]]
            if parts[1] in _USER_SUFFIXES:
                return _USER_SUFFIXES[parts[1]]
        return KeyNamespace.USER_RECORD

    if root == "api" and len(parts) >= 2:
        if parts[1] == "courses":
            return KeyNamespace.API_COURSES
        if parts[1] == "categories":
            return KeyNamespace.API_CATEGORIES

    return KeyNamespace.GENERIC


def extract_user_id(key: str) -> str | None:
    """Return the user id embedded in a user-namespace key, else None."""
    namespace = classify_key(key)
    if not namespace.is_user:
        return None
    parts = key.split(":")
    if parts[1] in _USER_SUFFIXES and len(parts) >= 3:
        return parts[2] or None
    return parts[1]


def smart_ttl(key: str, priority: CachePriority | None = None) -> int:
    """
    TTL for ``key``: namespace table first, then priority, then DEFAULT_TTL.
    """
    namespace_ttl = NAMESPACE_TTL.get(classify_key(key))
    if namespace_ttl is not None:
        return namespace_ttl
    if priority is not None:
        return PRIORITY_TTL[CachePriority(priority)]
    return DEFAULT_TTL


class CacheKeys:
    """Builders for every key shape ``classify_key`` understands."""

    @staticmethod
    def user_record(user_id: str) -> str:
        return f"user:{user_id}"

    @staticmethod
    def user_profile(user_id: str) -> str:
        return f"user:{user_id}:profile"

    @staticmethod
    def user_permissions(user_id: str) -> str:
        return f"user:{user_id}:permissions"

    @staticmethod
    def courses(*parts: object) -> str:
        return ":".join(["api", "courses", *(str(p) for p in parts)])

    @staticmethod
    def categories(*parts: object) -> str:
        return ":".join(["api", "categories", *(str(p) for p in parts)])

    @staticmethod
    def metrics(*parts: object) -> str:
        return ":".join(["metrics", *(str(p) for p in parts)])
