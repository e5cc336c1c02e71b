"""
Placeholder for integration tests.

Integration tests will test component interactions against real services:
- Redis connectivity and MULTI/EXEC rate limit windows
- Multi-tier caching (memory + Redis + MongoDB fallback)
- Resource registry shutdown ordering inside the application lifespan

These tests require external dependencies (Redis, MongoDB) and run slower than unit tests.
"""
