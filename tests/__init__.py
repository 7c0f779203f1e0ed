"""
BlogDB Test Suite.

This package contains:
- unit/: Unit tests (store, event bus, services, config)
- integration/: Integration tests (HTTP API and SSE over aiohttp's test server)
"""
