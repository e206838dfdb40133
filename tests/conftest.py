"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest


class InMemoryRedis:
    """Async stand-in for the subset of ``redis.asyncio.Redis`` the cache uses."""

    def __init__(self) -> None:
        self.store: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> bytes | None:
        return self.store.get(key)

    async def set(self, key: str, value: str | bytes) -> bool:
        self.store[key] = value.encode() if isinstance(value, str) else value
        return True

    async def setex(self, key: str, ttl_seconds: int, value: str | bytes) -> bool:
        self.ttls[key] = ttl_seconds
        return await self.set(key, value)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    """In-memory async Redis stand-in."""
    return InMemoryRedis()


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for metric computations."""
    return datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def sample_curve_id() -> str:
    """Sample curve ID for testing."""
    return "0x1234567890abcdef1234567890abcdef12345678"
