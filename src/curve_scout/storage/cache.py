"""Single-slot recommendation cache backed by Redis.

The slot holds ``{"data": <RecommendationResponse>, "timestamp": <epoch ms>}``
under a fixed key. Entries older than the TTL, or that fail to parse, are
deleted on read and reported as absent.
"""

from __future__ import annotations

import json
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import ValidationError
from redis.asyncio import Redis

from curve_scout.recommender.schema import RecommendationResponse

logger = logging.getLogger(__name__)

DEFAULT_CACHE_KEY = "curve_scout:recommendations"
DEFAULT_CACHE_TTL_SECONDS = 15 * 60


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CachedResult:
    """A cached response and the wall-clock time (epoch ms) it was produced."""

    data: RecommendationResponse
    timestamp: int

    def to_json(self) -> str:
        return json.dumps({"data": self.data.to_json_dict(), "timestamp": self.timestamp})

    @classmethod
    def from_json(cls, raw: str) -> CachedResult:
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("cache record is not an object")
        timestamp = payload["timestamp"]
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ValueError("cache timestamp is not numeric")
        if not math.isfinite(timestamp):
            raise ValueError("cache timestamp is not finite")
        return cls(
            data=RecommendationResponse.model_validate(payload["data"]),
            timestamp=int(timestamp),
        )


class RecommendationCache:
    """Cache-first access to the last successful recommendation result.

    Example:
        ```python
        redis = Redis.from_url("redis://localhost:6379")
        cache = RecommendationCache(redis)
        await cache.save(response)
        cached = await cache.get_cached()
        ```
    """

    def __init__(
        self,
        redis: Redis,
        *,
        key: str = DEFAULT_CACHE_KEY,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._redis = redis
        self._key = key
        self._ttl_seconds = ttl_seconds
        self._clock_ms = clock_ms

    @property
    def ttl_ms(self) -> int:
        return self._ttl_seconds * 1000

    async def get_cached(self) -> CachedResult | None:
        """Return the cached result, or None when missing, expired or corrupt."""
        raw = await self._redis.get(self._key)
        if not raw:
            return None
        try:
            if isinstance(raw, bytes):
                raw = raw.decode()
            cached = CachedResult.from_json(str(raw))
        except (ValueError, KeyError, TypeError, OverflowError, ValidationError) as e:
            logger.warning("Discarding unparsable cached recommendations: %s", e)
            await self._redis.delete(self._key)
            return None

        if self._clock_ms() - cached.timestamp > self.ttl_ms:
            logger.debug("Cached recommendations expired; deleting %s", self._key)
            await self._redis.delete(self._key)
            return None
        return cached

    async def save(self, response: RecommendationResponse) -> CachedResult:
        """Overwrite the cache slot with ``response`` stamped with the current time."""
        cached = CachedResult(data=response, timestamp=self._clock_ms())
        await self._redis.setex(self._key, self._ttl_seconds, cached.to_json())
        return cached

    async def clear(self) -> None:
        await self._redis.delete(self._key)
