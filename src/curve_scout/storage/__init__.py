"""Storage layer - Cached recommendation result and run cooldown."""

from curve_scout.storage.cache import CachedResult, RecommendationCache
from curve_scout.storage.cooldown import CooldownState

__all__ = [
    "CachedResult",
    "CooldownState",
    "RecommendationCache",
]
