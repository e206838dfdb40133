"""Recommendation pipeline orchestrator.

This module provides the RecommendationPipeline class that wires the
candidate fetcher, the LLM recommendation client, the result cache and the
cooldown into the user-facing ``analyze`` operation.

Pipeline flow:
    Subgraph → Candidate Fetcher → Metrics → Pre-Filter → Prompt → LLM → Cache

A failure in the fetch, metrics or LLM stages is logged and replaced with the
fixed demonstration shortlist; the run still completes, is cached, and arms
the cooldown. The progress phases the failed stage never reached are emitted
in order, so every completed run reports each phase once and ends on
``done``. Configuration errors are raised to the caller unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from redis.asyncio import Redis

from curve_scout.config import Settings, get_settings
from curve_scout.ingestor.fetcher import FetchError
from curve_scout.recommender.client import (
    ANALYSIS_STEPS,
    AnalysisStep,
    ProgressCallback,
    RecommendationClient,
    RecommendationConfig,
)
from curve_scout.recommender.demo import DEMO_RECOMMENDATION
from curve_scout.recommender.schema import LLMError, RecommendationResponse
from curve_scout.storage.cache import CachedResult, RecommendationCache
from curve_scout.storage.cooldown import CooldownState

logger = logging.getLogger(__name__)

FALLBACK_ERROR_MESSAGE = "Live analysis is unavailable right now; showing demonstration data."


class AlreadyRunningError(Exception):
    """Raised when ``analyze`` is called while a run is still in flight."""


class PipelineState(str, Enum):
    """Pipeline run states."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of one ``analyze`` call.

    Attributes:
        response: The shortlist shown to the trader (live or demonstration).
        produced_at: When the result was cached (UTC).
        used_fallback: True when the demonstration shortlist was substituted.
        error: Generic message to display alongside a fallback result.
    """

    response: RecommendationResponse
    produced_at: datetime
    used_fallback: bool = False
    error: str | None = None


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    runs_started: int = 0
    runs_succeeded: int = 0
    runs_fell_back: int = 0
    last_run_at: datetime | None = None
    last_error: str | None = None


class RecommendationPipeline:
    """Orchestrates analysis runs.

    Concurrent ``analyze`` calls are rejected with ``AlreadyRunningError``
    rather than queued. The cooldown is owned here and exposed through
    ``cooldown_remaining_ms``; it does not block ``analyze``.

    Example:
        ```python
        pipeline = RecommendationPipeline(client, cache, settings=settings)
        result = await pipeline.analyze(RecommendationConfig(), on_progress=print)
        ```
    """

    def __init__(
        self,
        client: RecommendationClient,
        cache: RecommendationCache,
        *,
        settings: Settings | None = None,
        cooldown: CooldownState | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            client: Recommendation client used for live runs.
            cache: Single-slot result cache.
            settings: Application settings. If not provided, uses get_settings().
            cooldown: Cooldown state; built from settings when omitted.
        """
        self._settings = settings or get_settings()
        self._client = client
        self._cache = cache
        self._cooldown = cooldown or CooldownState(self._settings.cache.cooldown_seconds)
        self._run_lock = asyncio.Lock()
        self._stats = PipelineStats()

    @property
    def state(self) -> PipelineState:
        return PipelineState.RUNNING if self._run_lock.locked() else PipelineState.IDLE

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    @property
    def cooldown(self) -> CooldownState:
        return self._cooldown

    def cooldown_remaining_ms(self) -> int:
        return self._cooldown.remaining_ms()

    async def get_cached(self) -> CachedResult | None:
        return await self._cache.get_cached()

    async def analyze(
        self,
        config: RecommendationConfig,
        on_progress: ProgressCallback | None = None,
    ) -> AnalysisResult:
        """Run one analysis, falling back to demonstration data on failure.

        Raises:
            AlreadyRunningError: A previous run has not finished.
            ConfigurationError: Missing API key or no data source enabled.
        """
        if self._run_lock.locked():
            raise AlreadyRunningError("An analysis run is already in progress")

        async with self._run_lock:
            self._stats.runs_started += 1
            self._stats.last_run_at = datetime.now(UTC)

            emitted: list[AnalysisStep] = []

            def track(step: AnalysisStep) -> None:
                emitted.append(step)
                if on_progress is not None:
                    on_progress(step)

            used_fallback = False
            error: str | None = None
            try:
                response = await self._client.get_recommendations(config, track)
                self._stats.runs_succeeded += 1
            except (FetchError, LLMError) as e:
                logger.exception("Analysis failed; substituting demonstration data: %s", e)
                self._stats.runs_fell_back += 1
                self._stats.last_error = str(e)
                response = DEMO_RECOMMENDATION
                used_fallback = True
                error = FALLBACK_ERROR_MESSAGE
                for step in ANALYSIS_STEPS:
                    if step not in emitted:
                        track(step)

            cached = await self._cache.save(response)
            self._cooldown.start()

        logger.info(
            "Analysis complete: %d recommendations (fallback=%s)",
            len(response.recommendations),
            used_fallback,
        )
        return AnalysisResult(
            response=response,
            produced_at=datetime.fromtimestamp(cached.timestamp / 1000, tz=UTC),
            used_fallback=used_fallback,
            error=error,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        client: RecommendationClient,
        redis: Redis,
    ) -> RecommendationPipeline:
        """Build a pipeline whose cache and cooldown follow ``settings``."""
        cache = RecommendationCache(
            redis,
            key=settings.cache.key,
            ttl_seconds=settings.cache.ttl_seconds,
        )
        return cls(client, cache, settings=settings)
