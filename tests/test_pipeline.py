"""Tests for the recommendation pipeline orchestrator."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from curve_scout.config import ConfigurationError, OpenAISettings, Settings
from curve_scout.ingestor.fetcher import FetchError
from curve_scout.pipeline import (
    FALLBACK_ERROR_MESSAGE,
    AlreadyRunningError,
    PipelineState,
    RecommendationPipeline,
)
from curve_scout.recommender.client import (
    ANALYSIS_STEPS,
    RecommendationClient,
    RecommendationConfig,
)
from curve_scout.recommender.demo import DEMO_RECOMMENDATION
from curve_scout.recommender.schema import (
    EmptyResponseError,
    RecommendationResponse,
    SchemaError,
    TokenRecommendation,
)
from curve_scout.storage.cache import RecommendationCache
from curve_scout.storage.cooldown import CooldownState


class FakeClock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def mock_settings():
    """Create mock settings for testing."""
    cache = MagicMock()
    cache.key = "test:recommendations"
    cache.ttl_seconds = 900
    cache.cooldown_seconds = 60

    settings = MagicMock(spec=Settings)
    settings.cache = cache
    return settings


@pytest.fixture
def live_response() -> RecommendationResponse:
    return RecommendationResponse(
        recommendations=[
            TokenRecommendation(
                curve_id="0xlive",
                name="Live",
                symbol="LIVE",
                score=58,
                explanation="Steady accumulation.",
                contributing_sources=["on_chain"],
                suggested_action="hold",
                risk_level="medium",
            )
        ],
        market_summary="Live summary.",
    )


@pytest.fixture
def cache(fake_redis) -> RecommendationCache:
    return RecommendationCache(fake_redis, key="test:recommendations", ttl_seconds=900)


@pytest.fixture
def cooldown() -> CooldownState:
    return CooldownState(60, clock=FakeClock())


def make_pipeline(client, cache, settings, cooldown) -> RecommendationPipeline:
    return RecommendationPipeline(client, cache, settings=settings, cooldown=cooldown)


class TestAnalyzeSuccess:
    @pytest.mark.asyncio
    async def test_caches_live_result_and_arms_cooldown(
        self, mock_settings, cache, cooldown, live_response, fake_redis
    ) -> None:
        client = MagicMock()
        client.get_recommendations = AsyncMock(return_value=live_response)
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)

        result = await pipeline.analyze(RecommendationConfig())

        assert result.response == live_response
        assert result.used_fallback is False
        assert result.error is None
        cached = await pipeline.get_cached()
        assert cached is not None
        assert cached.data == live_response
        assert pipeline.cooldown_remaining_ms() == 60_000
        assert pipeline.stats.runs_succeeded == 1
        assert pipeline.state is PipelineState.IDLE

    @pytest.mark.asyncio
    async def test_forwards_config_and_progress(self, mock_settings, cache, cooldown, live_response) -> None:
        client = MagicMock()
        client.get_recommendations = AsyncMock(return_value=live_response)
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)
        config = RecommendationConfig.from_sources(["technical"])
        callback = MagicMock()

        await pipeline.analyze(config, callback)

        client.get_recommendations.assert_awaited_once()
        forwarded_config, forwarded_progress = client.get_recommendations.await_args.args
        assert forwarded_config == config
        forwarded_progress("running_ai")
        callback.assert_called_once_with("running_ai")

    @pytest.mark.asyncio
    async def test_live_run_reports_each_phase_once(self, mock_settings, cache, cooldown, live_response) -> None:
        async def emit_all(config, on_progress=None):
            for step in ANALYSIS_STEPS:
                on_progress(step)
            return live_response

        client = MagicMock()
        client.get_recommendations = emit_all
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)
        steps: list[str] = []

        await pipeline.analyze(RecommendationConfig(), steps.append)

        assert tuple(steps) == ANALYSIS_STEPS


class TestFallback:
    @pytest.mark.asyncio
    async def test_fetch_failure_during_metrics_uses_demo(self, mock_settings, cache, cooldown, fake_redis) -> None:
        fetcher = MagicMock()
        fetcher.fetch_candidates = AsyncMock(return_value=[])
        fetcher.fetch_token_data = AsyncMock(side_effect=FetchError("subgraph 503", curve_id="0xabc"))
        llm = MagicMock()
        llm.chat.completions.create = AsyncMock()
        client = RecommendationClient(OpenAISettings(OPENAI_API_KEY="sk-test"), fetcher, llm_client=llm)
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)
        steps: list[str] = []

        result = await pipeline.analyze(RecommendationConfig(), steps.append)

        assert tuple(steps) == ANALYSIS_STEPS
        assert result.used_fallback is True
        assert result.error == FALLBACK_ERROR_MESSAGE
        assert result.response == DEMO_RECOMMENDATION
        llm.chat.completions.create.assert_not_called()

        stored = json.loads(fake_redis.store["test:recommendations"])
        assert stored["data"]["recommendations"][0]["curveId"] == "demo-1"
        assert pipeline.cooldown_remaining_ms() == 60_000
        assert pipeline.stats.runs_fell_back == 1
        assert "subgraph 503" in pipeline.stats.last_error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [SchemaError("not json"), EmptyResponseError("empty")])
    async def test_llm_failures_use_demo(self, mock_settings, cache, cooldown, error) -> None:
        client = MagicMock()
        client.get_recommendations = AsyncMock(side_effect=error)
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)
        steps: list[str] = []

        result = await pipeline.analyze(RecommendationConfig(), steps.append)

        assert result.used_fallback is True
        assert result.response == DEMO_RECOMMENDATION
        assert tuple(steps) == ANALYSIS_STEPS

    @pytest.mark.asyncio
    async def test_empty_completion_uses_demo(self, mock_settings, cache, cooldown) -> None:
        fetcher = MagicMock()
        fetcher.fetch_candidates = AsyncMock(return_value=[])
        fetcher.fetch_token_data = AsyncMock(return_value=[])
        llm = MagicMock()
        llm.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[]))
        client = RecommendationClient(OpenAISettings(OPENAI_API_KEY="sk-test"), fetcher, llm_client=llm)
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)
        steps: list[str] = []

        result = await pipeline.analyze(RecommendationConfig(), steps.append)

        assert result.used_fallback is True
        assert steps == ["fetching_tokens", "computing_metrics", "running_ai", "done"]


class TestConfigurationErrors:
    @pytest.mark.asyncio
    async def test_propagates_without_cache_or_cooldown(self, mock_settings, cache, cooldown, fake_redis) -> None:
        client = RecommendationClient(OpenAISettings(OPENAI_API_KEY=""), MagicMock())
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)
        steps: list[str] = []

        with pytest.raises(ConfigurationError):
            await pipeline.analyze(RecommendationConfig(), steps.append)

        assert steps == []
        assert fake_redis.store == {}
        assert pipeline.cooldown_remaining_ms() == 0
        assert pipeline.state is PipelineState.IDLE


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_second_run_rejected_while_first_in_flight(
        self, mock_settings, cache, cooldown, live_response
    ) -> None:
        release = asyncio.Event()

        async def slow_recommendations(config, on_progress=None):
            await release.wait()
            return live_response

        client = MagicMock()
        client.get_recommendations = slow_recommendations
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)

        first = asyncio.create_task(pipeline.analyze(RecommendationConfig()))
        await asyncio.sleep(0)
        assert pipeline.state is PipelineState.RUNNING

        with pytest.raises(AlreadyRunningError):
            await pipeline.analyze(RecommendationConfig())

        release.set()
        result = await first
        assert result.response == live_response
        assert pipeline.state is PipelineState.IDLE

    @pytest.mark.asyncio
    async def test_cooldown_is_advisory(self, mock_settings, cache, cooldown, live_response) -> None:
        client = MagicMock()
        client.get_recommendations = AsyncMock(return_value=live_response)
        pipeline = make_pipeline(client, cache, mock_settings, cooldown)

        await pipeline.analyze(RecommendationConfig())
        assert pipeline.cooldown.is_active
        await pipeline.analyze(RecommendationConfig())

        assert client.get_recommendations.await_count == 2


class TestFromSettings:
    def test_uses_cache_settings(self, mock_settings, fake_redis) -> None:
        pipeline = RecommendationPipeline.from_settings(mock_settings, client=MagicMock(), redis=fake_redis)

        assert pipeline.cooldown.duration_ms == 60_000
        assert pipeline.state is PipelineState.IDLE
