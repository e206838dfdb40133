"""LLM recommendation client.

Runs the fetch → metrics → pre-filter → prompt → LLM → validate sequence and
reports progress through four ordered phases::

    fetching_tokens → computing_metrics → running_ai → done

``done`` is only emitted once the reply has been validated, so a failed call
stops at the phase where it failed; the orchestrator emits the remaining
phases when it substitutes demonstration data.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from openai import AsyncOpenAI, OpenAIError

from curve_scout.config import ConfigurationError, OpenAISettings, PipelineSettings
from curve_scout.ingestor.fetcher import CandidateFetcher
from curve_scout.metrics.prefilter import select_top_candidates
from curve_scout.recommender.prompts import build_system_prompt, build_user_prompt
from curve_scout.recommender.schema import (
    SOURCE_KEYS,
    LLMError,
    ParseOutcome,
    RecommendationResponse,
    SchemaError,
    SourceKey,
    parse_recommendation_response,
)

logger = logging.getLogger(__name__)

AnalysisStep = Literal["fetching_tokens", "computing_metrics", "running_ai", "done"]
ProgressCallback = Callable[[AnalysisStep], None]

ANALYSIS_STEPS: tuple[AnalysisStep, ...] = ("fetching_tokens", "computing_metrics", "running_ai", "done")


class LLMRequestError(LLMError):
    """Raised when the chat-completions request itself fails."""


@dataclass(frozen=True)
class RecommendationConfig:
    """Per-run options chosen by the caller."""

    enabled_sources: tuple[SourceKey, ...] = field(default_factory=lambda: ("on_chain", "technical"))

    @classmethod
    def from_sources(cls, sources: Sequence[str]) -> RecommendationConfig:
        """Build a config, dropping unknown and duplicate source keys."""
        kept = tuple(dict.fromkeys(s for s in sources if s in SOURCE_KEYS))
        return cls(enabled_sources=kept)  # type: ignore[arg-type]


class RecommendationClient:
    """Produces a validated ``RecommendationResponse`` for one analysis run.

    Example:
        ```python
        client = RecommendationClient(settings.openai, fetcher, pipeline_settings=settings.pipeline)
        response = await client.get_recommendations(RecommendationConfig(), on_progress=print)
        ```
    """

    def __init__(
        self,
        openai_settings: OpenAISettings,
        fetcher: CandidateFetcher,
        *,
        pipeline_settings: PipelineSettings | None = None,
        llm_client: Any | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            openai_settings: LLM provider settings (key, base URL, model).
            fetcher: Candidate fetcher bound to a data source.
            pipeline_settings: Candidate limits and pre-filter size.
            llm_client: Pre-built ``AsyncOpenAI``-compatible client. Built
                lazily from ``openai_settings`` when omitted.
        """
        self._openai = openai_settings
        self._fetcher = fetcher
        self._pipeline = pipeline_settings or PipelineSettings()
        self._llm = llm_client

    def _check_config(self, config: RecommendationConfig) -> str:
        api_key = self._openai.api_key.get_secret_value().strip() if self._openai.api_key else ""
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured")
        if not config.enabled_sources:
            raise ConfigurationError("At least one data source must be enabled")
        return api_key

    def _llm_client(self, api_key: str) -> Any:
        if self._llm is None:
            self._llm = AsyncOpenAI(
                api_key=api_key,
                base_url=self._openai.base_url,
                timeout=self._openai.timeout_seconds,
            )
        return self._llm

    async def get_recommendations(
        self,
        config: RecommendationConfig,
        on_progress: ProgressCallback | None = None,
    ) -> RecommendationResponse:
        """Run one analysis and return the validated shortlist.

        Raises:
            ConfigurationError: No API key configured or no source enabled.
            FetchError: Candidate or detail fetch failed.
            LLMRequestError: The chat-completions call failed.
            EmptyResponseError: The model returned no content.
            SchemaError: The reply was not a JSON object.
        """
        api_key = self._check_config(config)

        def emit(step: AnalysisStep) -> None:
            if on_progress is not None:
                on_progress(step)

        emit("fetching_tokens")
        curves = await self._fetcher.fetch_candidates(
            self._pipeline.candidate_sort_key,
            self._pipeline.candidate_limit,
        )

        emit("computing_metrics")
        tokens = await self._fetcher.fetch_token_data(curves)
        shortlist = select_top_candidates(tokens, k=self._pipeline.prefilter_top_k)

        emit("running_ai")
        content = await self._complete(
            api_key,
            system_prompt=build_system_prompt(config.enabled_sources),
            user_prompt=build_user_prompt(shortlist, config.enabled_sources),
        )
        parsed = parse_recommendation_response(content)
        if parsed.outcome is ParseOutcome.REJECTED or parsed.response is None:
            raise SchemaError("; ".join(parsed.issues) or "Unusable LLM response")

        logger.info(
            "LLM returned %d recommendations for %d candidates (%s)",
            len(parsed.response.recommendations),
            len(shortlist),
            parsed.outcome.value,
        )
        emit("done")
        return parsed.response

    async def _complete(self, api_key: str, *, system_prompt: str, user_prompt: str) -> str | None:
        client = self._llm_client(api_key)
        try:
            response = await client.chat.completions.create(
                model=self._openai.model,
                temperature=self._openai.temperature,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise LLMRequestError(f"Chat completion failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        return getattr(message, "content", None)
