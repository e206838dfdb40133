"""Recommendation layer - Prompting, LLM call and reply validation."""

from curve_scout.recommender.client import (
    AnalysisStep,
    LLMRequestError,
    RecommendationClient,
    RecommendationConfig,
)
from curve_scout.recommender.schema import (
    EmptyResponseError,
    LLMError,
    RecommendationResponse,
    SchemaError,
    TokenRecommendation,
)

__all__ = [
    "AnalysisStep",
    "EmptyResponseError",
    "LLMError",
    "LLMRequestError",
    "RecommendationClient",
    "RecommendationConfig",
    "RecommendationResponse",
    "SchemaError",
    "TokenRecommendation",
]
