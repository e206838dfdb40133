"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
curve scout recommendation pipeline, loading and validating environment
variables at startup.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

DataSourceKey = Literal["on_chain", "technical"]


class ConfigurationError(Exception):
    """Raised when the pipeline is missing a required setting.

    Configuration errors are fatal for a run and are surfaced to the caller
    verbatim; they never trigger the demonstration fallback.
    """


class OpenAISettings(BaseSettings):
    """LLM provider settings (any OpenAI-compatible chat endpoint)."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_", extra="ignore")

    api_key: SecretStr | None = Field(
        default=None,
        alias="OPENAI_API_KEY",
        description="API key for the chat-completions endpoint",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        alias="OPENAI_BASE_URL",
        description="Base URL of the chat-completions endpoint",
    )
    model: str = Field(
        default="gpt-4o",
        alias="OPENAI_MODEL",
        description="Model name used for recommendations",
    )
    temperature: float = Field(
        default=0.3,
        alias="OPENAI_TEMPERATURE",
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the recommendation call",
    )
    timeout_seconds: float = Field(
        default=60.0,
        alias="OPENAI_TIMEOUT_SECONDS",
        gt=0.0,
        le=600.0,
        description="Request timeout for the LLM call",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("OPENAI_BASE_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")


class SubgraphSettings(BaseSettings):
    """Launchpad subgraph (GraphQL) settings."""

    model_config = SettingsConfigDict(env_prefix="SUBGRAPH_", extra="ignore")

    url: str = Field(
        default="https://api.goldsky.com/api/public/project_launchpad/subgraphs/launchpad/prod/gn",
        alias="SUBGRAPH_URL",
        description="GraphQL endpoint serving curves, trades and positions",
    )
    timeout_seconds: float = Field(
        default=20.0,
        alias="SUBGRAPH_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
        description="Total timeout for a single subgraph query",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate subgraph URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("SUBGRAPH_URL must be an HTTP(S) endpoint")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="redis://localhost:6379",
        alias="REDIS_URL",
        description="Redis connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class PipelineSettings(BaseSettings):
    """Candidate fetching and pre-filtering settings."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_", extra="ignore")

    candidate_sort_key: str = Field(
        default="totalVolumeEth",
        alias="PIPELINE_CANDIDATE_SORT_KEY",
        description="Ranking key used when fetching the candidate universe",
    )
    candidate_limit: int = Field(
        default=50,
        alias="PIPELINE_CANDIDATE_LIMIT",
        ge=1,
        le=1000,
        description="Number of curves fetched before dropping graduated ones",
    )
    trades_per_candidate: int = Field(
        default=100,
        alias="PIPELINE_TRADES_PER_CANDIDATE",
        ge=1,
        le=1000,
        description="Most recent trades fetched per candidate",
    )
    positions_per_candidate: int = Field(
        default=50,
        alias="PIPELINE_POSITIONS_PER_CANDIDATE",
        ge=1,
        le=1000,
        description="Largest positions fetched per candidate",
    )
    batch_size: int = Field(
        default=5,
        alias="PIPELINE_BATCH_SIZE",
        ge=1,
        le=50,
        description="Concurrent per-candidate detail fetches",
    )
    prefilter_top_k: int = Field(
        default=20,
        alias="PIPELINE_PREFILTER_TOP_K",
        ge=1,
        le=100,
        description="Candidates forwarded to the LLM after pre-filtering",
    )
    graduation_threshold_eth: Decimal = Field(
        default=Decimal("4"),
        alias="PIPELINE_GRADUATION_THRESHOLD_ETH",
        gt=Decimal("0"),
        description="Cumulative ETH volume at which a curve graduates",
    )
    enabled_sources: list[DataSourceKey] = Field(
        default_factory=lambda: ["on_chain", "technical"],
        alias="PIPELINE_ENABLED_SOURCES",
        description="Data sources enabled when the caller does not choose",
    )


class CacheSettings(BaseSettings):
    """Result cache and cooldown settings."""

    model_config = SettingsConfigDict(env_prefix="CACHE_", extra="ignore")

    key: str = Field(
        default="curve_scout:recommendations",
        alias="CACHE_KEY",
        description="Redis key of the single cached recommendation slot",
    )
    ttl_seconds: int = Field(
        default=15 * 60,
        alias="CACHE_TTL_SECONDS",
        ge=1,
        le=24 * 3600,
        description="Lifetime of a cached recommendation result",
    )
    cooldown_seconds: int = Field(
        default=60,
        alias="CACHE_COOLDOWN_SECONDS",
        ge=0,
        le=3600,
        description="Minimum interval between analysis runs",
    )


class Settings(BaseSettings):
    """Root application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    openai: OpenAISettings = Field(
        default_factory=lambda: OpenAISettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    subgraph: SubgraphSettings = Field(
        default_factory=lambda: SubgraphSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    pipeline: PipelineSettings = Field(
        default_factory=lambda: PipelineSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    cache: CacheSettings = Field(
        default_factory=lambda: CacheSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "openai": {
                "api_key": "(set)" if self.openai.api_key else "(not set)",
                "base_url": self.openai.base_url,
                "model": self.openai.model,
                "temperature": str(self.openai.temperature),
            },
            "subgraph_url": self.subgraph.url,
            "redis_url": self._redact_url(self.redis.url),
            "pipeline": {
                "candidate_sort_key": self.pipeline.candidate_sort_key,
                "candidate_limit": str(self.pipeline.candidate_limit),
                "batch_size": str(self.pipeline.batch_size),
                "prefilter_top_k": str(self.pipeline.prefilter_top_k),
                "enabled_sources": ",".join(self.pipeline.enabled_sources),
            },
            "cache": {
                "key": self.cache.key,
                "ttl_seconds": str(self.cache.ttl_seconds),
                "cooldown_seconds": str(self.cache.cooldown_seconds),
            },
            "log_level": self.log_level,
        }

    def validate_requirements(self) -> None:
        """Refuse to run the recommender without an LLM API key."""
        if self.openai.api_key is None or not self.openai.api_key.get_secret_value().strip():
            raise ConfigurationError("OPENAI_API_KEY not configured")

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
