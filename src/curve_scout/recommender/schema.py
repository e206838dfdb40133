"""Recommendation response schema and validation of raw LLM replies.

The LLM reply is untrusted. ``parse_recommendation_response`` turns it into a
tagged ``ParsedRecommendations`` result:

- ``valid``: the reply matched the schema as-is.
- ``normalized``: the reply was usable after coercions (unknown enum values,
  missing fields, dropped records, truncation). Each coercion is listed in
  ``issues``.
- ``rejected``: the reply was not a JSON object at all.

An empty or whitespace-only reply raises ``EmptyResponseError`` instead.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

SourceKey = Literal["on_chain", "technical"]
SuggestedAction = Literal["strong_buy", "buy", "hold", "avoid"]
RiskLevel = Literal["low", "medium", "high", "critical"]

SOURCE_KEYS: tuple[str, ...] = ("on_chain", "technical")
ACTION_KEYS: tuple[str, ...] = ("strong_buy", "buy", "hold", "avoid")
RISK_KEYS: tuple[str, ...] = ("low", "medium", "high", "critical")

DEFAULT_ACTION: SuggestedAction = "hold"
DEFAULT_RISK: RiskLevel = "medium"
MAX_RECOMMENDATIONS = 10

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"[\s-]+")


class LLMError(Exception):
    """Base exception for failures of the recommendation LLM call."""


class EmptyResponseError(LLMError):
    """Raised when the model returned no content at all."""


class SchemaError(LLMError):
    """Raised when the model reply cannot be interpreted as a recommendation set."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class Reasoning(_CamelModel):
    """Per-source reasoning paragraphs."""

    on_chain: str | None = Field(default=None, alias="onChain")
    technical: str | None = None


class TokenRecommendation(_CamelModel):
    """One ranked token in the LLM shortlist."""

    curve_id: str = Field(alias="curveId")
    name: str
    symbol: str
    score: float = Field(ge=0, le=100)
    explanation: str
    contributing_sources: list[SourceKey] = Field(default_factory=list, alias="contributingSources")
    suggested_action: SuggestedAction = Field(default=DEFAULT_ACTION, alias="suggestedAction")
    risk_level: RiskLevel = Field(default=DEFAULT_RISK, alias="riskLevel")
    reasoning: Reasoning = Field(default_factory=Reasoning)


class RecommendationResponse(_CamelModel):
    """Ordered shortlist (rank = list position) plus a market summary."""

    recommendations: list[TokenRecommendation] = Field(default_factory=list, max_length=MAX_RECOMMENDATIONS)
    market_summary: str = Field(default="", alias="marketSummary")

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True)


class ParseOutcome(str, Enum):
    """Result tag of validating an LLM reply."""

    VALID = "valid"
    NORMALIZED = "normalized"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ParsedRecommendations:
    """Tagged result of ``parse_recommendation_response``."""

    outcome: ParseOutcome
    response: RecommendationResponse | None
    issues: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_usable(self) -> bool:
        return self.outcome is not ParseOutcome.REJECTED and self.response is not None


def normalize_action(value: Any) -> SuggestedAction | None:
    """Map e.g. ``"Strong Buy"`` to ``"strong_buy"``; None when unrecognized."""
    text = _WHITESPACE_RE.sub("_", str(value if value is not None else "").strip()).lower()
    if text in ACTION_KEYS:
        return text  # type: ignore[return-value]
    return None


def normalize_risk(value: Any) -> RiskLevel | None:
    text = str(value if value is not None else "").strip().lower()
    if text in RISK_KEYS:
        return text  # type: ignore[return-value]
    return None


def _strip_code_fences(text: str) -> str:
    return _CODE_FENCE_RE.sub("", text.strip()).strip()


def _normalize_record(raw: Any, index: int, issues: list[str]) -> dict[str, Any] | None:
    """Apply coercions to one recommendation record before model validation."""
    if not isinstance(raw, dict):
        issues.append(f"recommendations[{index}] is not an object; dropped")
        return None
    record = dict(raw)

    action = normalize_action(record.get("suggestedAction"))
    if action is None:
        issues.append(f"recommendations[{index}].suggestedAction {record.get('suggestedAction')!r} -> hold")
        action = DEFAULT_ACTION
    elif action != record.get("suggestedAction"):
        issues.append(f"recommendations[{index}].suggestedAction {record.get('suggestedAction')!r} -> {action}")
    record["suggestedAction"] = action

    risk = normalize_risk(record.get("riskLevel"))
    if risk is None:
        issues.append(f"recommendations[{index}].riskLevel {record.get('riskLevel')!r} -> medium")
        risk = DEFAULT_RISK
    elif risk != record.get("riskLevel"):
        issues.append(f"recommendations[{index}].riskLevel {record.get('riskLevel')!r} -> {risk}")
    record["riskLevel"] = risk

    sources = record.get("contributingSources")
    if not isinstance(sources, list):
        if sources is not None:
            issues.append(f"recommendations[{index}].contributingSources is not an array")
        kept: list[str] = []
    else:
        kept = [str(s) for s in sources if str(s) in SOURCE_KEYS]
        if len(kept) != len(sources):
            issues.append(f"recommendations[{index}].contributingSources dropped unknown entries")
    record["contributingSources"] = list(dict.fromkeys(kept))

    reasoning = record.get("reasoning")
    if not isinstance(reasoning, dict):
        if reasoning is not None:
            issues.append(f"recommendations[{index}].reasoning is not an object")
        record["reasoning"] = {}
    else:
        record["reasoning"] = {k: v for k, v in reasoning.items() if isinstance(v, str)}

    score = record.get("score")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        if not math.isfinite(score):
            issues.append(f"recommendations[{index}].score is not finite; dropped")
            return None
        clamped = max(0.0, min(100.0, float(score)))
        if clamped != score:
            issues.append(f"recommendations[{index}].score {score!r} clamped to {clamped:g}")
        record["score"] = clamped

    return record


def parse_recommendation_response(text: str | None) -> ParsedRecommendations:
    """Parse and validate a raw LLM reply.

    Raises:
        EmptyResponseError: If ``text`` is empty or whitespace-only.
    """
    if text is None or not text.strip():
        raise EmptyResponseError("Empty LLM response")

    try:
        payload = json.loads(_strip_code_fences(text))
    except json.JSONDecodeError as e:
        return ParsedRecommendations(
            outcome=ParseOutcome.REJECTED,
            response=None,
            issues=(f"reply is not valid JSON: {e.msg}",),
        )
    if not isinstance(payload, dict):
        return ParsedRecommendations(
            outcome=ParseOutcome.REJECTED,
            response=None,
            issues=(f"reply is a JSON {type(payload).__name__}, expected an object",),
        )

    issues: list[str] = []

    raw_recommendations = payload.get("recommendations")
    if not isinstance(raw_recommendations, list):
        issues.append("recommendations missing or not an array; using []")
        raw_recommendations = []

    summary = payload.get("marketSummary")
    if not isinstance(summary, str):
        issues.append("marketSummary missing or not a string; using ''")
        summary = ""

    recommendations: list[TokenRecommendation] = []
    for index, raw in enumerate(raw_recommendations):
        record = _normalize_record(raw, index, issues)
        if record is None:
            continue
        try:
            recommendations.append(TokenRecommendation.model_validate(record))
        except ValidationError as e:
            issues.append(f"recommendations[{index}] failed validation ({e.error_count()} errors); dropped")

    if len(recommendations) > MAX_RECOMMENDATIONS:
        issues.append(f"truncated {len(recommendations)} recommendations to {MAX_RECOMMENDATIONS}")
        recommendations = recommendations[:MAX_RECOMMENDATIONS]

    response = RecommendationResponse(recommendations=recommendations, market_summary=summary)
    if issues:
        logger.warning("Normalized LLM reply: %s", "; ".join(issues))
        return ParsedRecommendations(ParseOutcome.NORMALIZED, response, tuple(issues))
    return ParsedRecommendations(ParseOutcome.VALID, response)
