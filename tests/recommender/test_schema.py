"""Tests for LLM reply validation and normalization."""

from __future__ import annotations

import json
from typing import Any

import pytest

from curve_scout.recommender.schema import (
    EmptyResponseError,
    ParseOutcome,
    RecommendationResponse,
    TokenRecommendation,
    normalize_action,
    normalize_risk,
    parse_recommendation_response,
)


def make_record(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "curveId": "0xcurve",
        "name": "Alpha",
        "symbol": "ALPHA",
        "score": 72,
        "explanation": "Rising holder count with balanced flow.",
        "contributingSources": ["on_chain", "technical"],
        "suggestedAction": "buy",
        "riskLevel": "medium",
        "reasoning": {"onChain": "Holders up.", "technical": "Uptrend."},
    }
    record.update(overrides)
    return record


def make_reply(records: list[Any], summary: Any = "Quiet market.") -> str:
    return json.dumps({"recommendations": records, "marketSummary": summary})


class TestNormalizers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Strong Buy", "strong_buy"),
            ("strong-buy", "strong_buy"),
            ("  HOLD ", "hold"),
            ("avoid", "avoid"),
            ("sell", None),
            (None, None),
        ],
    )
    def test_normalize_action(self, raw: Any, expected: str | None) -> None:
        assert normalize_action(raw) == expected

    def test_normalize_risk(self) -> None:
        assert normalize_risk("High") == "high"
        assert normalize_risk("unknown") is None


class TestParseValid:
    def test_conforming_reply(self) -> None:
        parsed = parse_recommendation_response(make_reply([make_record()]))

        assert parsed.outcome is ParseOutcome.VALID
        assert parsed.issues == ()
        assert parsed.is_usable
        rec = parsed.response.recommendations[0]
        assert rec.curve_id == "0xcurve"
        assert rec.score == 72
        assert rec.contributing_sources == ["on_chain", "technical"]
        assert rec.reasoning.on_chain == "Holders up."
        assert parsed.response.market_summary == "Quiet market."

    def test_code_fenced_reply(self) -> None:
        text = "```json\n" + make_reply([make_record()]) + "\n```"
        parsed = parse_recommendation_response(text)

        assert parsed.outcome is ParseOutcome.VALID
        assert len(parsed.response.recommendations) == 1

    def test_empty_recommendations_is_valid(self) -> None:
        parsed = parse_recommendation_response(make_reply([]))
        assert parsed.outcome is ParseOutcome.VALID
        assert parsed.response.recommendations == []


class TestParseNormalized:
    def test_action_and_risk_coercion(self) -> None:
        records = [make_record(suggestedAction="Strong Buy", riskLevel="unknown")]
        parsed = parse_recommendation_response(make_reply(records))

        assert parsed.outcome is ParseOutcome.NORMALIZED
        rec = parsed.response.recommendations[0]
        assert rec.suggested_action == "strong_buy"
        assert rec.risk_level == "medium"
        assert len(parsed.issues) == 2

    def test_unrecognized_action_defaults_to_hold(self) -> None:
        parsed = parse_recommendation_response(make_reply([make_record(suggestedAction="moon")]))
        assert parsed.response.recommendations[0].suggested_action == "hold"

    def test_missing_summary_and_recommendations(self) -> None:
        parsed = parse_recommendation_response("{}")

        assert parsed.outcome is ParseOutcome.NORMALIZED
        assert parsed.response.recommendations == []
        assert parsed.response.market_summary == ""

    def test_unknown_sources_dropped(self) -> None:
        record = make_record(contributingSources=["on_chain", "social", "on_chain"])
        parsed = parse_recommendation_response(make_reply([record]))

        assert parsed.outcome is ParseOutcome.NORMALIZED
        assert parsed.response.recommendations[0].contributing_sources == ["on_chain"]

    def test_truncated_to_ten(self) -> None:
        records = [make_record(curveId=f"0x{i}", score=90 - i) for i in range(14)]
        parsed = parse_recommendation_response(make_reply(records))

        assert parsed.outcome is ParseOutcome.NORMALIZED
        assert [r.curve_id for r in parsed.response.recommendations] == [f"0x{i}" for i in range(10)]

    def test_out_of_range_score_clamped(self) -> None:
        parsed = parse_recommendation_response(make_reply([make_record(score=140), make_record(score=-3)]))
        scores = [r.score for r in parsed.response.recommendations]
        assert scores == [100.0, 0.0]

    def test_invalid_records_dropped_not_whole_reply(self) -> None:
        records = [make_record(), {"name": "no id"}, "junk", make_record(curveId="0xother")]
        parsed = parse_recommendation_response(make_reply(records))

        assert parsed.outcome is ParseOutcome.NORMALIZED
        assert [r.curve_id for r in parsed.response.recommendations] == ["0xcurve", "0xother"]

    def test_non_finite_score_dropped(self) -> None:
        text = '{"recommendations": [' + json.dumps(make_record())[:-1] + ', "score": NaN}], "marketSummary": ""}'
        parsed = parse_recommendation_response(text)
        assert parsed.response.recommendations == []

    def test_non_object_reasoning_replaced(self) -> None:
        parsed = parse_recommendation_response(make_reply([make_record(reasoning="looks good")]))
        reasoning = parsed.response.recommendations[0].reasoning
        assert reasoning.on_chain is None
        assert reasoning.technical is None


class TestParseFailures:
    @pytest.mark.parametrize("text", ["", "   \n", None])
    def test_empty_reply_raises(self, text: str | None) -> None:
        with pytest.raises(EmptyResponseError):
            parse_recommendation_response(text)

    def test_non_json_rejected(self) -> None:
        parsed = parse_recommendation_response("I think ALPHA looks great!")

        assert parsed.outcome is ParseOutcome.REJECTED
        assert parsed.response is None
        assert not parsed.is_usable

    def test_json_array_rejected(self) -> None:
        parsed = parse_recommendation_response("[1, 2, 3]")
        assert parsed.outcome is ParseOutcome.REJECTED


class TestWireFormat:
    def test_serializes_camel_case(self) -> None:
        response = RecommendationResponse(
            recommendations=[TokenRecommendation.model_validate(make_record())],
            market_summary="Calm.",
        )
        data = response.to_json_dict()

        assert data["marketSummary"] == "Calm."
        rec = data["recommendations"][0]
        assert rec["curveId"] == "0xcurve"
        assert rec["suggestedAction"] == "buy"
        assert rec["riskLevel"] == "medium"
        assert rec["reasoning"]["onChain"] == "Holders up."

    def test_round_trips_through_validation(self) -> None:
        response = RecommendationResponse(
            recommendations=[TokenRecommendation.model_validate(make_record())],
            market_summary="Calm.",
        )
        assert RecommendationResponse.model_validate(response.to_json_dict()) == response
