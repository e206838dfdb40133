"""Prompt construction for the recommendation LLM call.

Both builders are pure string templates: identical inputs always render the
same prompt. The system prompt carries the output contract that
``parse_recommendation_response`` relies on; the user prompt only includes
evidence from enabled data sources.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from curve_scout.recommender.schema import MAX_RECOMMENDATIONS, SourceKey

if TYPE_CHECKING:
    from curve_scout.ingestor.fetcher import TokenData

SOURCE_DESCRIPTIONS: dict[str, str] = {
    "on_chain": "on-chain metrics (holder distribution, trade volume, bonding curve progress, creator behavior)",
    "technical": "technical indicators (price momentum, trade velocity, trend direction)",
}

SCORE_BANDS: tuple[tuple[str, str], ...] = (
    ("0-20", "Obvious scam or dead token"),
    ("21-40", "Low quality, poor metrics"),
    ("41-60", "Average, some positive signals but nothing compelling"),
    ("61-80", "Above average, multiple strong signals, worth watching"),
    ("81-100", "Exceptional, only if metrics are genuinely outstanding across dimensions"),
)

RISK_DEFINITIONS: tuple[tuple[str, str], ...] = (
    ("low", "Strong metrics, no red flags"),
    ("medium", "Mixed signals, some concerns"),
    ("high", "Significant risks but potential upside"),
    ("critical", "Major red flags, proceed with extreme caution"),
)

TOKEN_SEPARATOR = "\n\n---\n\n"


def _ordered_sources(enabled_sources: Sequence[SourceKey]) -> list[str]:
    # Render order is fixed regardless of how the caller lists the sources.
    return [key for key in SOURCE_DESCRIPTIONS if key in enabled_sources]


def build_system_prompt(enabled_sources: Sequence[SourceKey]) -> str:
    """Render the system prompt fixing the rubric and the output JSON shape."""
    sources = _ordered_sources(enabled_sources)
    described = " and ".join(SOURCE_DESCRIPTIONS[key] for key in sources)
    source_keys = ", ".join(f'"{key}"' for key in sources)
    bands = "\n".join(f"- {band}: {meaning}" for band, meaning in SCORE_BANDS)
    risks = "\n".join(f"- {level}: {meaning}" for level, meaning in RISK_DEFINITIONS)

    return f"""You are a skeptical DeFi analyst ranking bonding curve tokens on a launchpad. Your job is to identify the best current opportunities from a batch of tokens, using {described}.

Scoring calibration:
{bands}

Be skeptical by default. Most bonding curve tokens are low quality. Your output must be valid JSON matching the exact schema requested.

For each recommended token, explain:
1. WHY you ranked it (specific data points, not generic statements)
2. Which data sources contributed most to your assessment
3. A clear suggested action and risk level

Risk levels:
{risks}

Respond with a JSON object containing:
- "recommendations": array of up to {MAX_RECOMMENDATIONS} tokens, ranked by score descending
- "marketSummary": one paragraph summarizing the overall state of tokens you analyzed

Each recommendation must have:
- "curveId": the token's curve ID
- "name": token name
- "symbol": token symbol
- "score": 0-100
- "explanation": 2-3 sentences on why this token stands out
- "contributingSources": array of source keys that were most relevant ({source_keys})
- "suggestedAction": "strong_buy" | "buy" | "hold" | "avoid"
- "riskLevel": "low" | "medium" | "high" | "critical"
- "reasoning": object with optional keys "onChain" and "technical", each a brief analysis from that perspective"""


def _format_token_block(index: int, token: TokenData, sources: Sequence[str]) -> str:
    curve = token.curve
    onchain = token.onchain_metrics
    technical = token.technical_metrics

    parts = [
        f"Token #{index}: {curve.name} (${curve.symbol})",
        f"Curve ID: {curve.curve_id}",
        f"Age: {onchain.age_hours:.1f} hours",
        f"Graduated: {'Yes' if curve.graduated else 'No'}",
    ]

    if "on_chain" in sources:
        parts.extend(
            [
                "\nOn-chain metrics:",
                f"- Holders: {onchain.holder_count}",
                f"- Top 10 concentration: {onchain.top10_concentration * 100:.1f}%",
                f"- Buy/sell ratio: {onchain.buy_sell_ratio:.2f}",
                f"- Volume momentum: {onchain.volume_momentum:.2f}x",
                f"- Creator sold: {onchain.creator_sold_percent * 100:.1f}%",
                f"- Curve progress: {onchain.bonding_curve_progress * 100:.1f}%",
                f"- Total trades: {onchain.trade_count}",
            ]
        )

    if "technical" in sources:
        parts.extend(
            [
                "\nTechnical indicators:",
                f"- Price change (1h): {technical.price_change_1h * 100:.2f}%",
                f"- Price change (24h): {technical.price_change_24h * 100:.2f}%",
                f"- Trade velocity: {technical.trade_velocity:.2f}x",
                f"- Trend: {technical.trend_direction}",
            ]
        )

    return "\n".join(parts)


def build_user_prompt(tokens: Sequence[TokenData], enabled_sources: Sequence[SourceKey]) -> str:
    """Render the candidate batch, one block per token, in rank order."""
    sources = _ordered_sources(enabled_sources)
    blocks = [_format_token_block(i, token, sources) for i, token in enumerate(tokens, start=1)]
    return (
        f"Analyze these {len(tokens)} bonding curve tokens and recommend the top {MAX_RECOMMENDATIONS} "
        "(or fewer if most are low quality). Rank them by overall quality.\n\n"
        f"{TOKEN_SEPARATOR.join(blocks)}"
    )
