"""Fixed demonstration shortlist used when a live analysis fails."""

from __future__ import annotations

from curve_scout.recommender.schema import Reasoning, RecommendationResponse, TokenRecommendation

DEMO_RECOMMENDATION = RecommendationResponse(
    market_summary=(
        "The launchpad shows moderate activity with a mix of new launches and established tokens. "
        "Most tokens have high concentration risk. A few stand out with healthier holder "
        "distributions and sustained trading momentum."
    ),
    recommendations=[
        TokenRecommendation(
            curve_id="demo-1",
            name="BaseBuilder",
            symbol="BBLDR",
            score=71,
            explanation=(
                "Strong holder diversification with 52 unique holders and low top-10 concentration "
                "at 48%. Volume momentum is 2.1x average, indicating growing interest. Curve is at "
                "42% progress with steady accumulation."
            ),
            contributing_sources=["on_chain", "technical"],
            suggested_action="buy",
            risk_level="medium",
            reasoning=Reasoning(
                on_chain="52 holders, 48% top-10 concentration, creator retained position. Healthy buy/sell ratio of 2.8.",
                technical="Price up 12% in the last hour with accelerating trade velocity at 2.1x.",
            ),
        ),
        TokenRecommendation(
            curve_id="demo-2",
            name="DeFi Scout",
            symbol="SCOUT",
            score=64,
            explanation=(
                "38 holders with moderate concentration and a creator that has not sold. Trading "
                "activity is consistent though not explosive."
            ),
            contributing_sources=["on_chain"],
            suggested_action="hold",
            risk_level="medium",
            reasoning=Reasoning(
                on_chain="38 holders, 58% top-10 concentration. Creator has not sold. Curve at 28% progress.",
            ),
        ),
        TokenRecommendation(
            curve_id="demo-3",
            name="MemeVault",
            symbol="MVLT",
            score=45,
            explanation=(
                "High trading volume but concerning holder concentration at 72%. Buy/sell ratio is "
                "dropping, suggesting early buyers are taking profit."
            ),
            contributing_sources=["on_chain", "technical"],
            suggested_action="avoid",
            risk_level="high",
            reasoning=Reasoning(
                on_chain="28 holders, 72% top-10 concentration. Creator sold 15% of position.",
                technical="Price down 8% in last hour. Trend direction is down with declining velocity.",
            ),
        ),
    ],
)
