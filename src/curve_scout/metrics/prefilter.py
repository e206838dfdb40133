"""Cheap composite pre-filter applied before the LLM ranking.

The score is an unweighted sum of raw magnitudes:

    score = trade_count + holder_count + volume_momentum + (1 - top10_concentration)

Trade and holder counts are unbounded while the other two terms live near
[0, 1], so in practice the counts dominate the ordering. The formula is kept
as-is for compatibility with previously produced shortlists; the LLM performs
the qualitative ranking downstream.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from curve_scout.metrics.onchain import OnChainMetrics

if TYPE_CHECKING:
    from curve_scout.ingestor.fetcher import TokenData

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 20


def prefilter_score(metrics: OnChainMetrics) -> float:
    """Composite pre-filter score (higher is more interesting)."""
    return (
        float(metrics.trade_count)
        + float(metrics.holder_count)
        + metrics.volume_momentum
        + (1.0 - metrics.top10_concentration)
    )


def select_top_candidates(
    tokens: Sequence[TokenData],
    *,
    k: int = DEFAULT_TOP_K,
) -> list[TokenData]:
    """Return the ``min(k, len(tokens))`` highest-scoring candidates.

    Sorting is stable, so ties keep the upstream (fetch) order. Candidates
    sharing a curve id are only kept once.
    """
    if k <= 0:
        return []

    seen: set[str] = set()
    unique: list[TokenData] = []
    for token in tokens:
        if token.curve.curve_id in seen:
            continue
        seen.add(token.curve.curve_id)
        unique.append(token)

    ranked = sorted(unique, key=lambda t: prefilter_score(t.onchain_metrics), reverse=True)
    selected = ranked[:k]
    logger.debug("Pre-filter kept %d of %d candidates", len(selected), len(tokens))
    return selected
