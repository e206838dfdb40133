"""Metric derivation layer - On-chain and technical features per curve."""

from curve_scout.metrics.onchain import OnChainMetrics, compute_onchain_metrics
from curve_scout.metrics.technical import TechnicalMetrics, compute_technical_metrics

__all__ = [
    "OnChainMetrics",
    "TechnicalMetrics",
    "compute_onchain_metrics",
    "compute_technical_metrics",
]
