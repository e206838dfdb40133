"""Data ingestion layer - Launchpad curves, trades and positions."""

from curve_scout.ingestor.models import Curve, Position, Trade
from curve_scout.ingestor.subgraph import SubgraphClient, SubgraphError

__all__ = [
    "Curve",
    "Position",
    "SubgraphClient",
    "SubgraphError",
    "Trade",
]
