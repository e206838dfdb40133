"""Async GraphQL client for the launchpad subgraph.

Implements the ``CurveDataSource`` protocol used by the candidate fetcher.
Trades are requested newest-first and positions largest-first; the client
does not retry, a failed query raises ``SubgraphError``.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from curve_scout.ingestor.models import Curve, Position, Trade

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0

CURVES_QUERY = """
query Curves($orderBy: Curve_orderBy!, $first: Int!) {
  curves(first: $first, orderBy: $orderBy, orderDirection: desc) {
    id
    name
    symbol
    totalVolumeEth
    lastPriceUsd
    tradeCount
    graduated
    creator
  }
}
"""

TRADES_QUERY = """
query Trades($curve: String!, $first: Int!) {
  trades(first: $first, where: {curve: $curve}, orderBy: timestamp, orderDirection: desc) {
    side
    priceEth
    amountEth
    amountToken
    timestamp
    trader
  }
}
"""

POSITIONS_QUERY = """
query Positions($curve: String!, $first: Int!) {
  positions(first: $first, where: {curve: $curve}, orderBy: tokenAmount, orderDirection: desc) {
    user
    tokenAmount
    pnlEth
  }
}
"""


class SubgraphError(Exception):
    """Raised when a subgraph query fails or returns GraphQL errors."""


class SubgraphClient:
    """Thin GraphQL client over a shared aiohttp session.

    Example:
        ```python
        async with aiohttp.ClientSession() as session:
            client = SubgraphClient(url, session=session)
            curves = await client.fetch_curves("totalVolumeEth", 50)
        ```
    """

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._url = url
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def _query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        payload = {"query": query, "variables": variables}
        try:
            async with self._session.post(self._url, json=payload, timeout=self._timeout) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise SubgraphError(f"Subgraph HTTP {resp.status}: {text[:200]}")
                body = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise SubgraphError(f"Subgraph request failed: {e}") from e
        except TimeoutError as e:
            raise SubgraphError("Subgraph request timed out") from e

        if not isinstance(body, dict):
            raise SubgraphError("Unexpected subgraph response shape")
        errors = body.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else errors
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise SubgraphError(f"Subgraph query error: {message}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise SubgraphError("Subgraph response missing data")
        return data

    async def fetch_curves(self, sort_key: str, limit: int) -> list[Curve]:
        data = await self._query(CURVES_QUERY, {"orderBy": sort_key, "first": limit})
        curves = [Curve.from_dict(row) for row in data.get("curves") or []]
        logger.debug("Fetched %d curves ordered by %s", len(curves), sort_key)
        return curves

    async def fetch_trades(self, curve_id: str, limit: int) -> list[Trade]:
        data = await self._query(TRADES_QUERY, {"curve": curve_id, "first": limit})
        return [Trade.from_dict(row) for row in data.get("trades") or []]

    async def fetch_positions(self, curve_id: str, limit: int) -> list[Position]:
        data = await self._query(POSITIONS_QUERY, {"curve": curve_id, "first": limit})
        return [Position.from_dict(row) for row in data.get("positions") or []]
