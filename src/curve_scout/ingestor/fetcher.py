"""Candidate fetcher with bounded, batched concurrency.

Per-candidate detail (trades + positions) is fetched in fixed-size batches:
batches run one after another, members of a batch run concurrently in a
task group. The first member failure cancels the rest of the batch and
aborts the whole fan-out with ``FetchError``; nothing is retried and no
partial record is synthesized for the failing candidate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol

from curve_scout.ingestor.models import Curve, Position, Trade
from curve_scout.metrics.onchain import (
    DEFAULT_GRADUATION_THRESHOLD_ETH,
    OnChainMetrics,
    compute_onchain_metrics,
)
from curve_scout.metrics.technical import TechnicalMetrics, compute_technical_metrics

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_TRADES_LIMIT = 100
DEFAULT_POSITIONS_LIMIT = 50


class CurveDataSource(Protocol):
    """Upstream source of curves, trades and positions."""

    async def fetch_curves(self, sort_key: str, limit: int) -> list[Curve]: ...

    async def fetch_trades(self, curve_id: str, limit: int) -> list[Trade]: ...

    async def fetch_positions(self, curve_id: str, limit: int) -> list[Position]: ...


class FetchError(Exception):
    """Raised when the candidate list or a candidate's detail cannot be fetched."""

    def __init__(self, message: str, curve_id: str | None = None) -> None:
        super().__init__(message)
        self.curve_id = curve_id


def _first_error(group: BaseExceptionGroup) -> BaseException:
    first = group.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return _first_error(first)
    return first


@dataclass(frozen=True)
class TokenData:
    """Everything the scorer and prompt builder need for one candidate."""

    curve: Curve
    trades: tuple[Trade, ...]
    positions: tuple[Position, ...]
    onchain_metrics: OnChainMetrics
    technical_metrics: TechnicalMetrics


class CandidateFetcher:
    """Fetches the active candidate universe and per-candidate detail.

    Example:
        ```python
        fetcher = CandidateFetcher(subgraph_client)
        curves = await fetcher.fetch_candidates("totalVolumeEth", 50)
        tokens = await fetcher.fetch_token_data(curves)
        ```
    """

    def __init__(
        self,
        source: CurveDataSource,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        trades_limit: int = DEFAULT_TRADES_LIMIT,
        positions_limit: int = DEFAULT_POSITIONS_LIMIT,
        graduation_threshold_eth: Decimal = DEFAULT_GRADUATION_THRESHOLD_ETH,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._source = source
        self._batch_size = batch_size
        self._trades_limit = trades_limit
        self._positions_limit = positions_limit
        self._graduation_threshold_eth = graduation_threshold_eth

    async def fetch_candidates(self, sort_key: str, limit: int) -> list[Curve]:
        """Fetch up to ``limit`` curves ranked by ``sort_key``, minus graduated ones."""
        try:
            curves = await self._source.fetch_curves(sort_key, limit)
        except Exception as e:
            raise FetchError(f"Failed to fetch candidate curves: {e}") from e

        active = [c for c in curves if not c.graduated]
        logger.info(
            "Fetched %d curves (%d active) ordered by %s",
            len(curves),
            len(active),
            sort_key,
        )
        return active

    async def fetch_token_data(
        self,
        curves: Sequence[Curve],
        *,
        now: datetime | None = None,
    ) -> list[TokenData]:
        """Fetch detail and compute metrics for every curve, in input order."""
        now = now or datetime.now(UTC)
        results: list[TokenData] = []

        for start in range(0, len(curves), self._batch_size):
            batch = curves[start : start + self._batch_size]
            logger.debug(
                "Fetching detail batch %d-%d of %d",
                start + 1,
                start + len(batch),
                len(curves),
            )
            try:
                async with asyncio.TaskGroup() as tg:
                    tasks = [tg.create_task(self._fetch_one(curve, now=now)) for curve in batch]
            except ExceptionGroup as eg:
                # Siblings are already cancelled; surface the first failure.
                raise _first_error(eg)
            results.extend(task.result() for task in tasks)

        return results

    async def _fetch_one(self, curve: Curve, *, now: datetime) -> TokenData:
        try:
            async with asyncio.TaskGroup() as tg:
                trades_task = tg.create_task(self._source.fetch_trades(curve.curve_id, self._trades_limit))
                positions_task = tg.create_task(
                    self._source.fetch_positions(curve.curve_id, self._positions_limit)
                )
        except ExceptionGroup as eg:
            e = _first_error(eg)
            raise FetchError(
                f"Failed to fetch detail for curve {curve.curve_id}: {e}",
                curve_id=curve.curve_id,
            ) from e
        trades = trades_task.result()
        positions = positions_task.result()

        onchain = compute_onchain_metrics(
            curve,
            trades,
            positions,
            now=now,
            graduation_threshold_eth=self._graduation_threshold_eth,
        )
        technical = compute_technical_metrics(trades, onchain.age_hours, now=now)
        return TokenData(
            curve=curve,
            trades=tuple(trades),
            positions=tuple(positions),
            onchain_metrics=onchain,
            technical_metrics=technical,
        )
