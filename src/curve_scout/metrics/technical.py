"""Technical indicators derived purely from a trade time series."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Literal

from curve_scout.ingestor.models import Trade

TrendDirection = Literal["up", "down", "flat"]

TREND_WINDOW = 10
TREND_MIN_TRADES = 3
TREND_THRESHOLD = Decimal("0.05")

ONE_HOUR_SECONDS = 3600
ONE_DAY_SECONDS = 86400


@dataclass(frozen=True)
class TechnicalMetrics:
    """Price-change and trend features for one curve."""

    price_change_1h: float
    price_change_24h: float
    trade_velocity: float
    trend_direction: TrendDirection


def _newest_first(trades: Sequence[Trade]) -> list[Trade]:
    return sorted(trades, key=lambda t: t.epoch_seconds, reverse=True)


def find_price_at(trades: Sequence[Trade], target_epoch: float) -> float | None:
    """Price of the newest trade at or before ``target_epoch``.

    ``trades`` must be newest-first. Falls back to the oldest trade when every
    trade is more recent than the target; returns None for an empty list.
    """
    for trade in trades:
        if trade.epoch_seconds <= target_epoch:
            return float(trade.price_eth)
    if trades:
        return float(trades[-1].price_eth)
    return None


def _relative_change(current: float, reference: float | None) -> float:
    if reference is None or reference <= 0 or not math.isfinite(reference):
        return 0.0
    change = (current - reference) / reference
    return change if math.isfinite(change) else 0.0


def detect_trend(trades: Sequence[Trade]) -> TrendDirection:
    """Trend across a newest-first window using a ±5% flat band."""
    if len(trades) < TREND_MIN_TRADES:
        return "flat"
    newest = trades[0].price_eth
    oldest = trades[-1].price_eth
    if oldest <= 0 or not oldest.is_finite():
        return "flat"
    change = (newest - oldest) / oldest
    if change > TREND_THRESHOLD:
        return "up"
    if change < -TREND_THRESHOLD:
        return "down"
    return "flat"


def compute_technical_metrics(
    trades: Sequence[Trade],
    age_hours: float,
    *,
    now: datetime | None = None,
) -> TechnicalMetrics:
    """Derive ``TechnicalMetrics`` from recent trades.

    Args:
        trades: Recent trades. They are re-sorted newest-first here.
        age_hours: Token age in hours, as reported by the on-chain metrics.
        now: Reference time; defaults to the current UTC time.
    """
    if not trades:
        return TechnicalMetrics(
            price_change_1h=0.0,
            price_change_24h=0.0,
            trade_velocity=0.0,
            trend_direction="flat",
        )

    now_epoch = (now or datetime.now(UTC)).timestamp()
    ordered = _newest_first(trades)
    current_price = float(ordered[0].price_eth)

    one_hour_ago = now_epoch - ONE_HOUR_SECONDS
    one_day_ago = now_epoch - ONE_DAY_SECONDS
    price_change_1h = _relative_change(current_price, find_price_at(ordered, one_hour_ago))
    price_change_24h = _relative_change(current_price, find_price_at(ordered, one_day_ago))

    last_hour_trades = sum(1 for t in ordered if t.epoch_seconds > one_hour_ago)
    avg_hourly_trades = len(ordered) / age_hours if age_hours > 0 else 0.0
    trade_velocity = last_hour_trades / avg_hourly_trades if avg_hourly_trades > 0 else 0.0
    if not math.isfinite(trade_velocity):
        trade_velocity = 0.0

    return TechnicalMetrics(
        price_change_1h=price_change_1h,
        price_change_24h=price_change_24h,
        trade_velocity=trade_velocity,
        trend_direction=detect_trend(ordered[:TREND_WINDOW]),
    )
