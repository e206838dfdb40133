"""On-chain metrics derived from a curve's trade and position history.

All metrics are computed from a single fetched snapshot (no I/O). Every
value is finite; fractions are clamped to [0, 1]. When there is no trade
history the metrics fall back to neutral values:

    age_hours            0.0
    buy_sell_ratio       1.0   (no directional pressure)
    volume_momentum      0.0   (no activity)
    creator_sold_percent 0.0

A token younger than one momentum window reports ``volume_momentum = 1.0``
(no signal) instead of an inflated ratio.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from curve_scout.ingestor.models import Curve, Position, Trade

MOMENTUM_WINDOW_HOURS = 1.0
TOP_HOLDERS = 10
DEFAULT_GRADUATION_THRESHOLD_ETH = Decimal("4")

NEUTRAL_BUY_SELL_RATIO = 1.0
NEUTRAL_MOMENTUM_NO_TRADES = 0.0
NEUTRAL_MOMENTUM_YOUNG_TOKEN = 1.0


@dataclass(frozen=True)
class OnChainMetrics:
    """Quantitative on-chain features for one curve.

    Attributes:
        age_hours: Hours since the oldest known trade (>= 0).
        holder_count: Positions with a positive balance.
        top10_concentration: Share of supply held by the 10 largest holders.
        buy_sell_ratio: Buy count over sell count.
        volume_momentum: Last-window ETH volume over the mean per window.
        creator_sold_percent: Fraction of the creator's bought tokens sold.
        bonding_curve_progress: Fraction of the graduation threshold reached.
        trade_count: Trades reported by the curve (falls back to fetched).
    """

    age_hours: float
    holder_count: int
    top10_concentration: float
    buy_sell_ratio: float
    volume_momentum: float
    creator_sold_percent: float
    bonding_curve_progress: float
    trade_count: int


def clamp_fraction(value: float) -> float:
    """Clamp to [0, 1], mapping non-finite input to 0."""
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def _finite(value: float, default: float = 0.0) -> float:
    return value if math.isfinite(value) else default


def compute_age_hours(trades: Sequence[Trade], *, now: datetime) -> float:
    """Hours elapsed since the oldest trade; order of ``trades`` is irrelevant."""
    if not trades:
        return 0.0
    oldest = min(t.epoch_seconds for t in trades)
    return max(0.0, (now.timestamp() - oldest) / 3600.0)


def compute_top10_concentration(
    positions: Sequence[Position],
    total_supply: Decimal | None = None,
) -> float:
    """Fraction of total supply controlled by the ten largest holders.

    ``total_supply`` defaults to the sum of all positive positions. An unknown
    or zero supply reports 0.
    """
    holdings = sorted(
        (p.token_amount for p in positions if p.token_amount > 0),
        reverse=True,
    )
    supply = total_supply if total_supply is not None and total_supply > 0 else sum(holdings, Decimal(0))
    if supply <= 0:
        return 0.0
    top = sum(holdings[:TOP_HOLDERS], Decimal(0))
    return clamp_fraction(float(top / supply))


def compute_buy_sell_ratio(trades: Sequence[Trade]) -> float:
    if not trades:
        return NEUTRAL_BUY_SELL_RATIO
    buys = sum(1 for t in trades if t.is_buy)
    sells = len(trades) - buys
    return buys / max(sells, 1)


def compute_volume_momentum(
    trades: Sequence[Trade],
    *,
    age_hours: float,
    now: datetime,
    window_hours: float = MOMENTUM_WINDOW_HOURS,
) -> float:
    """Recent-window ETH volume relative to the lifetime mean per window."""
    if not trades:
        return NEUTRAL_MOMENTUM_NO_TRADES
    if age_hours < window_hours:
        return NEUTRAL_MOMENTUM_YOUNG_TOKEN

    cutoff = now.timestamp() - window_hours * 3600.0
    total_volume = sum((float(t.amount_eth) for t in trades), 0.0)
    recent_volume = sum((float(t.amount_eth) for t in trades if t.epoch_seconds > cutoff), 0.0)

    windows = age_hours / window_hours
    mean_per_window = total_volume / windows
    if mean_per_window <= 0 or not math.isfinite(mean_per_window):
        return 0.0
    return _finite(recent_volume / mean_per_window)


def compute_creator_sold_percent(trades: Sequence[Trade], creator: str) -> float:
    """Fraction of the tokens the creator bought that the creator has sold."""
    if not creator:
        return 0.0
    creator = creator.lower()
    bought = Decimal(0)
    sold = Decimal(0)
    for t in trades:
        if t.trader != creator:
            continue
        if t.is_buy:
            bought += t.token_amount
        else:
            sold += t.token_amount
    if bought <= 0:
        return 0.0
    return clamp_fraction(float(sold / bought))


def compute_bonding_curve_progress(
    curve: Curve,
    *,
    graduation_threshold_eth: Decimal = DEFAULT_GRADUATION_THRESHOLD_ETH,
) -> float:
    if curve.graduated:
        return 1.0
    if graduation_threshold_eth <= 0:
        return 0.0
    return clamp_fraction(float(curve.total_volume_eth / graduation_threshold_eth))


def compute_onchain_metrics(
    curve: Curve,
    trades: Sequence[Trade],
    positions: Sequence[Position],
    *,
    now: datetime | None = None,
    graduation_threshold_eth: Decimal = DEFAULT_GRADUATION_THRESHOLD_ETH,
) -> OnChainMetrics:
    """Derive ``OnChainMetrics`` for a curve.

    Args:
        curve: Curve snapshot.
        trades: Recent trades (any order).
        positions: Current holder positions (any order).
        now: Reference time; defaults to the current UTC time.
        graduation_threshold_eth: ETH volume at which the curve graduates.

    Returns:
        OnChainMetrics with finite values and clamped fractions.
    """
    now = now or datetime.now(UTC)
    age_hours = compute_age_hours(trades, now=now)

    return OnChainMetrics(
        age_hours=age_hours,
        holder_count=sum(1 for p in positions if p.token_amount > 0),
        top10_concentration=compute_top10_concentration(positions, curve.total_supply),
        buy_sell_ratio=compute_buy_sell_ratio(trades),
        volume_momentum=compute_volume_momentum(trades, age_hours=age_hours, now=now),
        creator_sold_percent=compute_creator_sold_percent(trades, curve.creator),
        bonding_curve_progress=compute_bonding_curve_progress(
            curve, graduation_threshold_eth=graduation_threshold_eth
        ),
        trade_count=max(curve.trade_count, len(trades)),
    )
