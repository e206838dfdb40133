"""Data models for the ingestor module.

Every numeric field coming from the subgraph passes through ``to_decimal``,
``to_float`` or ``to_int``. The subgraph serializes big numbers as strings
and occasionally returns nulls or junk; those conversions never raise and
never let a non-finite value into the domain records.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

TradeSide = Literal["BUY", "SELL"]


def to_decimal(value: Any, default: Decimal = Decimal(0)) -> Decimal:
    """Convert an external numeric value to a finite Decimal, or ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not result.is_finite():
        return default
    return result


def to_float(value: Any, default: float = 0.0) -> float:
    """Convert an external numeric value to a finite float, or ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    """Convert an external integer value (possibly a decimal string) to int."""
    number = to_decimal(value, Decimal(default))
    return int(number)


def to_timestamp(value: Any) -> datetime:
    """Convert epoch seconds (or milliseconds) to an aware UTC datetime.

    Unparsable values map to the epoch so they sort as the oldest possible
    trade instead of aborting the run.
    """
    seconds = to_float(value, 0.0)
    if seconds > 1e12:
        seconds /= 1000.0
    if seconds < 0:
        seconds = 0.0
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return datetime.fromtimestamp(0, tz=UTC)


@dataclass(frozen=True)
class Curve:
    """A tradable token instance on the bonding-curve launchpad."""

    curve_id: str
    name: str
    symbol: str
    total_volume_eth: Decimal
    last_price_usd: Decimal
    trade_count: int
    graduated: bool
    creator: str
    total_supply: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Curve:
        """Create a Curve from a subgraph ``curve`` entity."""
        creator = data.get("creator") or ""
        if isinstance(creator, dict):
            creator = creator.get("id") or ""
        supply = data.get("totalSupply")
        return cls(
            curve_id=str(data["id"]),
            name=str(data.get("name") or ""),
            symbol=str(data.get("symbol") or ""),
            total_volume_eth=to_decimal(data.get("totalVolumeEth")),
            last_price_usd=to_decimal(data.get("lastPriceUsd")),
            trade_count=to_int(data.get("tradeCount")),
            graduated=bool(data.get("graduated", False)),
            creator=str(creator).lower(),
            total_supply=to_decimal(supply) if supply is not None else None,
        )


@dataclass(frozen=True)
class Trade:
    """One executed buy or sell against a curve.

    Attributes:
        side: BUY or SELL.
        price_eth: Execution price per token in ETH.
        timestamp: Block time of the trade (UTC).
        trader: Trader wallet address (lowercase).
        amount_eth: ETH notional of the trade (0 when not reported).
        token_amount: Tokens moved by the trade (0 when not reported).
    """

    side: TradeSide
    price_eth: Decimal
    timestamp: datetime
    trader: str
    amount_eth: Decimal = Decimal(0)
    token_amount: Decimal = Decimal(0)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Trade:
        """Create a Trade from a subgraph ``trade`` entity."""
        side_raw = str(data.get("side", "")).upper()
        side: TradeSide = "SELL" if side_raw == "SELL" else "BUY"
        trader = data.get("trader") or ""
        if isinstance(trader, dict):
            trader = trader.get("id") or ""
        return cls(
            side=side,
            price_eth=to_decimal(data.get("priceEth")),
            timestamp=to_timestamp(data.get("timestamp")),
            trader=str(trader).lower(),
            amount_eth=to_decimal(data.get("amountEth")),
            token_amount=to_decimal(data.get("amountToken")),
        )

    @property
    def is_buy(self) -> bool:
        return self.side == "BUY"

    @property
    def epoch_seconds(self) -> float:
        return self.timestamp.timestamp()


@dataclass(frozen=True)
class Position:
    """A holder's current stake in a curve."""

    holder: str
    token_amount: Decimal
    realized_pnl_eth: Decimal | None = None
    unrealized_pnl_eth: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        """Create a Position from a subgraph ``position`` entity."""
        holder = data.get("user") or data.get("holder") or ""
        if isinstance(holder, dict):
            holder = holder.get("id") or ""
        realized = data.get("pnlEth")
        unrealized = data.get("unrealizedPnlEth")
        return cls(
            holder=str(holder).lower(),
            token_amount=to_decimal(data.get("tokenAmount")),
            realized_pnl_eth=to_decimal(realized) if realized is not None else None,
            unrealized_pnl_eth=to_decimal(unrealized) if unrealized is not None else None,
        )
