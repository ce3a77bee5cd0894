from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

ACTION_OPEN = "OPEN"
ACTION_CLOSE = "CLOSE"

SIDE_LONG = "LONG"
SIDE_SHORT = "SHORT"

STATUS_EXECUTED = "EXECUTED"
STATUS_CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class TradeEvent:
    event_id: str | None
    timestamp: datetime
    venue: str
    market: str
    symbol: str
    action: str
    side: str
    quantity: float
    price: float
    notional: float = 0.0
    realized_pnl: float | None = None
    net_profit: float | None = None
    status: str = STATUS_EXECUTED
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def identity_key(self) -> tuple[str, str, str, str]:
        return (self.venue, self.market, self.symbol, self.side)


@dataclass(frozen=True)
class TradeSlice:
    """Portion of one trade event applied to one lot."""

    event: TradeEvent
    quantity: float

    @property
    def action(self) -> str:
        return self.event.action

    @property
    def timestamp(self) -> datetime:
        return self.event.timestamp

    @property
    def price(self) -> float:
        return finite_or_zero(self.event.price)

    @property
    def share(self) -> float:
        if not math.isfinite(self.event.quantity) or self.event.quantity <= 0:
            return 0.0
        return self.quantity / self.event.quantity

    @property
    def allocated_realized_pnl(self) -> float:
        return finite_or_zero(self.event.realized_pnl) * self.share

    @property
    def allocated_net_profit(self) -> float:
        return finite_or_zero(self.event.net_profit) * self.share


@dataclass
class OpenLot:
    lot_id: str
    key: tuple[str, str, str, str]
    venue: str
    market: str
    symbol: str
    side: str
    opened_at: datetime
    remaining_quantity: float
    entry_notional: float
    entry_quantity: float
    trades: list[TradeSlice] = field(default_factory=list)

    @property
    def entry_price(self) -> float:
        if self.entry_quantity <= 0:
            return 0.0
        return self.entry_notional / self.entry_quantity

    @property
    def closed_quantity(self) -> float:
        return self.entry_quantity - self.remaining_quantity


@dataclass(frozen=True)
class Position:
    position_id: str
    venue: str
    market: str
    symbol: str
    side: str
    opened_at: datetime
    closed_at: datetime | None
    quantity: float
    entry_price: float
    exit_price: float
    realized_pnl: float
    net_profit: float
    # True when net_profit was filled in from realized_pnl because no
    # contributing event carried a net profit figure.
    net_profit_estimated: bool = False
    trades: tuple[TradeSlice, ...] = ()

    @property
    def entry_notional(self) -> float:
        return self.quantity * self.entry_price

    @property
    def hold_minutes(self) -> float | None:
        if self.closed_at is None:
            return None
        delta = ensure_utc(self.closed_at) - ensure_utc(self.opened_at)
        return max(0.0, delta.total_seconds() / 60.0)


@dataclass(frozen=True)
class MatchResult:
    positions: list[Position]
    open_lots_remaining: list[OpenLot]
    errors: list[str]
    skipped: int = 0


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def finite_or_zero(value: float | None) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return value
