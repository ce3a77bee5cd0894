"""Shared builders for trade events and positions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from position_journal.models import Position, TradeEvent

BASE_TIME = datetime(2025, 1, 2, 14, 30, tzinfo=timezone.utc)


@pytest.fixture(name="make_event")
def make_event_fixture():
    """Build TradeEvents with sensible defaults; `minutes` offsets from BASE_TIME."""
    ids = count(1)

    def _make(
        action: str,
        quantity: float,
        price: float,
        *,
        minutes: float = 0,
        symbol: str = "BTCUSDT",
        side: str = "LONG",
        realized_pnl: float | None = None,
        net_profit: float | None = None,
        status: str = "EXECUTED",
        venue: str = "bitget",
        market: str = "futures",
        event_id: str | None = None,
    ) -> TradeEvent:
        return TradeEvent(
            event_id=event_id or f"E{next(ids)}",
            timestamp=BASE_TIME + timedelta(minutes=minutes),
            venue=venue,
            market=market,
            symbol=symbol,
            action=action,
            side=side,
            quantity=quantity,
            price=price,
            notional=quantity * price,
            realized_pnl=realized_pnl,
            net_profit=net_profit,
            status=status,
        )

    return _make


@pytest.fixture(name="make_position")
def make_position_fixture():
    """Build closed Positions; `closed_minutes` orders them on the equity curve."""
    ids = count(1)

    def _make(
        net_profit: float,
        *,
        closed_minutes: float | None = 60,
        opened_minutes: float = 0,
        symbol: str = "BTCUSDT",
        quantity: float = 1.0,
        entry_price: float = 100.0,
        realized_pnl: float | None = None,
        opened_at: datetime | None = None,
        closed_at: datetime | None = None,
    ) -> Position:
        opened = opened_at or BASE_TIME + timedelta(minutes=opened_minutes)
        closed = closed_at
        if closed is None and closed_minutes is not None:
            closed = BASE_TIME + timedelta(minutes=closed_minutes)
        return Position(
            position_id=f"P{next(ids)}",
            venue="bitget",
            market="futures",
            symbol=symbol,
            side="LONG",
            opened_at=opened,
            closed_at=closed,
            quantity=quantity,
            entry_price=entry_price,
            exit_price=entry_price,
            realized_pnl=net_profit if realized_pnl is None else realized_pnl,
            net_profit=net_profit,
        )

    return _make
