from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from position_journal.models import STATUS_EXECUTED, TradeEvent, ensure_utc, finite_or_zero

UNKNOWN_SYMBOL = "UNKNOWN"


@dataclass(frozen=True)
class EventOverview:
    total_rows: int
    executed: int
    cancelled: int
    symbols: int
    first_at: datetime | None
    last_at: datetime | None
    total_notional: float
    total_realized_pnl: float
    total_net_profit: float


@dataclass(frozen=True)
class EventDaySummary:
    day: str
    trades: int
    total_net_profit: float
    total_realized_pnl: float


@dataclass(frozen=True)
class EventMonthSummary:
    month: str
    trades: int
    wins: int
    losses: int
    win_rate: float
    total_net_profit: float
    total_realized_pnl: float
    total_notional: float


@dataclass(frozen=True)
class EventSymbolSummary:
    symbol: str
    trades: int
    wins: int
    losses: int
    win_rate: float
    total_net_profit: float
    total_realized_pnl: float
    total_notional: float


@dataclass(frozen=True)
class EventBreakdown:
    by_day: list[EventDaySummary]
    by_month: list[EventMonthSummary]
    by_symbol: list[EventSymbolSummary]


@dataclass
class _EventBucket:
    trades: int = 0
    wins: int = 0
    losses: int = 0
    total_net_profit: float = 0.0
    total_realized_pnl: float = 0.0
    total_notional: float = 0.0

    def add(self, event: TradeEvent) -> None:
        self.trades += 1
        self.total_net_profit += finite_or_zero(event.net_profit)
        self.total_realized_pnl += finite_or_zero(event.realized_pnl)
        self.total_notional += finite_or_zero(event.notional)
        # Only rows reporting a net profit take part in win/loss.
        if event.net_profit is None:
            return
        if event.net_profit > 0:
            self.wins += 1
        elif event.net_profit < 0:
            self.losses += 1

    @property
    def win_rate(self) -> float:
        counted = self.wins + self.losses
        return self.wins / counted if counted else 0.0


def compute_event_overview(events: Iterable[TradeEvent]) -> EventOverview:
    """Row-level totals over the raw event batch, before any matching."""
    rows = list(events)
    executed = _executed(rows)
    times = sorted(ensure_utc(event.timestamp) for event in executed)
    return EventOverview(
        total_rows=len(rows),
        executed=len(executed),
        cancelled=len(rows) - len(executed),
        symbols=len({event.symbol for event in executed if event.symbol}),
        first_at=times[0] if times else None,
        last_at=times[-1] if times else None,
        total_notional=sum(finite_or_zero(event.notional) for event in executed),
        total_realized_pnl=sum(finite_or_zero(event.realized_pnl) for event in executed),
        total_net_profit=sum(finite_or_zero(event.net_profit) for event in executed),
    )


def summarize_events(events: Iterable[TradeEvent]) -> EventBreakdown:
    """Day, month and symbol tables counted in executed trade rows, not positions."""
    rows = list(events)
    return EventBreakdown(
        by_day=summarize_events_by_day(rows),
        by_month=summarize_events_by_month(rows),
        by_symbol=summarize_events_by_symbol(rows),
    )


def summarize_events_by_day(events: Iterable[TradeEvent]) -> list[EventDaySummary]:
    buckets = _group(events, lambda event: _event_iso(event)[:10])
    return [
        EventDaySummary(
            day=key,
            trades=bucket.trades,
            total_net_profit=bucket.total_net_profit,
            total_realized_pnl=bucket.total_realized_pnl,
        )
        for key, bucket in sorted(buckets.items(), key=lambda item: item[0])
    ]


def summarize_events_by_month(events: Iterable[TradeEvent]) -> list[EventMonthSummary]:
    buckets = _group(events, lambda event: _event_iso(event)[:7])
    return [
        EventMonthSummary(month=key, **_bucket_fields(bucket))
        for key, bucket in sorted(buckets.items(), key=lambda item: item[0])
    ]


def summarize_events_by_symbol(events: Iterable[TradeEvent]) -> list[EventSymbolSummary]:
    buckets = _group(events, lambda event: event.symbol.strip() or UNKNOWN_SYMBOL)
    rows = [EventSymbolSummary(symbol=key, **_bucket_fields(bucket)) for key, bucket in buckets.items()]
    rows.sort(key=lambda row: row.total_net_profit, reverse=True)
    return rows


def _executed(events: Iterable[TradeEvent]) -> list[TradeEvent]:
    return [event for event in events if event.status == STATUS_EXECUTED]


def _event_iso(event: TradeEvent) -> str:
    return ensure_utc(event.timestamp).isoformat()


def _group(
    events: Iterable[TradeEvent],
    key_fn: Callable[[TradeEvent], str],
) -> dict[str, _EventBucket]:
    buckets: dict[str, _EventBucket] = {}
    for event in _executed(events):
        buckets.setdefault(key_fn(event), _EventBucket()).add(event)
    return buckets


def _bucket_fields(bucket: _EventBucket) -> dict[str, float | int]:
    return {
        "trades": bucket.trades,
        "wins": bucket.wins,
        "losses": bucket.losses,
        "win_rate": bucket.win_rate,
        "total_net_profit": bucket.total_net_profit,
        "total_realized_pnl": bucket.total_realized_pnl,
        "total_notional": bucket.total_notional,
    }
