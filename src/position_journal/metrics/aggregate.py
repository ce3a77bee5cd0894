from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from position_journal.models import Position, ensure_utc


@dataclass(frozen=True)
class DaySummary:
    day: str
    positions: int
    wins: int
    losses: int
    win_rate: float
    total_net_profit: float
    total_realized_pnl: float
    total_notional: float


@dataclass(frozen=True)
class MonthSummary:
    month: str
    positions: int
    wins: int
    losses: int
    win_rate: float
    total_net_profit: float
    total_realized_pnl: float
    total_notional: float


@dataclass(frozen=True)
class SymbolSummary:
    symbol: str
    positions: int
    wins: int
    losses: int
    win_rate: float
    total_net_profit: float
    total_realized_pnl: float
    total_notional: float


@dataclass(frozen=True)
class PositionBreakdown:
    by_day: list[DaySummary]
    by_month: list[MonthSummary]
    by_symbol: list[SymbolSummary]


@dataclass
class _Bucket:
    positions: int = 0
    wins: int = 0
    losses: int = 0
    total_net_profit: float = 0.0
    total_realized_pnl: float = 0.0
    # Entry-side notional only, not true turnover.
    total_notional: float = 0.0

    def add(self, position: Position) -> None:
        self.positions += 1
        if position.net_profit > 0:
            self.wins += 1
        elif position.net_profit < 0:
            self.losses += 1
        self.total_net_profit += position.net_profit
        self.total_realized_pnl += position.realized_pnl
        self.total_notional += position.entry_notional

    @property
    def win_rate(self) -> float:
        return self.wins / self.positions if self.positions else 0.0


def summarize_positions(positions: Iterable[Position]) -> PositionBreakdown:
    items = list(positions)
    return PositionBreakdown(
        by_day=summarize_by_day(items),
        by_month=summarize_by_month(items),
        by_symbol=summarize_by_symbol(items),
    )


def summarize_by_day(positions: Iterable[Position]) -> list[DaySummary]:
    buckets = _group(positions, day_key)
    return [
        DaySummary(day=key, **_bucket_fields(bucket))
        for key, bucket in sorted(buckets.items(), key=lambda item: item[0])
    ]


def summarize_by_month(positions: Iterable[Position]) -> list[MonthSummary]:
    buckets = _group(positions, month_key)
    return [
        MonthSummary(month=key, **_bucket_fields(bucket))
        for key, bucket in sorted(buckets.items(), key=lambda item: item[0])
    ]


def summarize_by_symbol(positions: Iterable[Position]) -> list[SymbolSummary]:
    buckets = _group(positions, symbol_key)
    rows = [SymbolSummary(symbol=key, **_bucket_fields(bucket)) for key, bucket in buckets.items()]
    # Leaderboard order; sort is stable so ties keep first-seen order.
    rows.sort(key=lambda row: row.total_net_profit, reverse=True)
    return rows


def symbol_key(position: Position) -> str:
    """Grouping symbol: surrounding whitespace stripped, blank means ungrouped."""
    return position.symbol.strip()


def day_key(position: Position) -> str:
    return _anchor_iso(position)[:10]


def month_key(position: Position) -> str:
    return _anchor_iso(position)[:7]


def _anchor_iso(position: Position) -> str:
    when = position.closed_at or position.opened_at
    return ensure_utc(when).isoformat()


def _group(positions: Iterable[Position], key_fn: Callable[[Position], str]) -> dict[str, _Bucket]:
    buckets: dict[str, _Bucket] = {}
    for position in positions:
        key = key_fn(position)
        if not key:
            continue
        buckets.setdefault(key, _Bucket()).add(position)
    return buckets


def _bucket_fields(bucket: _Bucket) -> dict[str, float | int]:
    return {
        "positions": bucket.positions,
        "wins": bucket.wins,
        "losses": bucket.losses,
        "win_rate": bucket.win_rate,
        "total_net_profit": bucket.total_net_profit,
        "total_realized_pnl": bucket.total_realized_pnl,
        "total_notional": bucket.total_notional,
    }
