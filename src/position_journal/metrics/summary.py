from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from position_journal.metrics.aggregate import symbol_key
from position_journal.models import Position, ensure_utc

PNL_PCT_EDGES = (-20.0, -10.0, -5.0, -2.0, -1.0, 0.0, 1.0, 2.0, 5.0, 10.0, 20.0)
PNL_PCT_LABELS = (
    "Below -20%",
    "-20%..-10%",
    "-10%..-5%",
    "-5%..-2%",
    "-2%..-1%",
    "-1%..0%",
    "0%..1%",
    "1%..2%",
    "2%..5%",
    "5%..10%",
    "10%..20%",
    "Above 20%",
)

# (label, inclusive upper bound in days)
DURATION_BUCKETS = (
    ("0-1d", 1.0),
    ("2-3d", 3.0),
    ("4-7d", 7.0),
    ("8-14d", 14.0),
    ("15+d", math.inf),
)
MINUTES_PER_DAY = 60 * 24


@dataclass(frozen=True)
class PositionRef:
    position_id: str
    symbol: str
    net_profit: float


@dataclass(frozen=True)
class PnlPctBucket:
    label: str
    count: int


@dataclass(frozen=True)
class DurationBucket:
    label: str
    count: int
    total_net_profit: float


@dataclass(frozen=True)
class PositionStats:
    positions: int
    wins: int
    losses: int
    breakevens: int
    win_rate: float
    total_net_profit: float
    gross_profit: float
    gross_loss: float
    profit_factor: float
    avg_win: float
    avg_loss: float
    expectancy: float
    avg_hold_minutes: float
    max_drawdown: float
    max_win_streak: int
    max_loss_streak: int
    best_position: PositionRef | None
    worst_position: PositionRef | None
    longest_hold_minutes: float
    shortest_hold_minutes: float
    pnl_pct_buckets: list[PnlPctBucket]
    duration_buckets: list[DurationBucket]


@dataclass(frozen=True)
class EquityPoint:
    timestamp: datetime
    position_id: str
    net_profit: float
    equity: float
    peak: float
    drawdown: float
    max_drawdown: float


@dataclass(frozen=True)
class SymbolPerformance:
    symbol: str
    positions: int
    wins: int
    losses: int
    win_rate: float
    total_net_profit: float
    gross_profit: float
    gross_loss: float
    profit_factor: float
    avg_win: float
    avg_loss: float
    avg_hold_minutes: float


def compute_position_stats(positions: Iterable[Position]) -> PositionStats:
    """Fold closed positions into scalar performance metrics.

    Positions without a close timestamp are ignored. Degenerate inputs
    produce 0 (or +inf for the profit factor of a loss-free record), never
    an exception or NaN.
    """
    ordered = _chronological(positions)
    profits = [position.net_profit for position in ordered]
    wins = [value for value in profits if value > 0]
    losses = [value for value in profits if value < 0]

    total = len(ordered)
    gross_profit = sum(wins)
    gross_loss = sum(losses)
    total_net_profit = sum(profits)

    holds = [position.hold_minutes for position in ordered if position.hold_minutes is not None]
    curve = compute_equity_curve(ordered)
    max_wins, max_losses = _max_streaks(profits)
    best, worst = _best_and_worst(ordered)

    return PositionStats(
        positions=total,
        wins=len(wins),
        losses=len(losses),
        breakevens=total - len(wins) - len(losses),
        win_rate=len(wins) / total if total else 0.0,
        total_net_profit=total_net_profit,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        profit_factor=profit_factor(gross_profit, gross_loss),
        avg_win=gross_profit / len(wins) if wins else 0.0,
        avg_loss=gross_loss / len(losses) if losses else 0.0,
        expectancy=total_net_profit / total if total else 0.0,
        avg_hold_minutes=sum(holds) / len(holds) if holds else 0.0,
        max_drawdown=curve[-1].max_drawdown if curve else 0.0,
        max_win_streak=max_wins,
        max_loss_streak=max_losses,
        best_position=best,
        worst_position=worst,
        longest_hold_minutes=max(holds) if holds else 0.0,
        shortest_hold_minutes=min(holds) if holds else 0.0,
        pnl_pct_buckets=compute_pnl_pct_buckets(ordered),
        duration_buckets=compute_duration_buckets(ordered),
    )


def compute_equity_curve(positions: Iterable[Position]) -> list[EquityPoint]:
    """Cumulative net profit over closed positions in close-time order.

    Single pass: ``peak`` never decreases and ``max_drawdown`` never increases
    along the returned points.
    """
    equity = 0.0
    peak = 0.0
    max_drawdown = 0.0
    points: list[EquityPoint] = []
    for position in _chronological(positions):
        equity += position.net_profit
        peak = max(peak, equity)
        drawdown = equity - peak
        max_drawdown = min(max_drawdown, drawdown)
        points.append(
            EquityPoint(
                timestamp=position.closed_at,
                position_id=position.position_id,
                net_profit=position.net_profit,
                equity=equity,
                peak=peak,
                drawdown=drawdown,
                max_drawdown=max_drawdown,
            )
        )
    return points


def compute_pnl_pct_buckets(positions: Iterable[Position]) -> list[PnlPctBucket]:
    """Histogram of net profit as a percentage of entry notional.

    A value sitting on an inner edge lands in the lower bucket. Positions
    without a positive entry notional are left out.
    """
    counts = [0] * len(PNL_PCT_LABELS)
    for position in positions:
        notional = position.entry_notional
        if not math.isfinite(notional) or notional <= 0:
            continue
        pct = position.net_profit / notional * 100.0
        if not math.isfinite(pct):
            continue
        counts[_pnl_pct_index(pct)] += 1
    return [PnlPctBucket(label=label, count=count) for label, count in zip(PNL_PCT_LABELS, counts)]


def compute_duration_buckets(positions: Iterable[Position]) -> list[DurationBucket]:
    grouped: dict[str, list[float]] = {label: [] for label, _ in DURATION_BUCKETS}
    for position in positions:
        hold = position.hold_minutes
        if hold is None:
            continue
        grouped[_duration_label(hold / MINUTES_PER_DAY)].append(position.net_profit)
    return [_duration_summary(label, values) for label, values in grouped.items()]


def compute_symbol_breakdown(positions: Iterable[Position]) -> list[SymbolPerformance]:
    buckets: dict[str, list[Position]] = {}
    for position in positions:
        symbol = symbol_key(position)
        if not symbol:
            continue
        buckets.setdefault(symbol, []).append(position)

    rows: list[SymbolPerformance] = []
    for symbol, items in buckets.items():
        stats = compute_position_stats(items)
        rows.append(
            SymbolPerformance(
                symbol=symbol,
                positions=stats.positions,
                wins=stats.wins,
                losses=stats.losses,
                win_rate=stats.win_rate,
                total_net_profit=stats.total_net_profit,
                gross_profit=stats.gross_profit,
                gross_loss=stats.gross_loss,
                profit_factor=stats.profit_factor,
                avg_win=stats.avg_win,
                avg_loss=stats.avg_loss,
                avg_hold_minutes=stats.avg_hold_minutes,
            )
        )
    rows.sort(key=lambda row: row.total_net_profit, reverse=True)
    return rows


def profit_factor(gross_profit: float, gross_loss: float) -> float:
    if abs(gross_loss) > 0:
        return gross_profit / abs(gross_loss)
    if gross_profit > 0:
        return math.inf
    return 0.0


def _chronological(positions: Iterable[Position]) -> list[Position]:
    closed = [position for position in positions if position.closed_at is not None]
    return sorted(closed, key=lambda position: ensure_utc(position.closed_at))


def _max_streaks(profits: list[float]) -> tuple[int, int]:
    max_wins = 0
    max_losses = 0
    current_wins = 0
    current_losses = 0

    for value in profits:
        if value > 0:
            current_wins += 1
            current_losses = 0
        elif value < 0:
            current_losses += 1
            current_wins = 0
        else:
            # Breakeven ends both runs.
            current_wins = 0
            current_losses = 0
        max_wins = max(max_wins, current_wins)
        max_losses = max(max_losses, current_losses)

    return max_wins, max_losses


def _best_and_worst(ordered: list[Position]) -> tuple[PositionRef | None, PositionRef | None]:
    best: Position | None = None
    worst: Position | None = None
    for position in ordered:
        if best is None or position.net_profit > best.net_profit:
            best = position
        if worst is None or position.net_profit < worst.net_profit:
            worst = position
    return _ref(best), _ref(worst)


def _ref(position: Position | None) -> PositionRef | None:
    if position is None:
        return None
    return PositionRef(
        position_id=position.position_id,
        symbol=position.symbol,
        net_profit=position.net_profit,
    )


def _pnl_pct_index(pct: float) -> int:
    if pct < PNL_PCT_EDGES[0]:
        return 0
    for idx, upper in enumerate(PNL_PCT_EDGES[1:], start=1):
        if pct <= upper:
            return idx
    return len(PNL_PCT_LABELS) - 1


def _duration_label(days: float) -> str:
    for label, upper in DURATION_BUCKETS:
        if days <= upper:
            return label
    return DURATION_BUCKETS[-1][0]


def _duration_summary(label: str, values: list[float]) -> DurationBucket:
    return DurationBucket(label=label, count=len(values), total_net_profit=sum(values))
