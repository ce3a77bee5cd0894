from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, is_dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from position_journal.config.app_config import MatchingSettings
from position_journal.metrics.aggregate import PositionBreakdown, summarize_positions
from position_journal.metrics.overview import (
    EventBreakdown,
    EventOverview,
    compute_event_overview,
    summarize_events,
)
from position_journal.metrics.summary import (
    EquityPoint,
    PositionStats,
    SymbolPerformance,
    compute_equity_curve,
    compute_position_stats,
    compute_symbol_breakdown,
)
from position_journal.models import MatchResult, OpenLot, Position, TradeEvent, TradeSlice
from position_journal.reconstruct.positions import build_positions


@dataclass(frozen=True)
class JournalReport:
    overview: EventOverview
    event_breakdown: EventBreakdown
    match: MatchResult
    breakdown: PositionBreakdown
    stats: PositionStats
    symbol_performance: list[SymbolPerformance]
    equity_curve: list[EquityPoint]


def build_report(
    events: Iterable[TradeEvent],
    *,
    settings: MatchingSettings | None = None,
) -> JournalReport:
    matching = settings or MatchingSettings()
    event_list = list(events)
    match = build_positions(
        event_list,
        epsilon=matching.epsilon,
        net_profit_fallback=matching.net_profit_fallback,
    )
    return JournalReport(
        overview=compute_event_overview(event_list),
        event_breakdown=summarize_events(event_list),
        match=match,
        breakdown=summarize_positions(match.positions),
        stats=compute_position_stats(match.positions),
        symbol_performance=compute_symbol_breakdown(match.positions),
        equity_curve=compute_equity_curve(match.positions),
    )


def report_payload(report: JournalReport, *, include_trades: bool = True) -> dict[str, Any]:
    """Plain JSON-ready view of a report.

    Datetimes become ISO-8601 strings and non-finite floats become ``None``
    since strict JSON has no infinity.
    """
    match = report.match
    return {
        "overview": _plain(report.overview),
        "events_by_day": [_plain(row) for row in report.event_breakdown.by_day],
        "events_by_month": [_plain(row) for row in report.event_breakdown.by_month],
        "events_by_symbol": [_plain(row) for row in report.event_breakdown.by_symbol],
        "positions": [_position_payload(item, include_trades) for item in match.positions],
        "positions_count": len(match.positions),
        "open_lots": [_lot_payload(item, include_trades) for item in match.open_lots_remaining],
        "open_positions_count": len(match.open_lots_remaining),
        "errors": list(match.errors),
        "skipped_events": match.skipped,
        "by_day": [_plain(row) for row in report.breakdown.by_day],
        "by_month": [_plain(row) for row in report.breakdown.by_month],
        "by_symbol": [_plain(row) for row in report.breakdown.by_symbol],
        "stats": _plain(report.stats),
        "symbol_performance": [_plain(row) for row in report.symbol_performance],
        "equity_curve": [_plain(point) for point in report.equity_curve],
    }


def _position_payload(position: Position, include_trades: bool) -> dict[str, Any]:
    payload = {
        item.name: _plain(getattr(position, item.name))
        for item in fields(position)
        if item.name != "trades"
    }
    payload["hold_minutes"] = _plain(position.hold_minutes)
    if include_trades:
        payload["trades"] = [_slice_payload(item) for item in position.trades]
    return payload


def _lot_payload(lot: OpenLot, include_trades: bool) -> dict[str, Any]:
    payload = {
        "lot_id": lot.lot_id,
        "venue": lot.venue,
        "market": lot.market,
        "symbol": lot.symbol,
        "side": lot.side,
        "opened_at": _plain(lot.opened_at),
        "remaining_quantity": lot.remaining_quantity,
        "entry_quantity": lot.entry_quantity,
        "entry_price": _plain(lot.entry_price),
    }
    if include_trades:
        payload["trades"] = [_slice_payload(item) for item in lot.trades]
    return payload


def _slice_payload(item: TradeSlice) -> dict[str, Any]:
    payload = _plain(item.event)
    payload["slice_quantity"] = item.quantity
    return payload


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {key: _plain(item) for key, item in asdict(value).items()}
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value
