from __future__ import annotations

import logging
import math
from collections import deque
from typing import Iterable

from position_journal.models import (
    ACTION_CLOSE,
    ACTION_OPEN,
    STATUS_EXECUTED,
    MatchResult,
    OpenLot,
    Position,
    TradeEvent,
    TradeSlice,
    ensure_utc,
    finite_or_zero,
)

logger = logging.getLogger(__name__)

EPSILON = 1e-8

LotKey = tuple[str, str, str, str]


def build_positions(
    events: Iterable[TradeEvent],
    *,
    epsilon: float = EPSILON,
    net_profit_fallback: bool = True,
) -> MatchResult:
    """Match OPEN/CLOSE events FIFO per venue|market|symbol|side into positions.

    A position is emitted only when the lot backing it is fully closed. Lots
    still holding inventory after the sweep are returned as-is. Bad rows never
    raise: unmatched CLOSE quantity becomes an error string, malformed rows
    are counted in ``skipped``.
    """
    ordered, skipped = _prepare_events(events)
    queues: dict[LotKey, deque[OpenLot]] = {}
    # Per-key lot counter; never reset by pops so ids stay unique.
    opened: dict[LotKey, int] = {}
    positions: list[Position] = []
    errors: list[str] = []

    for event in ordered:
        if not _is_matchable(event):
            skipped += 1
            continue
        key = event.identity_key
        queue = queues.setdefault(key, deque())
        if event.action == ACTION_OPEN:
            opened[key] = opened.get(key, 0) + 1
            queue.append(_open_lot(event, opened[key]))
            continue

        error = _apply_close(
            queue,
            event,
            positions,
            epsilon=epsilon,
            net_profit_fallback=net_profit_fallback,
        )
        if error is not None:
            logger.warning(error)
            errors.append(error)

    open_lots = [lot for queue in queues.values() for lot in queue]
    logger.debug(
        "Matched %d positions, %d open lots, %d errors, %d skipped events.",
        len(positions),
        len(open_lots),
        len(errors),
        skipped,
    )
    return MatchResult(
        positions=positions,
        open_lots_remaining=open_lots,
        errors=errors,
        skipped=skipped,
    )


def _prepare_events(events: Iterable[TradeEvent]) -> tuple[list[TradeEvent], int]:
    executed: list[TradeEvent] = []
    skipped = 0
    for event in events:
        if event.status != STATUS_EXECUTED:
            continue
        if not event.symbol.strip() or not event.side:
            skipped += 1
            continue
        executed.append(event)
    # sorted() is stable: equal timestamps keep their input order.
    return sorted(executed, key=_sort_key), skipped


def _sort_key(event: TradeEvent):
    return ensure_utc(event.timestamp)


def _is_matchable(event: TradeEvent) -> bool:
    if event.action not in (ACTION_OPEN, ACTION_CLOSE):
        return False
    return math.isfinite(event.quantity) and event.quantity > 0


def _open_lot(event: TradeEvent, sequence: int) -> OpenLot:
    anchor = event.event_id or event.timestamp.isoformat()
    return OpenLot(
        lot_id=f"{event.symbol}-{event.side}-{anchor}-{sequence}",
        key=event.identity_key,
        venue=event.venue,
        market=event.market,
        symbol=event.symbol,
        side=event.side,
        opened_at=event.timestamp,
        remaining_quantity=event.quantity,
        entry_notional=event.quantity * finite_or_zero(event.price),
        entry_quantity=event.quantity,
        trades=[TradeSlice(event=event, quantity=event.quantity)],
    )


def _apply_close(
    queue: deque[OpenLot],
    event: TradeEvent,
    positions: list[Position],
    *,
    epsilon: float,
    net_profit_fallback: bool,
) -> str | None:
    remaining_to_close = event.quantity
    while remaining_to_close > epsilon and queue:
        lot = queue[0]
        slice_qty = min(lot.remaining_quantity, remaining_to_close)
        lot.trades.append(TradeSlice(event=event, quantity=slice_qty))
        lot.remaining_quantity -= slice_qty
        remaining_to_close -= slice_qty
        if lot.remaining_quantity <= epsilon:
            positions.append(_finalize_lot(lot, net_profit_fallback=net_profit_fallback))
            queue.popleft()

    if remaining_to_close > epsilon:
        return (
            "CLOSE without matching OPEN inventory: "
            f"{event.symbol} {event.side} at {event.timestamp.isoformat()}"
        )
    return None


def _finalize_lot(lot: OpenLot, *, net_profit_fallback: bool) -> Position:
    exit_notional = 0.0
    exit_qty = 0.0
    realized = 0.0
    net = 0.0
    closed_at = None

    for item in lot.trades:
        if item.action != ACTION_CLOSE:
            continue
        exit_notional += item.quantity * item.price
        exit_qty += item.quantity
        realized += item.allocated_realized_pnl
        net += item.allocated_net_profit
        closed_at = item.timestamp

    estimated = False
    if net_profit_fallback and net == 0 and realized != 0:
        # Approximation: fees are unknown when the source only reports realized PnL.
        net = realized
        estimated = True

    return Position(
        position_id=lot.lot_id,
        venue=lot.venue,
        market=lot.market,
        symbol=lot.symbol,
        side=lot.side,
        opened_at=lot.opened_at,
        closed_at=closed_at,
        quantity=lot.entry_quantity,
        entry_price=lot.entry_price,
        exit_price=exit_notional / exit_qty if exit_qty else 0.0,
        realized_pnl=realized,
        net_profit=net,
        net_profit_estimated=estimated,
        trades=tuple(lot.trades),
    )
