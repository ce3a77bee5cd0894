from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from position_journal.models import STATUS_EXECUTED, TradeEvent


@dataclass(frozen=True)
class IngestResult:
    events: list[TradeEvent]
    skipped: int = 0


def load_events(path: str | Path) -> IngestResult:
    source_path = Path(path)
    if source_path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported file type: {source_path.suffix}")
    with source_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return load_events_payload(payload)


def load_events_payload(payload: Any) -> IngestResult:
    records = _extract_records(payload)
    events, skipped = _normalize_records(records)
    return IngestResult(events=events, skipped=skipped)


def _extract_records(payload: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("trades", "events", "data"):
            if key in payload and isinstance(payload[key], list):
                return payload[key]
    raise ValueError("Unsupported JSON format for trade events payload")


def _normalize_records(records: Iterable[Any]) -> tuple[list[TradeEvent], int]:
    events: list[TradeEvent] = []
    skipped = 0
    for raw in records:
        if not isinstance(raw, Mapping):
            skipped += 1
            continue
        try:
            events.append(normalize_event(raw))
        except ValueError:
            skipped += 1
    return events, skipped


def normalize_event(raw: Mapping[str, Any]) -> TradeEvent:
    """Type one already-normalized event record.

    Only typing happens here; rows with a blank symbol, side or an odd action
    are passed through so the matcher applies its own skip policy.
    """
    event_id = _pick(raw, "id", "event_id", "eventId", "order_id", "orderId")
    payload = raw.get("raw")
    return TradeEvent(
        event_id=str(event_id) if event_id is not None else None,
        timestamp=_parse_timestamp(_pick(raw, "timestamp", "time", "ts")),
        venue=_text(_pick(raw, "venue", "exchange"), default="unknown").lower(),
        market=_text(_pick(raw, "market", "marketType", "market_type"), default="futures").lower(),
        symbol=_text(_pick(raw, "symbol")),
        action=_text(_pick(raw, "action")).upper(),
        side=_text(_pick(raw, "side", "positionSide", "position_side")).upper(),
        quantity=_to_float(_pick(raw, "quantity", "qty", "size")),
        price=_to_float(_pick(raw, "price")),
        notional=_to_float(_pick(raw, "notional"), default=0.0),
        realized_pnl=_optional_float(_pick(raw, "realizedPnl", "realized_pnl")),
        net_profit=_optional_float(_pick(raw, "netProfit", "net_profit")),
        status=_text(_pick(raw, "status"), default=STATUS_EXECUTED).upper(),
        raw=dict(payload) if isinstance(payload, Mapping) else dict(raw),
    )


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def _to_float(value: Any, default: float | None = None) -> float:
    if value is None:
        if default is None:
            raise ValueError("Missing numeric field")
        return default
    if isinstance(value, bool):
        raise ValueError("Invalid numeric field")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid numeric field") from exc
    if not math.isfinite(number):
        raise ValueError("Non-finite numeric field")
    return number


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return _to_float(value)


def _parse_timestamp(value: Any) -> datetime:
    if value is None:
        raise ValueError("Missing timestamp")

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _timestamp_from_number(float(value))

    text = str(value).strip()
    try:
        numeric = float(text)
        return _timestamp_from_number(numeric)
    except ValueError:
        pass

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError("Unsupported timestamp format") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _timestamp_from_number(value: float) -> datetime:
    seconds = value / 1000.0 if value > 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError) as exc:
        raise ValueError("Timestamp out of range") from exc
