from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from position_journal.ingest.events import load_events, load_events_payload


def _record(**overrides):
    record = {
        "id": "1001",
        "timestamp": "2025-01-02T14:30:00.000Z",
        "exchange": "bitget",
        "marketType": "futures",
        "symbol": "BTCUSDT",
        "action": "OPEN",
        "positionSide": "LONG",
        "quantity": 0.5,
        "price": 42000.0,
        "notional": 21000.0,
        "status": "EXECUTED",
        "raw": {"Order ID": "1001"},
    }
    record.update(overrides)
    return record


def test_camel_case_record():
    result = load_events_payload([_record(realizedPnl=12.5, netProfit="11.25")])

    assert result.skipped == 0
    event = result.events[0]
    assert event.event_id == "1001"
    assert event.timestamp == datetime(2025, 1, 2, 14, 30, tzinfo=timezone.utc)
    assert event.venue == "bitget"
    assert event.market == "futures"
    assert event.action == "OPEN"
    assert event.side == "LONG"
    assert event.quantity == 0.5
    assert event.realized_pnl == 12.5
    assert event.net_profit == 11.25
    assert event.raw == {"Order ID": "1001"}


def test_snake_case_record_and_defaults():
    record = {
        "event_id": "x",
        "timestamp": 1735828200000,
        "venue": "Binance",
        "symbol": "ETHUSDT",
        "action": "close",
        "side": "short",
        "quantity": "2",
        "price": "3000.5",
    }

    event = load_events_payload({"events": [record]}).events[0]

    assert event.timestamp == datetime(2025, 1, 2, 14, 30, tzinfo=timezone.utc)
    assert event.venue == "binance"
    assert event.market == "futures"
    assert event.action == "CLOSE"
    assert event.side == "SHORT"
    assert event.quantity == 2.0
    assert event.notional == 0.0
    assert event.realized_pnl is None
    assert event.net_profit is None
    assert event.status == "EXECUTED"
    assert event.raw["event_id"] == "x"


def test_naive_timestamp_is_utc():
    event = load_events_payload([_record(timestamp="2025-01-02 14:30:00")]).events[0]

    assert event.timestamp.tzinfo == timezone.utc


def test_unreadable_rows_are_skipped():
    records = [
        _record(),
        _record(quantity="abc"),
        _record(price=None),
        _record(timestamp="yesterday"),
        _record(quantity="nan"),
        "not a record",
    ]

    result = load_events_payload({"trades": records})

    assert len(result.events) == 1
    assert result.skipped == 5


def test_blank_symbol_passes_through_to_matcher():
    result = load_events_payload([_record(symbol="")])

    assert result.skipped == 0
    assert result.events[0].symbol == ""


def test_unsupported_payload_shape():
    with pytest.raises(ValueError):
        load_events_payload({"rows": []})


def test_load_events_from_file(tmp_path):
    path = tmp_path / "events.json"
    path.write_text(json.dumps({"data": [_record()]}), encoding="utf-8")

    result = load_events(path)

    assert len(result.events) == 1


def test_load_events_rejects_other_suffixes(tmp_path):
    path = tmp_path / "events.csv"
    path.write_text("id,timestamp\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_events(path)
