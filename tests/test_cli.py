from __future__ import annotations

import json

from position_journal.cli import main


def _write_events(path, records):
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


def _records():
    return [
        {
            "id": "1",
            "timestamp": "2025-01-02T14:30:00Z",
            "exchange": "bitget",
            "marketType": "futures",
            "symbol": "BTCUSDT",
            "action": "OPEN",
            "positionSide": "LONG",
            "quantity": 1,
            "price": 100,
        },
        {
            "id": "2",
            "timestamp": "2025-01-02T15:30:00Z",
            "exchange": "bitget",
            "marketType": "futures",
            "symbol": "BTCUSDT",
            "action": "CLOSE",
            "positionSide": "LONG",
            "quantity": 1,
            "price": 120,
            "realizedPnl": 20,
            "netProfit": 19,
        },
        {
            "id": "3",
            "timestamp": "2025-01-02T16:00:00Z",
            "exchange": "bitget",
            "marketType": "futures",
            "symbol": "ETHUSDT",
            "action": "CLOSE",
            "positionSide": "SHORT",
            "quantity": 1,
            "price": 120,
        },
        {"id": "4", "timestamp": "never", "quantity": 1, "price": 1},
    ]


def test_cli_writes_report(tmp_path, capsys):
    events_path = _write_events(tmp_path / "events.json", _records())
    out_path = tmp_path / "out" / "report.json"

    code = main([str(events_path), "--config", str(tmp_path / "none.toml"), "--out", str(out_path)])

    assert code == 0
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert payload["positions_count"] == 1
    assert payload["positions"][0]["net_profit"] == 19
    assert payload["stats"]["win_rate"] == 1.0
    err = capsys.readouterr().err
    assert "Skipped 1 event rows during normalization." in err
    assert "CLOSE without matching OPEN inventory: ETHUSDT SHORT" in err


def test_cli_prints_to_stdout_without_trades(tmp_path, capsys):
    events_path = _write_events(tmp_path / "events.json", _records()[:2])

    code = main([str(events_path), "--config", str(tmp_path / "none.toml"), "--no-trades"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert "trades" not in payload["positions"][0]


def test_cli_net_fallback_flag(tmp_path, capsys):
    records = _records()[:2]
    del records[1]["netProfit"]
    events_path = _write_events(tmp_path / "events.json", records)

    code = main([str(events_path), "--config", str(tmp_path / "none.toml"), "--no-net-fallback"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["positions"][0]["net_profit"] == 0.0
    assert payload["positions"][0]["realized_pnl"] == 20.0


def test_cli_reports_unreadable_input(tmp_path, capsys):
    bad = tmp_path / "events.json"
    bad.write_text("{not json", encoding="utf-8")

    code = main([str(bad), "--config", str(tmp_path / "none.toml")])

    assert code == 2
    assert "Unable to load trade events" in capsys.readouterr().err
