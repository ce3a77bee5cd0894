from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from position_journal.config.app_config import load_app_config
from position_journal.ingest.events import load_events
from position_journal.report import build_report, report_payload


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconstruct positions and statistics from trade events.")
    parser.add_argument("events_path", type=Path, help="Path to normalized trade events (json).")
    parser.add_argument("--config", type=Path, default=None, help="Path to app config (toml).")
    parser.add_argument(
        "--no-net-fallback",
        action="store_true",
        help="Do not fill missing net profit from realized PnL.",
    )
    parser.add_argument("--no-trades", action="store_true", help="Omit contributing trades from the output.")
    parser.add_argument("--out", type=Path, default=None, help="Write report to a file instead of stdout.")
    args = parser.parse_args(argv)

    app_config = load_app_config(args.config)
    logging.basicConfig(
        level=app_config.app.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    matching = app_config.matching
    if args.no_net_fallback:
        matching = replace(matching, net_profit_fallback=False)

    try:
        result = load_events(args.events_path)
    except (OSError, ValueError) as exc:
        print(f"Unable to load trade events from {args.events_path}: {exc}", file=sys.stderr)
        return 2

    if result.skipped:
        print(f"Skipped {result.skipped} event rows during normalization.", file=sys.stderr)

    report = build_report(result.events, settings=matching)
    match = report.match
    if match.skipped:
        print(f"Ignored {match.skipped} malformed events during matching.", file=sys.stderr)
    for error in match.errors:
        print(error, file=sys.stderr)
    if match.open_lots_remaining:
        print(f"Open lots remaining: {len(match.open_lots_remaining)}.", file=sys.stderr)

    include_trades = app_config.report.include_trades and not args.no_trades
    payload = report_payload(report, include_trades=include_trades)
    text = json.dumps(payload, indent=2, sort_keys=True)

    if args.out is None:
        print(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text + "\n", encoding="utf-8")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
