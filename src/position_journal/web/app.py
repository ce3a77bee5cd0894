from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from position_journal.config.app_config import AppConfig, load_app_config
from position_journal.ingest.events import load_events_payload
from position_journal.report import build_report, report_payload

logger = logging.getLogger(__name__)

app = FastAPI(title="Position Journal")


class PositionsRequest(BaseModel):
    """Batch of normalized trade events, as a list or a wrapped export."""

    events: list[dict[str, Any]] | dict[str, Any]
    include_trades: bool | None = None


@lru_cache(maxsize=1)
def _app_config() -> AppConfig:
    return load_app_config()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/positions")
def positions_api(request: PositionsRequest) -> dict[str, Any]:
    config = _app_config()
    try:
        ingest = load_events_payload(request.events)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    report = build_report(ingest.events, settings=config.matching)
    include_trades = request.include_trades
    if include_trades is None:
        include_trades = config.report.include_trades

    logger.info(
        "Built %d positions from %d events (%d rows skipped).",
        len(report.match.positions),
        len(ingest.events),
        ingest.skipped,
    )
    payload = report_payload(report, include_trades=include_trades)
    return {"ok": True, "skipped_rows": ingest.skipped, **payload}


def main() -> None:
    import uvicorn

    app_config = _app_config()
    logging.basicConfig(
        level=app_config.app.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "position_journal.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
