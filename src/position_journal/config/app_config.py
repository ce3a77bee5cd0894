from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path("config/app.toml")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    reload: bool
    log_level: str


@dataclass(frozen=True)
class MatchingSettings:
    epsilon: float = 1e-8
    net_profit_fallback: bool = True


@dataclass(frozen=True)
class ReportSettings:
    include_trades: bool


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    matching: MatchingSettings
    report: ReportSettings


def load_app_config(path: Path | None = None) -> AppConfig:
    config_path = path or DEFAULT_CONFIG_PATH
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))
    return app_config_from_mapping(raw)


def app_config_from_mapping(raw: Mapping[str, Any]) -> AppConfig:
    app_raw = _section(raw, "app")
    matching_raw = _section(raw, "matching")
    report_raw = _section(raw, "report")

    app = AppSettings(
        host=str(app_raw.get("host", "127.0.0.1")),
        port=_int_or_default(app_raw.get("port"), 8000),
        reload=bool(app_raw.get("reload", False)),
        log_level=_log_level(app_raw.get("log_level")),
    )

    matching = MatchingSettings(
        epsilon=_positive_float(matching_raw.get("epsilon"), MatchingSettings.epsilon),
        net_profit_fallback=bool(matching_raw.get("net_profit_fallback", True)),
    )

    report = ReportSettings(
        include_trades=bool(report_raw.get("include_trades", True)),
    )

    return AppConfig(app=app, matching=matching, report=report)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _int_or_default(value: Any, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _positive_float(value: Any, default: float) -> float:
    if value in (None, ""):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number <= 0:
        return default
    return number


def _log_level(value: Any) -> str:
    text = str(value or "INFO").strip().upper()
    if text not in _LOG_LEVELS:
        return "INFO"
    return text
