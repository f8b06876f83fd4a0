"""Load a backtest request (and optional engine settings) from a YAML or JSON file."""

from dataclasses import fields
from pathlib import Path
from typing import Any, Tuple

import yaml

from .config import BacktestConfig, EngineSettings
from .errors import InvalidConfiguration
from .serialization import config_from_dict


def load_backtest_config(path: str | Path) -> Tuple[BacktestConfig, EngineSettings]:
    path = Path(path)
    data = _load_yaml(path)
    settings = _parse_settings(data.get("settings") or {})
    config = config_from_dict(_require(data, "backtest"))
    return config, settings


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise InvalidConfiguration([f"{path}: expected a mapping at the top level"])
    return data


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data:
        raise InvalidConfiguration([f"missing required key: {key}"])
    return data[key]


def _parse_settings(data: dict[str, Any]) -> EngineSettings:
    known = {f.name for f in fields(EngineSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidConfiguration([f"unknown setting {k!r}" for k in unknown])
    values = dict(data)
    if "dividend_months" in values:
        values["dividend_months"] = tuple(int(m) for m in values["dividend_months"])
    return EngineSettings(**values)
