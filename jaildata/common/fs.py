"""Filesystem and JSON helpers."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def json_default(value: Any) -> Any:
    # The store hands numbers back as Decimal.
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(payload: Any, **kwargs: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, default=json_default, **kwargs)


def write_json(path: Path, payload) -> None:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        f.write(dumps(payload, indent=2, sort_keys=True))
        f.write("\n")


def read_json(path: Path):
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)
