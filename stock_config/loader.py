"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads YAML settings files and parses the merged mapping into a
``StockSettings`` instance.  The single public entry point for runtime
settings is ``stock_config.get_active_settings()``.

Invariants enforced
-------------------
* Unknown keys and wrongly typed values raise ``ValueError`` with a
  descriptive message; nothing is silently ignored.
* The result is always a frozen ``StockSettings``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Non-mapping document, unknown key, bad value  -> ``ValueError``.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import StockSettings

_INT_FIELDS = (
    "pool_size",
    "max_overflow",
    "pool_timeout",
    "history_default_limit",
    "history_max_limit",
    "reason_min_length",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping, got {type(data).__name__}")
    return data


def _require_int(data: dict[str, Any], key: str, minimum: int) -> None:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f"{key} must be an integer >= {minimum}, got {value!r}")


def parse_settings(data: dict[str, Any]) -> StockSettings:
    """
    Parse a ``StockSettings`` from a merged mapping.

    Preconditions:
        - ``data`` contains ``database_url``.
    Raises:
        ValueError: on unknown keys or invalid values.
    """
    known = {f.name for f in fields(StockSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(unknown)}")

    if not data.get("database_url") or not isinstance(data["database_url"], str):
        raise ValueError("database_url is required")

    for key in _INT_FIELDS:
        if key in data:
            _require_int(data, key, 0 if key == "max_overflow" else 1)

    if data.get("lock_timeout_ms") is not None:
        _require_int(data, "lock_timeout_ms", 1)

    if "echo" in data and not isinstance(data["echo"], bool):
        raise ValueError(f"echo must be a boolean, got {data['echo']!r}")

    if "log_level" in data:
        level = str(data["log_level"]).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log_level {data['log_level']!r}")
        data = {**data, "log_level": level}

    settings = StockSettings(**data)

    if settings.history_default_limit > settings.history_max_limit:
        raise ValueError(
            f"history_default_limit ({settings.history_default_limit}) exceeds "
            f"history_max_limit ({settings.history_max_limit})"
        )
    return settings
