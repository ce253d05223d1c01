"""
stock_config -- single public entrypoint for stock service settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime, through
    ``get_active_settings()``.  No other component reads configuration
    files or environment variables.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and below
    ``stock_services``.  The kernel MUST NEVER import from ``stock_config``;
    ``stock_services.bootstrap`` turns settings into kernel arguments.

Layering (later wins):
    1. Packaged ``defaults.yaml``.
    2. The YAML file given as ``config_path`` or named by ``STOCK_CONFIG_FILE``.
    3. ``DATABASE_URL`` and ``STOCK_LOG_LEVEL`` environment variables.

Failure modes:
    - ``FileNotFoundError`` -- an explicit or env-named file is missing.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from stock_config.loader import load_yaml_file, parse_settings
from stock_config.schema import StockSettings

_logger = logging.getLogger("stock_kernel.config")

_DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

CONFIG_FILE_ENV = "STOCK_CONFIG_FILE"
DATABASE_URL_ENV = "DATABASE_URL"
LOG_LEVEL_ENV = "STOCK_LOG_LEVEL"


def get_active_settings(config_path: Path | str | None = None) -> StockSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Optional YAML file overlaid on the defaults.  When
            None, ``STOCK_CONFIG_FILE`` is used if set.

    Returns:
        Frozen StockSettings.

    Raises:
        FileNotFoundError: If the overlay file does not exist.
        ValueError: If the merged settings are invalid.
    """
    data = load_yaml_file(_DEFAULTS_FILE)
    sources = [str(_DEFAULTS_FILE)]

    overlay = config_path or os.environ.get(CONFIG_FILE_ENV)
    if overlay:
        data.update(load_yaml_file(Path(overlay)))
        sources.append(str(overlay))

    if os.environ.get(DATABASE_URL_ENV):
        data["database_url"] = os.environ[DATABASE_URL_ENV]
        sources.append(DATABASE_URL_ENV)
    if os.environ.get(LOG_LEVEL_ENV):
        data["log_level"] = os.environ[LOG_LEVEL_ENV]
        sources.append(LOG_LEVEL_ENV)

    settings = parse_settings(data)

    _logger.info(
        "stock_settings_loaded",
        extra={
            "sources": sources,
            "lock_timeout_ms": settings.lock_timeout_ms,
            "history_max_limit": settings.history_max_limit,
        },
    )
    return settings


__all__ = [
    "StockSettings",
    "get_active_settings",
    "load_yaml_file",
    "parse_settings",
]
