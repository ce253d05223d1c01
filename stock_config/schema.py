"""
StockSettings schema.

Typed, frozen settings for running the stock service.  YAML documents
and environment overrides are parsed into this type by the loader;
nothing else reads configuration.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StockSettings:
    """Runtime settings for the stock service."""

    database_url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    # Deadline for acquiring the item row lock; None waits indefinitely
    lock_timeout_ms: int | None = None
    history_default_limit: int = 20
    history_max_limit: int = 100
    reason_min_length: int = 3
    log_level: str = "INFO"
