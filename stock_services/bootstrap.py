"""
stock_services.bootstrap -- wire settings into an engine and a StockService.

The kernel never reads configuration.  This module is the one place that
turns ``StockSettings`` into kernel arguments: engine pool sizing, lock
timeout, history limits and the log level.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.orm import Session

from stock_config import StockSettings, get_active_settings
from stock_kernel.db.engine import get_session, init_engine_from_url
from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.logging_config import configure_logging
from stock_services.stock_service import StockService


def init_from_settings(settings: StockSettings) -> None:
    """Configure logging, the engine and the ledger listeners."""
    configure_logging(level=settings.log_level)
    init_engine_from_url(
        settings.database_url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
    )
    register_immutability_listeners()


def build_stock_service(
    session: Session | None = None,
    settings: StockSettings | None = None,
    config_path: Path | str | None = None,
    clock: Clock | None = None,
    auto_commit: bool = True,
) -> StockService:
    """Build a StockService from settings (single entrypoint for production).

    Args:
        session: Session to use.  When None, the engine is initialized from
            settings and a new session is opened.
        settings: Pre-loaded settings; when None, get_active_settings() is
            called with config_path.
        config_path: Optional YAML overlay passed to get_active_settings().
        clock: Optional clock; default SystemClock.
        auto_commit: Passed to StockService.

    Returns:
        StockService with lock timeout and history limits from settings.
    """
    settings = settings or get_active_settings(config_path)
    if session is None:
        init_from_settings(settings)
        session = get_session()
    else:
        register_immutability_listeners()

    return StockService(
        session,
        clock=clock or SystemClock(),
        auto_commit=auto_commit,
        lock_timeout_ms=settings.lock_timeout_ms,
        reason_min_length=settings.reason_min_length,
        history_default_limit=settings.history_default_limit,
        history_max_limit=settings.history_max_limit,
    )
