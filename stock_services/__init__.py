"""
stock_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the stock kernel: the public stock
    operations, the order hooks, and settings-driven wiring.  This is the
    only layer that commits transactions.

Architecture position:
    Services -- above ``stock_kernel`` and ``stock_config``.

    Dependency direction (checked by tests/architecture/test_kernel_boundary.py):
        stock_services/ -> stock_kernel/  (allowed)
        stock_services/ -> stock_config/  (allowed)
        stock_kernel/   -> stock_services/ (FORBIDDEN)
        stock_kernel/   -> stock_config/   (FORBIDDEN)
"""

from stock_services._reset_types import DailyResetResult, ResetItemOutcome
from stock_services.bootstrap import build_stock_service
from stock_services.stock_service import StockService

__all__ = [
    "DailyResetResult",
    "ResetItemOutcome",
    "StockService",
    "build_stock_service",
]
