"""Kernel write services."""

from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_ledger_store import StockLedgerStore

__all__ = [
    "BaseService",
    "StockLedgerStore",
]
