"""Read-only selectors."""

from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.stock_selector import StockLedgerSelector

__all__ = [
    "BaseSelector",
    "StockLedgerSelector",
]
