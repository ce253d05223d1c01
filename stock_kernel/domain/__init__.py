"""
Pure domain layer.

DTOs, the injectable clock and the stock policy.  Nothing here opens a
session or performs I/O (SystemClock excepted).
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock, TickingClock
from stock_kernel.domain.dtos import (
    AdjustmentDraft,
    InventoryTypeChange,
    MenuItemInfo,
    Page,
    PageMeta,
    ResetEntry,
    StockAdjustmentInfo,
    StockChangeRequest,
    StockMutation,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "TickingClock",
    "MenuItemInfo",
    "StockAdjustmentInfo",
    "StockMutation",
    "AdjustmentDraft",
    "Page",
    "PageMeta",
    "ResetEntry",
    "StockChangeRequest",
    "InventoryTypeChange",
]
