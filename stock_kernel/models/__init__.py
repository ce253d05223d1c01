"""ORM models for the stock kernel."""

from stock_kernel.models.menu_item import InventoryType, MenuItemModel
from stock_kernel.models.stock_adjustment import AdjustmentType, StockAdjustmentModel

__all__ = [
    "InventoryType",
    "MenuItemModel",
    "AdjustmentType",
    "StockAdjustmentModel",
]
