"""
Data Transfer Objects for the stock kernel.

Responsibility:
    Frozen dataclasses passed between the service, the policy and the
    ledger store.  Callers outside the kernel only ever see these, never
    ORM rows.

Architecture position:
    Kernel > Domain -- pure value types, zero I/O, no ORM imports.

Invariants enforced:
    - All DTOs are frozen (immutable after construction).
    - MenuItemInfo mirrors I1: stock fields are None exactly when the
      item is UNLIMITED (guaranteed by the store that builds it).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from stock_kernel.models.menu_item import InventoryType
from stock_kernel.models.stock_adjustment import AdjustmentType

T = TypeVar("T")


@dataclass(frozen=True)
class MenuItemInfo:
    """Stock view of a menu item as committed in the store."""

    id: UUID
    name: str
    inventory_type: InventoryType
    stock_quantity: int | None
    initial_stock: int | None
    low_stock_alert: int | None
    is_available: bool
    auto_mark_unavailable: bool

    @property
    def is_tracked(self) -> bool:
        return self.inventory_type == InventoryType.TRACKED

    @property
    def is_low_stock(self) -> bool:
        """TRACKED and at or below the alert threshold."""
        if not self.is_tracked:
            return False
        return self.stock_quantity <= self.low_stock_alert

    @property
    def is_out_of_stock(self) -> bool:
        return self.is_tracked and self.stock_quantity == 0


@dataclass(frozen=True)
class StockAdjustmentInfo:
    """One ledger row.  menu_item_name is filled in by history queries."""

    id: UUID
    menu_item_id: UUID
    adjustment_type: AdjustmentType
    previous_stock: int
    new_stock: int
    quantity: int
    reason: str | None
    user_id: str | None
    order_id: str | None
    created_at: datetime
    sequence: int
    menu_item_name: str | None = None


@dataclass(frozen=True)
class StockMutation:
    """
    New values for an item's stock fields.

    None on an optional field means "leave as is", not "set to NULL".
    """

    new_stock_quantity: int
    new_is_available: bool | None = None
    new_initial_stock: int | None = None
    new_low_stock_alert: int | None = None


@dataclass(frozen=True)
class AdjustmentDraft:
    """A ledger row before insert.  Built only by stock_policy.build_adjustment."""

    adjustment_type: AdjustmentType
    previous_stock: int
    new_stock: int
    quantity: int
    reason: str | None = None
    user_id: str | None = None
    order_id: str | None = None


@dataclass(frozen=True)
class PageMeta:
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    meta: PageMeta

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


@dataclass(frozen=True)
class ResetEntry:
    """One line of a daily reset batch."""

    item_id: UUID
    quantity: int
    low_stock_alert: int | None = None


@dataclass(frozen=True)
class StockChangeRequest:
    """Body of a manual add/remove."""

    quantity: int
    reason: str


@dataclass(frozen=True)
class InventoryTypeChange:
    """Requested inventory mode, with the threshold to use when becoming TRACKED."""

    inventory_type: InventoryType | str
    low_stock_alert: int | None = None
