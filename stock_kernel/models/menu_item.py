"""
Module: stock_kernel.models.menu_item
Responsibility: ORM persistence for the stock-relevant subset of a menu item:
    inventory mode, stock level, reset baseline, low-stock threshold and
    availability flags.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    I1 -- Mode-conditional nullability.  ck_menu_item_mode_fields: UNLIMITED
          rows have stock_quantity, initial_stock and low_stock_alert all NULL;
          TRACKED rows have all three NOT NULL.
    I2 -- Non-negative stock.  ck_menu_item_stock_non_negative plus matching
          checks on initial_stock and low_stock_alert.
    Lost-update guard -- version is the mapper's version_id_col; an UPDATE
          whose WHERE version = :old matches no row raises StaleDataError.

Failure modes:
    - IntegrityError on a CHECK violation (I1/I2) that slipped past the
      before_flush listener in db/immutability.py.
    - StaleDataError when a concurrent writer bumped version first.

Audit relevance:
    stock_quantity is a cached value; the stock_adjustments ledger is the
    record of how it got there.  Every change to stock_quantity made through
    the kernel is paired with exactly one ledger row (I3).
"""

from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TimestampedBase


class InventoryType(str, Enum):
    """Inventory mode of a menu item.

    TRACKED items have a counted stock level; UNLIMITED items are always
    available and carry no stock fields.
    """

    TRACKED = "TRACKED"
    UNLIMITED = "UNLIMITED"


class MenuItemModel(TimestampedBase):
    """
    Stock fields of a menu item.

    Contract:
        Item creation, pricing and category assignment live outside the
        kernel; this model only defines the columns the stock kernel reads
        and writes.  Stock fields change only through StockLedgerStore.

    Guarantees:
        - I1/I2 enforced by CHECK constraints (last line of defense) and by
          the before_flush listener (first line).
        - version increments on every UPDATE (optimistic lock).

    Non-goals:
        - Does NOT derive is_available; that is stock_policy.derive_availability.
    """

    __tablename__ = "menu_items"

    __table_args__ = (
        CheckConstraint(
            "(inventory_type = 'UNLIMITED' AND stock_quantity IS NULL "
            "AND initial_stock IS NULL AND low_stock_alert IS NULL) OR "
            "(inventory_type = 'TRACKED' AND stock_quantity IS NOT NULL "
            "AND initial_stock IS NOT NULL AND low_stock_alert IS NOT NULL)",
            name="ck_menu_item_mode_fields",
        ),
        CheckConstraint(
            "stock_quantity IS NULL OR stock_quantity >= 0",
            name="ck_menu_item_stock_non_negative",
        ),
        CheckConstraint(
            "initial_stock IS NULL OR initial_stock >= 0",
            name="ck_menu_item_initial_stock_non_negative",
        ),
        CheckConstraint(
            "low_stock_alert IS NULL OR low_stock_alert >= 0",
            name="ck_menu_item_low_stock_alert_non_negative",
        ),
        # Query: low-stock / out-of-stock listings
        Index("idx_menu_item_inventory", "inventory_type", "stock_quantity"),
        Index("idx_menu_item_name", "name"),
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    inventory_type: Mapped[InventoryType] = mapped_column(
        String(20),
        default=InventoryType.UNLIMITED,
        nullable=False,
    )

    # INVARIANT I1: present iff TRACKED
    stock_quantity: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    # Baseline set by each reset/conversion; add/remove leave it alone
    initial_stock: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    low_stock_alert: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    is_available: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    auto_mark_unavailable: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Soft delete: deleted items are invisible to every stock operation
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        inventory_type = InventoryType(self.inventory_type).value if self.inventory_type else None
        return (
            f"<MenuItem {self.id}: {self.name} "
            f"{inventory_type} stock={self.stock_quantity}>"
        )

    @property
    def is_tracked(self) -> bool:
        """Check if stock is counted for this item."""
        return self.inventory_type == InventoryType.TRACKED
