"""
Module: stock_kernel.models.stock_adjustment
Responsibility: ORM persistence for the append-only stock adjustment ledger.
    One row per committed change to a menu item's stock_quantity, holding the
    exact before/after snapshot, the magnitude, who did it and why.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    I3 -- Append-only.  Rows are inserted by StockLedgerStore.commit_mutation
          in the same transaction as the item update; UPDATE and DELETE are
          rejected by the listeners in db/immutability.py.
    I4 -- Arithmetic.  quantity is a magnitude (>= 0); direction comes from
          adjustment_type.  The arithmetic itself is checked by
          stock_policy.build_adjustment before insert.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE through the ORM.
    - IntegrityError on negative snapshot or quantity values (CHECK).
    - IntegrityError on a menu_item_id that does not exist (FK).

Audit relevance:
    This table is the stock audit trail.  History pages are served from
    (menu_item_id, created_at DESC, sequence DESC); created_at comes from
    the injected Clock and never changes.  sequence orders rows that share
    a created_at, as happens when the clock does not move between writes.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class AdjustmentType(str, Enum):
    """Why a stock level changed."""

    DAILY_RESET = "DAILY_RESET"
    MANUAL_ADD = "MANUAL_ADD"
    MANUAL_REMOVE = "MANUAL_REMOVE"
    ORDER_DEDUCT = "ORDER_DEDUCT"
    ORDER_CANCELLED = "ORDER_CANCELLED"

    @property
    def is_decrease(self) -> bool:
        """Types that can only lower stock."""
        return self in (AdjustmentType.MANUAL_REMOVE, AdjustmentType.ORDER_DEDUCT)

    @property
    def is_increase(self) -> bool:
        """Types that can only raise stock."""
        return self in (AdjustmentType.MANUAL_ADD, AdjustmentType.ORDER_CANCELLED)


class StockAdjustmentModel(Base):
    """
    One immutable ledger row.

    Contract:
        Written exactly once, by StockLedgerStore, in the transaction that
        changed the item.  Never updated, never deleted by normal operation.

    Guarantees:
        - previous_stock/new_stock are the item's values immediately before
          and after the mutating transaction (I3).
        - reason is NOT NULL for manual types (checked by stock_policy).
        - user_id is NULL only for system-issued resets and order hooks.
    """

    __tablename__ = "stock_adjustments"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_adjustment_quantity"),
        CheckConstraint("previous_stock >= 0", name="ck_stock_adjustment_previous"),
        CheckConstraint("new_stock >= 0", name="ck_stock_adjustment_new"),
        CheckConstraint("sequence >= 1", name="ck_stock_adjustment_sequence"),
        # One position per row in an item's ledger; assigned under the item row lock
        UniqueConstraint("menu_item_id", "sequence", name="uq_stock_adjustment_item_sequence"),
        # Query: history page for one item, newest first
        Index("idx_stock_adjustment_item_created", "menu_item_id", "created_at"),
        # Query: reconcile against an order
        Index("idx_stock_adjustment_order", "order_id"),
    )

    menu_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("menu_items.id", ondelete="RESTRICT"),
        nullable=False,
    )

    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        String(30),
        nullable=False,
    )

    previous_stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    new_stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Magnitude only; direction is implied by adjustment_type
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    user_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    order_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # 1-based, gap-free, strictly increasing per menu item
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<StockAdjustment {self.id}: {self.adjustment_type} "
            f"{self.previous_stock}->{self.new_stock} item={self.menu_item_id}>"
        )
