"""
Module: stock_kernel.selectors.stock_selector
Responsibility: Read-only queries over menu item stock and the adjustment
    ledger: low-stock and out-of-stock listings, paginated history, and a
    per-item ledger arithmetic audit.
Architecture position: Kernel > Selectors.  May import from models/,
    selectors/base.py and the pure domain.  MUST NOT import from services/
    or outer layers.

Invariants enforced:
    I4 -- verify_item_ledger() reports every ledger row whose snapshot and
          magnitude disagree with its adjustment type.
    Soft delete -- items with is_deleted set never appear in listings.

Failure modes:
    - Empty lists / empty pages when nothing matches.
    - SQLAlchemyError propagates to the caller.

Audit relevance:
    History pages are the operator-facing view of the ledger.  Rows are
    returned newest first by created_at, which comes from the injected
    Clock at insert time.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.domain.dtos import MenuItemInfo, Page, StockAdjustmentInfo
from stock_kernel.domain.stock_policy import adjustment_is_consistent, page_meta
from stock_kernel.models.menu_item import InventoryType, MenuItemModel
from stock_kernel.models.stock_adjustment import AdjustmentType, StockAdjustmentModel
from stock_kernel.selectors.base import BaseSelector


def to_item_info(item: MenuItemModel) -> MenuItemInfo:
    """Convert an ORM menu item to MenuItemInfo."""
    return MenuItemInfo(
        id=item.id,
        name=item.name,
        inventory_type=InventoryType(item.inventory_type),
        stock_quantity=item.stock_quantity,
        initial_stock=item.initial_stock,
        low_stock_alert=item.low_stock_alert,
        is_available=item.is_available,
        auto_mark_unavailable=item.auto_mark_unavailable,
    )


def to_adjustment_info(
    adjustment: StockAdjustmentModel,
    menu_item_name: str | None = None,
) -> StockAdjustmentInfo:
    """Convert an ORM ledger row to StockAdjustmentInfo."""
    return StockAdjustmentInfo(
        id=adjustment.id,
        menu_item_id=adjustment.menu_item_id,
        adjustment_type=AdjustmentType(adjustment.adjustment_type),
        previous_stock=adjustment.previous_stock,
        new_stock=adjustment.new_stock,
        quantity=adjustment.quantity,
        reason=adjustment.reason,
        user_id=adjustment.user_id,
        order_id=adjustment.order_id,
        created_at=adjustment.created_at,
        sequence=adjustment.sequence,
        menu_item_name=menu_item_name,
    )


class StockLedgerSelector(BaseSelector[StockAdjustmentModel]):
    """
    Selector for stock listings and ledger history.

    Contract:
        Pure reads against the caller's session.  Two calls with no
        intervening write return equal results.

    Guarantees:
        - Listings contain only TRACKED, non-deleted items, ordered by name.
        - History is ordered by created_at DESC, then ledger sequence DESC.

    Non-goals:
        - Does NOT validate pagination; stock_policy.validate_pagination does.
        - Does NOT check that the item exists; the store does.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _tracked_items(self):
        return (
            select(MenuItemModel)
            .where(MenuItemModel.inventory_type == InventoryType.TRACKED.value)
            .where(MenuItemModel.is_deleted.is_(False))
        )

    def low_stock_items(self) -> list[MenuItemInfo]:
        """TRACKED items with stock_quantity <= low_stock_alert."""
        query = (
            self._tracked_items()
            .where(MenuItemModel.stock_quantity <= MenuItemModel.low_stock_alert)
            .order_by(MenuItemModel.name, MenuItemModel.id)
        )
        return [to_item_info(item) for item in self.session.scalars(query)]

    def out_of_stock_items(self) -> list[MenuItemInfo]:
        """TRACKED items with stock_quantity == 0."""
        query = (
            self._tracked_items()
            .where(MenuItemModel.stock_quantity == 0)
            .order_by(MenuItemModel.name, MenuItemModel.id)
        )
        return [to_item_info(item) for item in self.session.scalars(query)]

    def history(self, item_id: UUID, page: int, limit: int) -> Page[StockAdjustmentInfo]:
        """
        One page of an item's adjustments, newest first.

        Args:
            item_id: Menu item whose ledger to read.
            page: 1-based page number.
            limit: Page size.

        Returns:
            Page with the rows and PageMeta(total, page, limit, total_pages).
        """
        total = self.session.scalar(
            select(func.count())
            .select_from(StockAdjustmentModel)
            .where(StockAdjustmentModel.menu_item_id == item_id)
        ) or 0

        query = (
            select(StockAdjustmentModel, MenuItemModel.name)
            .join(MenuItemModel, StockAdjustmentModel.menu_item_id == MenuItemModel.id)
            .where(StockAdjustmentModel.menu_item_id == item_id)
            .order_by(
                StockAdjustmentModel.created_at.desc(),
                StockAdjustmentModel.sequence.desc(),
            )
            .limit(limit)
            .offset((page - 1) * limit)
        )
        rows = self.session.execute(query).all()

        return Page(
            items=tuple(to_adjustment_info(adj, name) for adj, name in rows),
            meta=page_meta(total, page, limit),
        )

    def adjustment_count(self, item_id: UUID) -> int:
        return self.session.scalar(
            select(func.count())
            .select_from(StockAdjustmentModel)
            .where(StockAdjustmentModel.menu_item_id == item_id)
        ) or 0

    def next_sequence(self, item_id: UUID) -> int:
        """Ledger position for the next row of an item.  Call under the item row lock."""
        last = self.session.scalar(
            select(func.max(StockAdjustmentModel.sequence))
            .where(StockAdjustmentModel.menu_item_id == item_id)
        )
        return (last or 0) + 1

    def verify_item_ledger(self, item_id: UUID) -> list[StockAdjustmentInfo]:
        """
        Audit an item's ledger for I4.

        Returns:
            Rows whose previous_stock/new_stock/quantity are inconsistent
            with their adjustment type, in ledger sequence.  Empty means clean.
        """
        query = (
            select(StockAdjustmentModel)
            .where(StockAdjustmentModel.menu_item_id == item_id)
            .order_by(StockAdjustmentModel.sequence)
        )
        return [
            to_adjustment_info(adj)
            for adj in self.session.scalars(query)
            if not adjustment_is_consistent(
                adj.adjustment_type, adj.previous_stock, adj.new_stock, adj.quantity,
            )
        ]
