"""
Ledger append-only tests (I3).

StockAdjustment rows may be inserted but never updated or deleted through
the ORM, whether per instance or with bulk statements.
"""

import pytest
from sqlalchemy import delete, select, update

from stock_kernel.domain.dtos import StockChangeRequest
from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.models.stock_adjustment import StockAdjustmentModel


@pytest.fixture
def ledger_row(session, stock_service, tracked_item, test_user_id) -> StockAdjustmentModel:
    stock_service.add_stock(
        tracked_item.id, StockChangeRequest(quantity=2, reason="Delivery"), test_user_id,
    )
    return session.scalars(
        select(StockAdjustmentModel).where(
            StockAdjustmentModel.menu_item_id == tracked_item.id
        )
    ).one()


class TestLedgerImmutability:

    def test_update_rejected(self, session, ledger_row):
        ledger_row.quantity = 99
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        assert "quantity" in exc_info.value.reason
        session.rollback()

    def test_delete_rejected(self, session, ledger_row):
        session.delete(ledger_row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_bulk_update_rejected(self, session, ledger_row):
        with pytest.raises(ImmutabilityViolationError):
            session.execute(
                update(StockAdjustmentModel)
                .where(StockAdjustmentModel.id == ledger_row.id)
                .values(reason="edited")
            )

    def test_bulk_delete_rejected(self, session, ledger_row):
        with pytest.raises(ImmutabilityViolationError):
            session.execute(delete(StockAdjustmentModel))

    def test_violation_is_logged(self, session, ledger_row, captured_logs):
        ledger_row.reason = "edited"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked and blocked[0]["entity_type"] == "StockAdjustment"
