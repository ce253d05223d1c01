"""Tests for StockLedgerSelector reads and the ledger audit."""

from datetime import datetime, timezone
from uuid import uuid4

from stock_kernel.domain.dtos import StockChangeRequest
from stock_kernel.models.stock_adjustment import AdjustmentType, StockAdjustmentModel
from stock_kernel.selectors.stock_selector import StockLedgerSelector
from stock_services.stock_service import StockService


class TestListings:

    def test_threshold_boundary(self, session, make_item):
        make_item(name="At threshold", stock_quantity=3, low_stock_alert=3)
        make_item(name="Above threshold", stock_quantity=4, low_stock_alert=3)

        names = [i.name for i in StockLedgerSelector(session).low_stock_items()]
        assert names == ["At threshold"]

    def test_deleted_items_excluded(self, session, make_item):
        make_item(name="Gone", stock_quantity=0, is_deleted=True)
        selector = StockLedgerSelector(session)
        assert selector.low_stock_items() == []
        assert selector.out_of_stock_items() == []


class TestHistory:

    def test_page_beyond_end_is_empty(self, session, stock_service, tracked_item, test_user_id):
        stock_service.add_stock(tracked_item.id, StockChangeRequest(1, "Delivery"), test_user_id)

        page = StockLedgerSelector(session).history(tracked_item.id, page=3, limit=10)

        assert page.items == ()
        assert page.meta.total == 1
        assert page.meta.total_pages == 1

    def test_only_requested_item(self, session, stock_service, make_item, test_user_id):
        first = make_item(name="Soup")
        second = make_item(name="Salad")
        stock_service.add_stock(first.id, StockChangeRequest(1, "Delivery"), test_user_id)
        stock_service.add_stock(second.id, StockChangeRequest(1, "Delivery"), test_user_id)

        page = StockLedgerSelector(session).history(first.id, 1, 20)
        assert [a.menu_item_name for a in page.items] == ["Soup"]


class TestVerifyItemLedger:

    def test_service_written_ledger_is_clean(self, session, stock_service, tracked_item, test_user_id):
        stock_service.add_stock(tracked_item.id, StockChangeRequest(5, "Delivery"), test_user_id)
        stock_service.remove_stock(tracked_item.id, StockChangeRequest(2, "Spoiled"), test_user_id)
        stock_service.deduct_stock_for_order(tracked_item.id, 1, "ORD-1")

        selector = StockLedgerSelector(session)
        assert selector.adjustment_count(tracked_item.id) == 3
        assert selector.verify_item_ledger(tracked_item.id) == []

    def test_inconsistent_row_reported(self, session, tracked_item):
        bad = StockAdjustmentModel(
            id=uuid4(),
            menu_item_id=tracked_item.id,
            adjustment_type=AdjustmentType.MANUAL_ADD.value,
            previous_stock=10,
            new_stock=12,
            quantity=5,
            reason="Imported",
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
            sequence=1,
        )
        session.add(bad)
        session.flush()

        (reported,) = StockLedgerSelector(session).verify_item_ledger(tracked_item.id)
        assert reported.id == bad.id
        assert reported.quantity == 5


class TestLedgerSequence:

    def test_same_timestamp_rows_come_back_newest_first(
        self, session, tracked_item, deterministic_clock, test_user_id,
    ):
        service = StockService(session, clock=deterministic_clock)
        for quantity in (1, 2, 3, 4):
            service.add_stock(tracked_item.id, StockChangeRequest(quantity, "Delivery"), test_user_id)

        page = StockLedgerSelector(session).history(tracked_item.id, 1, 20)

        assert len({a.created_at for a in page.items}) == 1
        assert [a.sequence for a in page.items] == [4, 3, 2, 1]
        assert [a.new_stock for a in page.items] == [20, 16, 13, 11]

    def test_sequence_is_per_item(self, session, stock_service, make_item, test_user_id):
        first = make_item(name="Soup")
        second = make_item(name="Salad")
        stock_service.add_stock(first.id, StockChangeRequest(1, "Delivery"), test_user_id)
        stock_service.add_stock(second.id, StockChangeRequest(1, "Delivery"), test_user_id)
        stock_service.add_stock(first.id, StockChangeRequest(1, "Delivery"), test_user_id)

        selector = StockLedgerSelector(session)
        assert [a.sequence for a in selector.history(first.id, 1, 20).items] == [2, 1]
        assert [a.sequence for a in selector.history(second.id, 1, 20).items] == [1]
        assert selector.next_sequence(first.id) == 3
