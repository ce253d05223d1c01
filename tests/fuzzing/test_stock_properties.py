"""
Hypothesis-based property tests for stock arithmetic.

Properties:
- Any accepted add/remove keeps stock non-negative (I2) and produces a
  ledger draft whose arithmetic checks out (I4).
- Availability is forced off exactly when auto-mark is on and stock is 0 (I5).
- Replaying any sequence of operations through the service leaves the
  item's stock equal to the last ledger row's new_stock, with an unbroken
  previous_stock -> new_stock chain (I3).
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from stock_kernel.domain import stock_policy
from stock_kernel.domain.dtos import ResetEntry, StockChangeRequest
from stock_kernel.exceptions import InsufficientStockError, ValidationError
from stock_kernel.models.stock_adjustment import AdjustmentType
from stock_kernel.selectors.stock_selector import StockLedgerSelector

stock_levels = st.integers(min_value=0, max_value=10_000)
quantities = st.integers(min_value=-50, max_value=10_000)


def _item(stock: int):
    return SimpleNamespace(id=uuid4(), stock_quantity=stock)


class TestPolicyProperties:

    @given(stock=stock_levels, quantity=quantities)
    def test_remove_never_goes_negative(self, stock, quantity):
        try:
            new_stock = stock_policy.apply_remove(_item(stock), quantity)
        except ValidationError:
            assert quantity <= 0
            return
        except InsufficientStockError as exc:
            assert quantity > stock
            assert exc.available == stock
            return
        assert 0 <= new_stock == stock - quantity
        draft = stock_policy.build_adjustment(
            "item", AdjustmentType.MANUAL_REMOVE, stock, new_stock,
        )
        assert draft.quantity == quantity

    @given(stock=stock_levels, quantity=quantities)
    def test_add_is_exact(self, stock, quantity):
        try:
            new_stock = stock_policy.apply_add(_item(stock), quantity)
        except ValidationError:
            assert quantity <= 0
            return
        draft = stock_policy.build_adjustment("item", AdjustmentType.MANUAL_ADD, stock, new_stock)
        assert draft.new_stock - draft.previous_stock == draft.quantity == quantity

    @given(previous=stock_levels, new=stock_levels)
    def test_reset_accepts_any_direction(self, previous, new):
        draft = stock_policy.build_adjustment("item", AdjustmentType.DAILY_RESET, previous, new)
        assert draft.quantity == abs(new - previous)
        assert stock_policy.adjustment_is_consistent(
            draft.adjustment_type, draft.previous_stock, draft.new_stock, draft.quantity,
        )

    @given(
        adjustment_type=st.sampled_from([t for t in AdjustmentType if t != AdjustmentType.DAILY_RESET]),
        previous=stock_levels,
        new=stock_levels,
        quantity=stock_levels,
    )
    def test_directional_types_need_matching_arithmetic(self, adjustment_type, previous, new, quantity):
        consistent = stock_policy.adjustment_is_consistent(adjustment_type, previous, new, quantity)
        expected_delta = quantity if adjustment_type.is_increase else -quantity
        assert consistent == (quantity > 0 and new - previous == expected_delta)

    @given(new_stock=stock_levels, auto_mark=st.booleans(), current=st.booleans())
    def test_availability_rule(self, new_stock, auto_mark, current):
        available = stock_policy.derive_availability(new_stock, auto_mark, current)
        if auto_mark and new_stock == 0:
            assert available is False
        else:
            assert available is current


operations = st.lists(
    st.one_of(
        st.tuples(st.just("add"), st.integers(min_value=1, max_value=20)),
        st.tuples(st.just("remove"), st.integers(min_value=1, max_value=20)),
        st.tuples(st.just("order"), st.integers(min_value=1, max_value=20)),
        st.tuples(st.just("cancel"), st.integers(min_value=1, max_value=20)),
        st.tuples(st.just("reset"), st.integers(min_value=0, max_value=20)),
    ),
    min_size=1,
    max_size=12,
)


class TestLedgerChainProperty:

    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(ops=operations)
    def test_ledger_replays_to_current_stock(self, session, stock_service, make_item, test_user_id, ops):
        item = make_item(name=f"Fuzz {uuid4().hex[:8]}", stock_quantity=5, low_stock_alert=2)

        for op, quantity in ops:
            try:
                if op == "add":
                    stock_service.add_stock(item.id, StockChangeRequest(quantity, "Fuzz add"), test_user_id)
                elif op == "remove":
                    stock_service.remove_stock(item.id, StockChangeRequest(quantity, "Fuzz remove"), test_user_id)
                elif op == "order":
                    stock_service.deduct_stock_for_order(item.id, quantity, "ORD-FUZZ")
                elif op == "cancel":
                    stock_service.revert_stock_for_order(item.id, quantity, "ORD-FUZZ")
                else:
                    stock_service.daily_stock_reset([ResetEntry(item_id=item.id, quantity=quantity)])
            except InsufficientStockError:
                pass

        current = stock_service.store.get_item(item.id)
        selector = StockLedgerSelector(session)
        total = selector.adjustment_count(item.id)
        rows = list(reversed(selector.history(item.id, 1, 100).items)) if total else []

        assert current.stock_quantity >= 0
        assert selector.verify_item_ledger(item.id) == []
        if rows:
            assert rows[0].previous_stock == 5
            assert rows[-1].new_stock == current.stock_quantity
            for before, after in zip(rows, rows[1:]):
                assert after.previous_stock == before.new_stock
        else:
            assert current.stock_quantity == 5
        if current.auto_mark_unavailable and current.stock_quantity == 0:
            assert current.is_available is False


@pytest.mark.parametrize("value", [True, 1.5, "3", None])
def test_non_integer_quantities_rejected(value):
    with pytest.raises(ValidationError, match="integer"):
        stock_policy.validate_quantity(value)
