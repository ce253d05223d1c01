"""
Stock Kernel Invariants Contract.

These invariants are structural law. No setting in ``stock_config`` may
override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across the stock policy, StockLedgerStore,
the ORM listeners in ``stock_kernel.db.immutability`` and the CHECK
constraints on the ``menu_items`` and ``stock_adjustments`` tables.
"""

from enum import Enum, unique


@unique
class StockInvariant(str, Enum):
    """Non-configurable invariants enforced by the stock kernel."""

    MODE_NULLABILITY = "I1"
    """UNLIMITED items carry no stock_quantity, initial_stock or
    low_stock_alert; TRACKED items carry all three. Enforced by the
    before_flush listener and by CHECK constraints."""

    NON_NEGATIVE_STOCK = "I2"
    """stock_quantity >= 0 for TRACKED items. Enforced by
    stock_policy.apply_remove before the write and by CHECK constraints."""

    LEDGER_COMPLETENESS = "I3"
    """Every committed stock change has exactly one StockAdjustment row
    whose previous_stock/new_stock bracket the change; adjustment rows are
    append-only. Enforced by StockLedgerStore.commit_mutation and the
    immutability listeners."""

    LEDGER_ARITHMETIC = "I4"
    """new_stock - previous_stock equals +quantity for increases and
    -quantity for decreases. Enforced by stock_policy.build_adjustment and
    checked by StockLedgerSelector.verify_item_ledger."""

    AUTO_UNAVAILABLE = "I5"
    """auto_mark_unavailable and stock_quantity == 0 forces
    is_available = False in the same transaction. Enforced by
    stock_policy.derive_availability."""


# All invariants as a frozenset for programmatic checks.
ALL_STOCK_INVARIANTS: frozenset[StockInvariant] = frozenset(StockInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stock_services",
    "stock_config",
)
