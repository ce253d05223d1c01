"""
ORM-Level Ledger and Invariant Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock adjustment ledger is an audit trail: a row, once written, is the
record of what happened to an item's stock.  Correcting a mistake means
writing a new adjustment, never editing an old one.

Menu item stock fields have a mode-conditional shape (I1) and a floor (I2).
The CHECK constraints on ``menu_items`` catch violations at the database,
but by then the error is an opaque IntegrityError.  Catching them before
the SQL is sent gives a typed InventoryInvariantError naming the invariant.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_flush] --> _check_menu_item_invariants() --> InventoryInvariantError
         |
         v
    [before_update / before_delete on StockAdjustmentModel]
         |                 --> ImmutabilityViolationError
         v
    SQL sent to database (only if checks pass)

    session.execute(update(StockAdjustmentModel)...)
         |
         v
    [do_orm_execute] --> _check_bulk_ledger_statement() --> ImmutabilityViolationError

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                | Rule                                   | Invariant
----------------------|----------------------------------------|----------
StockAdjustmentModel  | No UPDATE, no DELETE, no bulk UPDATE/  | I3
                      | DELETE through the ORM                 |
MenuItemModel         | Stock fields present iff TRACKED;      | I1, I2
                      | stock_quantity >= 0                    |

===============================================================================
USAGE
===============================================================================

Called once at startup (after models are imported):

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY - never in production):

    from stock_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from stock_kernel.exceptions import (
    ImmutabilityViolationError,
    InventoryInvariantError,
)
from stock_kernel.invariants import StockInvariant
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_STOCK_FIELDS = ("stock_quantity", "initial_stock", "low_stock_alert")


def _column_changes(target) -> list[str]:
    """Names of column attributes with pending changes on target."""
    state = inspect(target)
    changed = []
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


def _check_menu_item_invariants(session, flush_context, instances):
    """
    Reject a flush that would persist a menu item breaking I1 or I2.

    Runs in SessionEvents.before_flush so the whole flush is aborted before
    any statement is emitted.
    """
    from stock_kernel.models.menu_item import InventoryType, MenuItemModel

    for obj in list(session.new) + list(session.dirty):
        if not isinstance(obj, MenuItemModel):
            continue

        item_id = str(obj.id) if obj.id is not None else "<new>"
        values = {name: getattr(obj, name) for name in _STOCK_FIELDS}
        # Column default applies at INSERT, after this hook
        inventory_type = obj.inventory_type or InventoryType.UNLIMITED

        if inventory_type == InventoryType.UNLIMITED:
            present = [name for name, value in values.items() if value is not None]
            if present:
                _raise_invariant(
                    item_id,
                    StockInvariant.MODE_NULLABILITY,
                    f"UNLIMITED item carries {', '.join(present)}",
                )
        elif inventory_type == InventoryType.TRACKED:
            missing = [name for name, value in values.items() if value is None]
            if missing:
                _raise_invariant(
                    item_id,
                    StockInvariant.MODE_NULLABILITY,
                    f"TRACKED item is missing {', '.join(missing)}",
                )
            negative = [name for name, value in values.items() if value < 0]
            if negative:
                _raise_invariant(
                    item_id,
                    StockInvariant.NON_NEGATIVE_STOCK,
                    f"negative {', '.join(negative)}",
                )
        else:
            _raise_invariant(
                item_id,
                StockInvariant.MODE_NULLABILITY,
                f"unknown inventory_type {inventory_type!r}",
            )


def _raise_invariant(item_id: str, invariant: StockInvariant, detail: str) -> None:
    logger.error(
        "inventory_invariant_blocked",
        extra={
            "entity_type": "MenuItem",
            "entity_id": item_id,
            "invariant": invariant.value,
            "detail": detail,
        },
    )
    raise InventoryInvariantError(item_id, invariant.value, detail)


def _check_stock_adjustment_immutability(mapper, connection, target):
    """
    Prevent updates to ledger rows.

    before_update fires for every instance marked dirty, including ones
    with no net column change; only real column changes are rejected.
    """
    changed = _column_changes(target)
    if not changed:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockAdjustment",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockAdjustment",
        entity_id=str(target.id),
        reason=f"stock adjustments are append-only (attempted change: {', '.join(changed)})",
    )


def _check_stock_adjustment_delete(mapper, connection, target):
    """Prevent deletion of ledger rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockAdjustment",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockAdjustment",
        entity_id=str(target.id),
        reason="stock adjustments cannot be deleted",
    )


def _check_bulk_ledger_statement(orm_execute_state):
    """Reject ORM-enabled bulk UPDATE/DELETE against stock_adjustments."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return

    from stock_kernel.models.stock_adjustment import StockAdjustmentModel

    # statement.table may be an annotated copy of the Table; compare by name
    table = getattr(orm_execute_state.statement, "table", None)
    if getattr(table, "name", None) != StockAdjustmentModel.__tablename__:
        return

    operation = "UPDATE" if orm_execute_state.is_update else "DELETE"
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockAdjustment",
            "entity_id": "*",
            "operation": f"BULK_{operation}",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockAdjustment",
        entity_id="*",
        reason=f"bulk {operation} on the stock ledger is not allowed",
    )


def register_immutability_listeners():
    """
    Register all ledger and invariant enforcement listeners.

    Call this after all models are imported but before any database
    operations begin.  Safe to call more than once.
    """
    from stock_kernel.models.stock_adjustment import StockAdjustmentModel

    _safe_add_listener(Session, "before_flush", _check_menu_item_invariants)
    _safe_add_listener(Session, "do_orm_execute", _check_bulk_ledger_statement)
    _safe_add_listener(StockAdjustmentModel, "before_update", _check_stock_adjustment_immutability)
    _safe_add_listener(StockAdjustmentModel, "before_delete", _check_stock_adjustment_delete)


def _safe_add_listener(target, event_name, listener_fn):
    """Add a listener unless it is already registered."""
    if not event.contains(target, event_name, listener_fn):
        event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """
    Safely remove an event listener, ignoring if not registered.

    Prevents errors when unregistering listeners that may not have been
    registered (e.g., in test scenarios with custom setup/teardown).
    """
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove enforcement listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate the rules to verify detection.
    """
    from stock_kernel.models.stock_adjustment import StockAdjustmentModel

    _safe_remove_listener(Session, "before_flush", _check_menu_item_invariants)
    _safe_remove_listener(Session, "do_orm_execute", _check_bulk_ledger_statement)
    _safe_remove_listener(StockAdjustmentModel, "before_update", _check_stock_adjustment_immutability)
    _safe_remove_listener(StockAdjustmentModel, "before_delete", _check_stock_adjustment_delete)
