"""
Stock Policy -- pure business rules for stock mutation.

Responsibility:
    Validates requests and computes new stock levels and availability.
    Every rule that decides whether a stock change is allowed, and what
    the resulting values are, lives here.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Functions accept
    anything shaped like a menu item (an ORM row or a MenuItemInfo) and
    never touch a session.

Invariants enforced:
    I2 -- apply_remove refuses to produce a negative stock level.
    I4 -- build_adjustment refuses a draft whose arithmetic does not match
          its adjustment type.
    I5 -- derive_availability forces is_available False at zero stock when
          auto_mark_unavailable is set.

Failure modes:
    - ValidationError for malformed input (quantity, reason, pagination,
      threshold, batch, inventory type).
    - InvalidOperationError for a stock operation on an UNLIMITED item.
    - InsufficientStockError when a removal exceeds current stock.
    - InventoryInvariantError when a caller builds an inconsistent draft.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

from stock_kernel.domain.dtos import AdjustmentDraft, PageMeta
from stock_kernel.exceptions import (
    InsufficientStockError,
    InvalidOperationError,
    InventoryInvariantError,
    ValidationError,
)
from stock_kernel.invariants import StockInvariant
from stock_kernel.models.menu_item import InventoryType
from stock_kernel.models.stock_adjustment import AdjustmentType

DEFAULT_REASON_MIN_LENGTH = 3
DEFAULT_HISTORY_MAX_LIMIT = 100

# Operation name -> message when the item is not TRACKED
_NOT_TRACKED_MESSAGES = {
    "daily_stock_reset": "Only TRACKED items can have stock reset",
    "add_stock": "Cannot add stock to UNLIMITED items",
    "remove_stock": "Cannot remove stock from UNLIMITED items",
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# =============================================================================
# Input validation
# =============================================================================


def validate_reset_quantity(quantity: Any) -> int:
    """Reset quantity: an integer >= 0."""
    if not _is_int(quantity):
        raise ValidationError(
            "Quantity must be an integer", field="quantity", value=quantity,
        )
    if quantity < 0:
        raise ValidationError(
            "Quantity must be non-negative", field="quantity", value=quantity,
        )
    return quantity


def validate_quantity(quantity: Any) -> int:
    """Add/remove quantity: an integer > 0."""
    if not _is_int(quantity):
        raise ValidationError(
            "Quantity must be an integer", field="quantity", value=quantity,
        )
    if quantity <= 0:
        raise ValidationError(
            "Quantity must be positive", field="quantity", value=quantity,
        )
    return quantity


def validate_reason(reason: Any, min_length: int = DEFAULT_REASON_MIN_LENGTH) -> str:
    """Manual operations need a reason of at least min_length characters."""
    if not isinstance(reason, str) or len(reason.strip()) < min_length:
        raise ValidationError(
            f"Reason must be at least {min_length} characters",
            field="reason",
            value=reason,
        )
    return reason.strip()


def validate_actor(user_id: Any) -> str:
    """Manual operations record who did them."""
    if user_id is None or not str(user_id).strip():
        raise ValidationError("User ID is required", field="user_id", value=user_id)
    return str(user_id)


def validate_low_stock_alert(low_stock_alert: Any) -> int | None:
    """None passes through; otherwise an integer >= 0."""
    if low_stock_alert is None:
        return None
    if not _is_int(low_stock_alert) or low_stock_alert < 0:
        raise ValidationError(
            "Low stock alert must be a non-negative integer",
            field="low_stock_alert",
            value=low_stock_alert,
        )
    return low_stock_alert


def validate_pagination(
    page: Any,
    limit: Any,
    max_limit: int = DEFAULT_HISTORY_MAX_LIMIT,
) -> tuple[int, int]:
    if not _is_int(page) or page < 1:
        raise ValidationError("Page must be at least 1", field="page", value=page)
    if not _is_int(limit) or limit < 1:
        raise ValidationError("Limit must be at least 1", field="limit", value=limit)
    if limit > max_limit:
        raise ValidationError(
            f"Limit must not exceed {max_limit}", field="limit", value=limit,
        )
    return page, limit


def validate_reset_batch(entries: Sequence[Any]) -> None:
    if entries is None or len(entries) == 0:
        raise ValidationError(
            "At least one item is required", field="items", value=entries,
        )


def parse_inventory_type(value: Any) -> InventoryType:
    try:
        return InventoryType(value)
    except ValueError:
        raise ValidationError(
            "Inventory type must be TRACKED or UNLIMITED",
            field="inventory_type",
            value=value,
        ) from None


def page_meta(total: int, page: int, limit: int) -> PageMeta:
    return PageMeta(
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


# =============================================================================
# Business rules
# =============================================================================


def require_tracked(item: Any, operation: str) -> None:
    """
    Raise InvalidOperationError unless the item counts stock.

    The message depends on the operation so callers see the wording they
    expect ("Cannot add stock to UNLIMITED items", ...).
    """
    if item.inventory_type == InventoryType.TRACKED:
        return
    message = _NOT_TRACKED_MESSAGES.get(
        operation, "Only TRACKED items support this operation",
    )
    raise InvalidOperationError(
        message,
        item_id=str(item.id),
        inventory_type=InventoryType(item.inventory_type).value,
        operation=operation,
    )


def apply_add(item: Any, quantity: int) -> int:
    """New stock level after adding quantity (> 0)."""
    validate_quantity(quantity)
    return item.stock_quantity + quantity


def apply_remove(item: Any, quantity: int, message: str | None = None) -> int:
    """
    New stock level after removing quantity (> 0).

    Raises:
        InsufficientStockError: quantity exceeds the current stock.
    """
    validate_quantity(quantity)
    available = item.stock_quantity
    if quantity > available:
        raise InsufficientStockError(
            item_id=str(item.id),
            available=available,
            requested=quantity,
            message=message or "Insufficient stock to remove",
        )
    return available - quantity


def derive_availability(
    new_stock: int,
    auto_mark_unavailable: bool,
    current_availability: bool,
) -> bool:
    if auto_mark_unavailable and new_stock == 0:
        return False
    return current_availability


# =============================================================================
# Ledger arithmetic
# =============================================================================


def adjustment_is_consistent(
    adjustment_type: AdjustmentType | str,
    previous_stock: int,
    new_stock: int,
    quantity: int,
) -> bool:
    """
    True when the row's snapshot and magnitude agree with its type (I4).

    Resets may go either way, and may be a zero change.  Every other type
    moves stock by exactly quantity (> 0) in its own direction.
    """
    if previous_stock < 0 or new_stock < 0 or quantity < 0:
        return False
    adjustment_type = AdjustmentType(adjustment_type)
    if adjustment_type == AdjustmentType.DAILY_RESET:
        return quantity == abs(new_stock - previous_stock)
    if quantity == 0:
        return False
    if adjustment_type.is_decrease:
        return previous_stock - new_stock == quantity
    return new_stock - previous_stock == quantity


def build_adjustment(
    item_id: str,
    adjustment_type: AdjustmentType,
    previous_stock: int,
    new_stock: int,
    *,
    reason: str | None = None,
    user_id: str | None = None,
    order_id: str | None = None,
) -> AdjustmentDraft:
    """
    Build the ledger draft for a stock change.

    quantity is derived as the magnitude of the change, then checked
    against the type's direction.
    """
    quantity = abs(new_stock - previous_stock)
    if new_stock < 0:
        raise InventoryInvariantError(
            item_id,
            StockInvariant.NON_NEGATIVE_STOCK.value,
            f"new stock {new_stock} is negative",
        )
    if not adjustment_is_consistent(adjustment_type, previous_stock, new_stock, quantity):
        raise InventoryInvariantError(
            item_id,
            StockInvariant.LEDGER_ARITHMETIC.value,
            f"{AdjustmentType(adjustment_type).value} cannot move stock "
            f"{previous_stock} -> {new_stock}",
        )
    return AdjustmentDraft(
        adjustment_type=AdjustmentType(adjustment_type),
        previous_stock=previous_stock,
        new_stock=new_stock,
        quantity=quantity,
        reason=reason,
        user_id=user_id,
        order_id=order_id,
    )
