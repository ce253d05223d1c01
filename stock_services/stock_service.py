"""
StockService -- public stock operations.

Responsibility:
    Orchestrates the stock policy and the StockLedgerStore to implement
    daily reset, manual add/remove, listings, history, inventory mode
    conversion and the order deduct/revert hooks.  Owns the transaction
    boundary of each operation.

Architecture position:
    Services -- stateful orchestration over the kernel.  The only layer
    that commits.  Kernel classes below it only flush.

Invariants enforced:
    I3 -- each stock change runs as one unit of work: locked read, policy,
          item update and ledger insert, then commit (or rollback of all).
    I5 -- availability is derived by stock_policy.derive_availability in
          the same unit of work as the stock change.
    No cached stock -- every write re-reads the item under lock.

Failure modes:
    - ValidationError, InvalidOperationError, InsufficientStockError,
      NotFoundError: raised before anything is written, or after a
      rollback of the unit of work.
    - PersistenceError (and LockTimeoutError): store failure, rolled back,
      never retried here.

Audit relevance:
    Every public call binds operation, item_id, actor_id and a
    correlation_id into LogContext and logs started/completed/failed
    events with duration_ms.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.domain import stock_policy
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    InventoryTypeChange,
    MenuItemInfo,
    Page,
    ResetEntry,
    StockAdjustmentInfo,
    StockChangeRequest,
    StockMutation,
)
from stock_kernel.exceptions import NotFoundError, PersistenceError, StockKernelError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.stock_adjustment import AdjustmentType
from stock_kernel.services.stock_ledger_store import StockLedgerStore
from stock_services._reset_types import DailyResetResult, ResetItemOutcome

logger = get_logger("services.stock")


class StockService:
    """
    Public stock operations for menu items.

    Contract:
        Each write operation is a single unit of work.  With
        ``auto_commit=True`` (default) it commits on success and rolls back
        on failure.  With ``auto_commit=False`` it runs in a savepoint and
        leaves the outer transaction to the caller, so an order pipeline can
        deduct stock in the same transaction that creates the order.

    Guarantees:
        - Returns MenuItemInfo / StockAdjustmentInfo DTOs, never ORM rows.
        - Business-rule errors are never partially applied.
        - daily_stock_reset isolates entries: one failed entry never undoes
          entries already committed.

    Non-goals:
        - Does NOT retry failed writes.
        - Does NOT create or delete menu items.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
        lock_timeout_ms: int | None = None,
        reason_min_length: int = stock_policy.DEFAULT_REASON_MIN_LENGTH,
        history_default_limit: int = 20,
        history_max_limit: int = stock_policy.DEFAULT_HISTORY_MAX_LIMIT,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._reason_min_length = reason_min_length
        self._history_default_limit = history_default_limit
        self._history_max_limit = history_max_limit
        self._store = StockLedgerStore(session, self._clock, lock_timeout_ms)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def store(self) -> StockLedgerStore:
        return self._store

    # =========================================================================
    # Transaction and logging scaffolding
    # =========================================================================

    @contextmanager
    def _unit_of_work(self):
        """Commit/rollback (auto_commit) or savepoint around one stock change."""
        if self._auto_commit:
            try:
                yield
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise
        else:
            savepoint = self._session.begin_nested()
            try:
                yield
                savepoint.commit()
            except Exception:
                savepoint.rollback()
                raise

    @contextmanager
    def _read_scope(self):
        """End the read transaction under auto_commit so no lock is held."""
        try:
            yield
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise
        if self._auto_commit:
            self._session.commit()

    @contextmanager
    def _operation(
        self,
        operation: str,
        item_id: UUID | str | None = None,
        actor_id: str | None = None,
        order_id: str | None = None,
    ):
        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            operation=operation,
            item_id=str(item_id) if item_id is not None else None,
            actor_id=str(actor_id) if actor_id is not None else None,
            order_id=order_id,
        ):
            logger.info("stock_operation_started")
            t0 = time.monotonic()
            try:
                yield
            except StockKernelError as exc:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                log = logger.error if isinstance(exc, PersistenceError) else logger.warning
                log(
                    "stock_operation_failed",
                    extra={
                        "duration_ms": duration_ms,
                        "error_code": exc.code,
                        "error_message": str(exc),
                    },
                )
                raise
            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.error(
                    "stock_operation_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise
            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("stock_operation_completed", extra={"duration_ms": duration_ms})

    # =========================================================================
    # Daily reset
    # =========================================================================

    def daily_stock_reset(
        self,
        entries: Sequence[ResetEntry],
        user_id: str | None = None,
        reason: str | None = None,
    ) -> DailyResetResult:
        """
        Reinitialize stock for a batch of TRACKED items.

        Each entry is its own unit of work.  An entry that fails a business
        rule (negative quantity, UNLIMITED item, unknown item) becomes a
        failed outcome and the batch continues.  A PersistenceError aborts
        the batch and propagates; entries committed before it stay.

        Args:
            entries: Items to reset, each with the new quantity and an
                optional new low_stock_alert.
            user_id: Actor, if the reset was not system-issued.
            reason: Optional ledger reason (e.g. "Begin of the day").

        Returns:
            DailyResetResult with one outcome per entry, in input order.

        Raises:
            ValidationError: entries is empty.
            PersistenceError: store failure on any entry.
        """
        with self._operation("daily_stock_reset", actor_id=user_id):
            stock_policy.validate_reset_batch(entries)
            reason = reason.strip() if reason and reason.strip() else None

            outcomes: list[ResetItemOutcome] = []
            for entry in entries:
                with LogContext.bind(item_id=str(entry.item_id)):
                    try:
                        outcomes.append(self._reset_one(entry, user_id, reason))
                    except PersistenceError:
                        raise
                    except StockKernelError as exc:
                        logger.warning(
                            "stock_reset_item_failed",
                            extra={"error_code": exc.code, "error_message": str(exc)},
                        )
                        outcomes.append(ResetItemOutcome.failure(entry.item_id, exc))

            result = DailyResetResult(outcomes=tuple(outcomes))
            logger.info(
                "stock_reset_batch_completed",
                extra={
                    "entry_count": len(result),
                    "succeeded_count": len(result.succeeded),
                    "failed_count": len(result.failed),
                },
            )
            return result

    def _reset_one(
        self,
        entry: ResetEntry,
        user_id: str | None,
        reason: str | None,
    ) -> ResetItemOutcome:
        quantity = stock_policy.validate_reset_quantity(entry.quantity)
        low_stock_alert = stock_policy.validate_low_stock_alert(entry.low_stock_alert)

        with self._unit_of_work():
            item = self._store.get_item(entry.item_id, for_update=True)
            stock_policy.require_tracked(item, "daily_stock_reset")

            previous_stock = item.stock_quantity
            draft = stock_policy.build_adjustment(
                str(item.id),
                AdjustmentType.DAILY_RESET,
                previous_stock,
                quantity,
                reason=reason,
                user_id=str(user_id) if user_id is not None else None,
            )
            # A reset re-enables the item unless it leaves it at zero with auto-mark on
            mutation = StockMutation(
                new_stock_quantity=quantity,
                new_is_available=stock_policy.derive_availability(
                    quantity, item.auto_mark_unavailable, True,
                ),
                new_initial_stock=quantity,
                new_low_stock_alert=low_stock_alert,
            )
            updated, _ = self._store.commit_mutation(item.id, mutation, draft)

        return ResetItemOutcome.success(entry.item_id, updated, previous_stock)

    # =========================================================================
    # Manual adjustments
    # =========================================================================

    def add_stock(
        self,
        item_id: UUID | str,
        request: StockChangeRequest,
        user_id: str,
    ) -> MenuItemInfo:
        """
        Add stock to a TRACKED item and mark it available.

        Raises:
            ValidationError: quantity <= 0, short reason, missing user_id.
            InvalidOperationError: item is UNLIMITED.
            NotFoundError: item missing.
        """
        with self._operation("add_stock", item_id=item_id, actor_id=user_id):
            quantity = stock_policy.validate_quantity(request.quantity)
            reason = stock_policy.validate_reason(request.reason, self._reason_min_length)
            actor = stock_policy.validate_actor(user_id)

            with self._unit_of_work():
                item = self._store.get_item(item_id, for_update=True)
                stock_policy.require_tracked(item, "add_stock")

                new_stock = stock_policy.apply_add(item, quantity)
                draft = stock_policy.build_adjustment(
                    str(item.id),
                    AdjustmentType.MANUAL_ADD,
                    item.stock_quantity,
                    new_stock,
                    reason=reason,
                    user_id=actor,
                )
                updated, _ = self._store.commit_mutation(
                    item.id,
                    StockMutation(new_stock_quantity=new_stock, new_is_available=True),
                    draft,
                )
            return updated

    def remove_stock(
        self,
        item_id: UUID | str,
        request: StockChangeRequest,
        user_id: str,
    ) -> MenuItemInfo:
        """
        Remove stock from a TRACKED item.

        Availability is left as it was, except that I5 switches the item
        off when the removal empties it with auto_mark_unavailable set.

        Raises:
            ValidationError: quantity <= 0, short reason, missing user_id.
            InvalidOperationError: item is UNLIMITED.
            InsufficientStockError: quantity exceeds current stock.
            NotFoundError: item missing.
        """
        with self._operation("remove_stock", item_id=item_id, actor_id=user_id):
            quantity = stock_policy.validate_quantity(request.quantity)
            reason = stock_policy.validate_reason(request.reason, self._reason_min_length)
            actor = stock_policy.validate_actor(user_id)

            with self._unit_of_work():
                item = self._store.get_item(item_id, for_update=True)
                stock_policy.require_tracked(item, "remove_stock")

                new_stock = stock_policy.apply_remove(item, quantity)
                draft = stock_policy.build_adjustment(
                    str(item.id),
                    AdjustmentType.MANUAL_REMOVE,
                    item.stock_quantity,
                    new_stock,
                    reason=reason,
                    user_id=actor,
                )
                mutation = StockMutation(
                    new_stock_quantity=new_stock,
                    new_is_available=stock_policy.derive_availability(
                        new_stock, item.auto_mark_unavailable, item.is_available,
                    ),
                )
                updated, _ = self._store.commit_mutation(item.id, mutation, draft)
            return updated

    # =========================================================================
    # Order hooks
    # =========================================================================

    def deduct_stock_for_order(
        self,
        item_id: UUID | str,
        quantity: int,
        order_id: str,
    ) -> MenuItemInfo | None:
        """
        Deduct stock for a confirmed order line.

        Missing and UNLIMITED items are skipped (returns None): an order may
        reference items that do not count stock.

        Raises:
            InsufficientStockError: order quantity exceeds current stock.
        """
        with self._operation("deduct_stock_for_order", item_id=item_id, order_id=order_id):
            quantity = stock_policy.validate_quantity(quantity)

            with self._unit_of_work():
                item = self._tracked_or_none(item_id)
                if item is None:
                    return None

                new_stock = stock_policy.apply_remove(
                    item,
                    quantity,
                    message=(
                        f"Insufficient stock for {item.name}. "
                        f"Available: {item.stock_quantity}, Required: {quantity}"
                    ),
                )
                draft = stock_policy.build_adjustment(
                    str(item.id),
                    AdjustmentType.ORDER_DEDUCT,
                    item.stock_quantity,
                    new_stock,
                    reason=f"Order {order_id}",
                    order_id=str(order_id),
                )
                mutation = StockMutation(
                    new_stock_quantity=new_stock,
                    new_is_available=stock_policy.derive_availability(
                        new_stock, item.auto_mark_unavailable, item.is_available,
                    ),
                )
                updated, _ = self._store.commit_mutation(item.id, mutation, draft)
            return updated

    def revert_stock_for_order(
        self,
        item_id: UUID | str,
        quantity: int,
        order_id: str,
    ) -> MenuItemInfo | None:
        """Restore stock for a cancelled order line.  Skips missing/UNLIMITED items."""
        with self._operation("revert_stock_for_order", item_id=item_id, order_id=order_id):
            quantity = stock_policy.validate_quantity(quantity)

            with self._unit_of_work():
                item = self._tracked_or_none(item_id)
                if item is None:
                    return None

                new_stock = stock_policy.apply_add(item, quantity)
                draft = stock_policy.build_adjustment(
                    str(item.id),
                    AdjustmentType.ORDER_CANCELLED,
                    item.stock_quantity,
                    new_stock,
                    reason=f"Order {order_id} cancelled",
                    order_id=str(order_id),
                )
                updated, _ = self._store.commit_mutation(
                    item.id,
                    StockMutation(new_stock_quantity=new_stock, new_is_available=True),
                    draft,
                )
            return updated

    def _tracked_or_none(self, item_id: UUID | str) -> MenuItemInfo | None:
        try:
            item = self._store.get_item(item_id, for_update=True)
        except NotFoundError:
            logger.info("order_stock_skipped", extra={"skip_reason": "not_found"})
            return None
        if not item.is_tracked:
            logger.info("order_stock_skipped", extra={"skip_reason": "unlimited"})
            return None
        return item

    # =========================================================================
    # Queries
    # =========================================================================

    def get_low_stock_items(self) -> list[MenuItemInfo]:
        """TRACKED items at or below their low_stock_alert, by name."""
        with self._operation("get_low_stock_items"), self._read_scope():
            return self._store.query_low_stock()

    def get_out_of_stock_items(self) -> list[MenuItemInfo]:
        """TRACKED items with zero stock, by name."""
        with self._operation("get_out_of_stock_items"), self._read_scope():
            return self._store.query_out_of_stock()

    def get_stock_history(
        self,
        item_id: UUID | str,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[StockAdjustmentInfo]:
        """
        Page through an item's ledger, newest first.

        Raises:
            ValidationError: page < 1, limit < 1 or limit above the maximum.
            NotFoundError: item missing.
        """
        if limit is None:
            limit = self._history_default_limit
        with self._operation("get_stock_history", item_id=item_id):
            page, limit = stock_policy.validate_pagination(
                page, limit, self._history_max_limit,
            )
            with self._read_scope():
                return self._store.query_history(item_id, page, limit)

    # =========================================================================
    # Inventory mode
    # =========================================================================

    def update_inventory_type(
        self,
        item_id: UUID | str,
        change: InventoryTypeChange,
    ) -> MenuItemInfo:
        """
        Convert an item between TRACKED and UNLIMITED.

        No ledger row is written.  Converting to the current type is a
        no-op that returns the item unchanged.

        Raises:
            ValidationError: unknown inventory type or negative threshold.
            NotFoundError: item missing.
        """
        with self._operation("update_inventory_type", item_id=item_id):
            new_type = stock_policy.parse_inventory_type(change.inventory_type)
            low_stock_alert = stock_policy.validate_low_stock_alert(change.low_stock_alert)

            with self._unit_of_work():
                return self._store.convert_type(item_id, new_type, low_stock_alert)

