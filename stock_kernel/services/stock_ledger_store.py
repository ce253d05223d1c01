"""
StockLedgerStore -- atomic read-modify-write of menu item stock.

Responsibility:
    Durable storage for menu item stock fields and the append-only
    adjustment ledger.  commit_mutation() updates one item and inserts its
    ledger row in the caller's transaction, so a reader never sees one
    without the other.

Architecture position:
    Kernel > Services -- imperative shell, owns the row locks.
    Reads for listings and history are delegated to StockLedgerSelector.

Invariants enforced:
    I3 -- commit_mutation writes exactly one StockAdjustmentModel per stock
          change, with previous_stock equal to the locked row's value.
    Lost-update prevention -- get_item(for_update=True) takes
          SELECT ... FOR UPDATE on the item row (BEGIN IMMEDIATE on SQLite);
          commit_mutation re-checks previous_stock against the locked row and
          the version column catches any write that bypassed the lock.

Failure modes:
    - NotFoundError: item missing or soft-deleted.
    - OptimisticLockError: stock changed between the caller's read and
      commit_mutation, or the version check failed at flush.
    - LockTimeoutError: row lock not acquired within lock_timeout_ms.
    - PersistenceError: any other store failure; the SQLAlchemy exception
      is chained as __cause__.

Audit relevance:
    Every ledger row carries created_at from the injected Clock, the actor
    and, for order hooks, the order id.  A stock_adjusted event is logged
    for each row written.
"""

from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stock_kernel.db.engine import is_postgres_session
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    AdjustmentDraft,
    MenuItemInfo,
    Page,
    StockAdjustmentInfo,
    StockMutation,
)
from stock_kernel.exceptions import (
    InventoryInvariantError,
    LockTimeoutError,
    NotFoundError,
    OptimisticLockError,
    PersistenceError,
)
from stock_kernel.invariants import StockInvariant
from stock_kernel.logging_config import get_logger
from stock_kernel.models.menu_item import InventoryType, MenuItemModel
from stock_kernel.models.stock_adjustment import StockAdjustmentModel
from stock_kernel.selectors.stock_selector import (
    StockLedgerSelector,
    to_adjustment_info,
    to_item_info,
)
from stock_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger_store")

# PostgreSQL SQLSTATE for lock_timeout expiry (lock_not_available)
_PG_LOCK_NOT_AVAILABLE = "55P03"


def _is_lock_timeout(exc: OperationalError) -> bool:
    if getattr(exc.orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(exc.orig)


def _coerce_id(item_id: UUID | str) -> UUID:
    if isinstance(item_id, UUID):
        return item_id
    try:
        return UUID(str(item_id))
    except ValueError:
        raise NotFoundError(str(item_id)) from None


class StockLedgerStore(BaseService[MenuItemModel]):
    """
    Store for menu item stock and its adjustment ledger.

    Contract:
        Every method runs inside the caller's transaction and only flushes.
        The caller commits (making the change durable) or rolls back
        (discarding the item update and the ledger row together).

    Guarantees:
        - Methods return MenuItemInfo / StockAdjustmentInfo DTOs, never ORM rows.
        - A locked read is followed by writes in the same transaction; no
          stock value is cached across calls (populate_existing on every load).
        - SQLAlchemy errors surface as PersistenceError (or a subclass) with
          the original exception as __cause__.

    Non-goals:
        - Does NOT validate requests or decide availability; StockService
          applies stock_policy before calling in.
        - Does NOT retry.  A retried write could duplicate a ledger row.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        lock_timeout_ms: int | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._lock_timeout_ms = lock_timeout_ms
        self._selector = StockLedgerSelector(session)

    @property
    def lock_timeout_ms(self) -> int | None:
        return self._lock_timeout_ms

    # =========================================================================
    # Error mapping
    # =========================================================================

    @contextmanager
    def _store_call(self, operation: str, item_id: UUID | None = None):
        """Translate SQLAlchemy failures into PersistenceError."""
        target = str(item_id) if item_id is not None else None
        try:
            yield
        except StaleDataError as exc:
            logger.warning(
                "optimistic_lock_conflict",
                extra={"operation": operation, "item_id": target},
            )
            raise OptimisticLockError("MenuItem", target or "?") from exc
        except OperationalError as exc:
            if _is_lock_timeout(exc):
                logger.warning(
                    "stock_lock_timeout",
                    extra={
                        "operation": operation,
                        "item_id": target,
                        "timeout_ms": self._lock_timeout_ms,
                    },
                )
                raise LockTimeoutError(operation, target, self._lock_timeout_ms) from exc
            logger.error(
                "stock_store_failed",
                extra={"operation": operation, "item_id": target, "transient": True},
            )
            raise PersistenceError(
                operation, item_id=target, transient=True, detail=str(exc.orig),
            ) from exc
        except IntegrityError as exc:
            logger.error(
                "stock_store_failed",
                extra={"operation": operation, "item_id": target, "transient": False},
            )
            raise PersistenceError(
                operation, item_id=target, transient=False, detail=str(exc.orig),
            ) from exc
        except SQLAlchemyError as exc:
            logger.error(
                "stock_store_failed",
                extra={"operation": operation, "item_id": target, "transient": False},
            )
            raise PersistenceError(
                operation, item_id=target, transient=False, detail=str(exc),
            ) from exc

    # =========================================================================
    # Item access
    # =========================================================================

    def _apply_lock_timeout(self) -> None:
        if self._lock_timeout_ms is None or not is_postgres_session(self.session):
            return
        # SET LOCAL does not accept bind parameters; the value is an int
        self.session.connection().exec_driver_sql(
            f"SET LOCAL lock_timeout = '{int(self._lock_timeout_ms)}ms'"
        )

    def _load(self, item_id: UUID, for_update: bool) -> MenuItemModel:
        query = (
            select(MenuItemModel)
            .where(MenuItemModel.id == item_id)
            .where(MenuItemModel.is_deleted.is_(False))
        )
        if for_update:
            self._apply_lock_timeout()
            query = query.with_for_update()
        item = self.session.execute(
            query.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise NotFoundError(str(item_id))
        return item

    def get_item(self, item_id: UUID | str, for_update: bool = False) -> MenuItemInfo:
        """
        Read the current committed state of an item.

        Args:
            item_id: Menu item id.
            for_update: Lock the row until the caller's transaction ends.
                Every read that feeds a stock computation must pass True.

        Raises:
            NotFoundError: Item missing or soft-deleted.
        """
        item_id = _coerce_id(item_id)
        with self._store_call("get_item", item_id):
            return to_item_info(self._load(item_id, for_update))

    # =========================================================================
    # Mutations
    # =========================================================================

    def commit_mutation(
        self,
        item_id: UUID | str,
        mutation: StockMutation,
        adjustment: AdjustmentDraft,
    ) -> tuple[MenuItemInfo, StockAdjustmentInfo]:
        """
        Apply a stock change and append its ledger row as one unit of work.

        Preconditions:
            - The caller is inside a transaction and read the item with
              get_item(for_update=True) in that same transaction.
            - adjustment was built by stock_policy.build_adjustment.

        Postconditions:
            - Item fields updated and one StockAdjustmentModel inserted,
              both flushed (not committed).

        Raises:
            OptimisticLockError: Stored stock no longer equals
                adjustment.previous_stock.
            InventoryInvariantError: mutation and adjustment disagree on
                the new stock level.
        """
        item_id = _coerce_id(item_id)
        with self._store_call("commit_mutation", item_id):
            item = self._load(item_id, for_update=True)

            if item.stock_quantity != adjustment.previous_stock:
                logger.warning(
                    "stock_changed_since_read",
                    extra={
                        "item_id": str(item_id),
                        "expected": adjustment.previous_stock,
                        "actual": item.stock_quantity,
                    },
                )
                raise OptimisticLockError("MenuItem", str(item_id))

            # INVARIANT: I3 -- ledger new_stock is the value written to the item
            if mutation.new_stock_quantity != adjustment.new_stock:
                raise InventoryInvariantError(
                    str(item_id),
                    StockInvariant.LEDGER_COMPLETENESS.value,
                    f"mutation sets {mutation.new_stock_quantity}, "
                    f"ledger records {adjustment.new_stock}",
                )

            now = self._clock.now()
            item.stock_quantity = mutation.new_stock_quantity
            if mutation.new_is_available is not None:
                item.is_available = mutation.new_is_available
            if mutation.new_initial_stock is not None:
                item.initial_stock = mutation.new_initial_stock
            if mutation.new_low_stock_alert is not None:
                item.low_stock_alert = mutation.new_low_stock_alert
            item.updated_at = now

            row = StockAdjustmentModel(
                menu_item_id=item.id,
                adjustment_type=adjustment.adjustment_type.value,
                previous_stock=adjustment.previous_stock,
                new_stock=adjustment.new_stock,
                quantity=adjustment.quantity,
                reason=adjustment.reason,
                user_id=adjustment.user_id,
                order_id=adjustment.order_id,
                created_at=now,
                sequence=self._selector.next_sequence(item.id),
            )
            self.session.add(row)
            self.session.flush()

            logger.info(
                "stock_adjusted",
                extra={
                    "item_id": str(item.id),
                    "adjustment_id": str(row.id),
                    "adjustment_type": adjustment.adjustment_type.value,
                    "sequence": row.sequence,
                    "previous_stock": adjustment.previous_stock,
                    "new_stock": adjustment.new_stock,
                    "quantity": adjustment.quantity,
                    "is_available": item.is_available,
                },
            )
            return to_item_info(item), to_adjustment_info(row, item.name)

    def convert_type(
        self,
        item_id: UUID | str,
        new_type: InventoryType,
        low_stock_alert: int | None = None,
    ) -> MenuItemInfo:
        """
        Switch an item between TRACKED and UNLIMITED.

        A mode conversion is a configuration change, not a quantity
        change: no ledger row is written.

        Transitions:
            TRACKED -> UNLIMITED: stock fields set to NULL; is_available kept.
            UNLIMITED -> TRACKED: stock 0, initial 0, threshold
                low_stock_alert or 0, auto_mark_unavailable True.
            Same type: no write; the item is returned unchanged.
        """
        item_id = _coerce_id(item_id)
        new_type = InventoryType(new_type)
        with self._store_call("convert_type", item_id):
            item = self._load(item_id, for_update=True)
            old_type = InventoryType(item.inventory_type)
            if old_type == new_type:
                return to_item_info(item)

            if new_type == InventoryType.UNLIMITED:
                item.stock_quantity = None
                item.initial_stock = None
                item.low_stock_alert = None
            else:
                item.stock_quantity = 0
                item.initial_stock = 0
                item.low_stock_alert = low_stock_alert if low_stock_alert is not None else 0
                item.auto_mark_unavailable = True
            item.inventory_type = new_type.value
            item.updated_at = self._clock.now()
            self.session.flush()

            logger.info(
                "inventory_type_converted",
                extra={
                    "item_id": str(item_id),
                    "from_type": old_type.value,
                    "to_type": new_type.value,
                    "low_stock_alert": item.low_stock_alert,
                },
            )
            return to_item_info(item)

    # =========================================================================
    # Queries
    # =========================================================================

    def query_low_stock(self) -> list[MenuItemInfo]:
        with self._store_call("query_low_stock"):
            return self._selector.low_stock_items()

    def query_out_of_stock(self) -> list[MenuItemInfo]:
        with self._store_call("query_out_of_stock"):
            return self._selector.out_of_stock_items()

    def query_history(
        self,
        item_id: UUID | str,
        page: int,
        limit: int,
    ) -> Page[StockAdjustmentInfo]:
        """
        One page of the item's ledger, newest first.

        Raises:
            NotFoundError: Item missing or soft-deleted.
        """
        item_id = _coerce_id(item_id)
        with self._store_call("query_history", item_id):
            self._load(item_id, for_update=False)
            return self._selector.history(item_id, page, limit)
