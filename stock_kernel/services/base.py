"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Common constructor and session-handling contract for every write-side
    class in the kernel.  Subclasses receive a SQLAlchemy ``Session`` and
    use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: kernel services flush within the caller's
    transaction and never commit or roll back themselves.  The caller
    (StockService, or a test harness) owns commit/rollback, which is what
    keeps an item update and its ledger row in one unit of work (I3).
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel write services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide listing queries; those live in
          ``stock_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session
