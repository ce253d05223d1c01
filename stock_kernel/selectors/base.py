"""
Module: stock_kernel.selectors.base
Responsibility: Abstract base class for read-only stock queries.  Selectors
    are the read side of the kernel: listings, history pages and ledger
    verification, with no mutation capability.
Architecture position: Kernel > Selectors.  May import from db/base.py,
    models/ and the pure domain.  MUST NOT import from services/ or outer
    layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses, not ORM rows.
    - Session ownership: the caller owns the session and its transaction.

Failure modes:
    - SQLAlchemyError subclasses propagate to the caller; the store maps them
      to PersistenceError.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
