"""
stock_services._reset_types -- Daily reset batch result DTOs.

Responsibility:
    Frozen dataclasses describing the outcome of a daily stock reset: one
    ResetItemOutcome per input entry, collected in a DailyResetResult.

Architecture position:
    Services -- these types live next to StockService, the only producer.

Invariants enforced:
    - outcomes are in input order, one per entry.
    - A succeeded outcome carries the updated item and no error; a failed
      outcome carries an error code/message and no item.

Audit relevance:
    The per-entry list lets an operator see which items were reset and
    which were skipped (and why) without re-reading the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from stock_kernel.domain.dtos import MenuItemInfo
from stock_kernel.exceptions import StockKernelError


@dataclass(frozen=True)
class ResetItemOutcome:
    """Result of resetting one item."""

    item_id: UUID | str
    succeeded: bool
    item: MenuItemInfo | None = None
    previous_stock: int | None = None
    new_stock: int | None = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def success(
        cls,
        item_id: UUID | str,
        item: MenuItemInfo,
        previous_stock: int,
    ) -> ResetItemOutcome:
        return cls(
            item_id=item_id,
            succeeded=True,
            item=item,
            previous_stock=previous_stock,
            new_stock=item.stock_quantity,
        )

    @classmethod
    def failure(cls, item_id: UUID | str, error: StockKernelError) -> ResetItemOutcome:
        return cls(
            item_id=item_id,
            succeeded=False,
            error_code=error.code,
            error_message=str(error),
        )


@dataclass(frozen=True)
class DailyResetResult:
    """All outcomes of one daily_stock_reset call, in input order."""

    outcomes: tuple[ResetItemOutcome, ...]

    @property
    def succeeded(self) -> tuple[ResetItemOutcome, ...]:
        return tuple(o for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> tuple[ResetItemOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.succeeded)

    @property
    def all_succeeded(self) -> bool:
        return all(o.succeeded for o in self.outcomes)

    @property
    def items(self) -> list[MenuItemInfo]:
        """Updated items of the successful entries, in input order."""
        return [o.item for o in self.outcomes if o.succeeded]

    def __len__(self) -> int:
        return len(self.outcomes)
