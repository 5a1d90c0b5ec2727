"""
AllocationLedger -- per-item, per-holder balances with quantity conservation.

Responsibility:
    Sole owner of the ``allocations`` table.  Reads balances, applies signed
    adjustments, locks the stock item row for the duration of a unit of
    work, and checks that every item touched in the unit of work is still
    conserved before the caller records the movement.

Architecture position:
    Kernel > Services -- imperative shell.  Used by TransferService and
    CatalogService.  Never commits.

Invariants enforced:
    CONSERVATION -- sum of allocations (central pool included) equals
        StockItem.quantity.  ``adjust`` tracks the net delta applied to each
        item in this unit of work; ``assert_balanced`` rejects any unit of
        work whose adjustments do not net to zero or whose stored rows no
        longer sum to the item quantity.
    NON_NEGATIVE_BALANCE -- ``adjust`` raises InsufficientQuantityError
        instead of writing a negative balance.  Nothing is written on that
        path.

Failure modes:
    - StockItemNotFoundError: unknown item id.
    - InsufficientQuantityError: debit larger than the holder's balance.
    - ConservationViolationError: unpaired adjustment or drifted rows.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import (
    ConservationViolationError,
    InsufficientQuantityError,
    StockItemNotFoundError,
)
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.allocation import Allocation
from inventory_kernel.models.stock_item import StockItem
from inventory_kernel.services.base import BaseService

logger = get_logger("services.allocation_ledger")


class AllocationLedger(BaseService[Allocation]):
    """
    Balance store for (item, holder) pairs.

    Contract:
        ``holder_id=None`` denotes the central pool.  A missing row reads
        as zero.  Rows are created on first credit and, when
        ``prune_zero`` is set, deleted when their balance reaches zero.

    Non-goals:
        - Does NOT record movements (MovementRecorder does).
        - Does NOT check capabilities (TransferService does).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        prune_zero: bool = True,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._prune_zero = prune_zero
        self._pending: dict[UUID, int] = defaultdict(int)

    # ------------------------------------------------------------------
    # Item row locking
    # ------------------------------------------------------------------

    def lock_item(self, item_id: UUID) -> StockItem:
        """
        Load the stock item with a row lock held until the transaction ends.

        ``populate_existing`` refreshes an instance already in the identity
        map so the caller never works from a stale quantity.

        Raises:
            StockItemNotFoundError: if the item does not exist.
        """
        item = self.session.execute(
            select(StockItem)
            .where(StockItem.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise StockItemNotFoundError(str(item_id))
        return item

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _row(self, item_id: UUID, holder_id: UUID | None) -> Allocation | None:
        stmt = select(Allocation).where(Allocation.item_id == item_id)
        if holder_id is None:
            stmt = stmt.where(Allocation.holder_id.is_(None))
        else:
            stmt = stmt.where(Allocation.holder_id == holder_id)
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_balance(self, item_id: UUID, holder_id: UUID | None) -> int:
        """Quantity of ``item_id`` held by ``holder_id`` (0 if no row)."""
        row = self._row(item_id, holder_id)
        return row.quantity if row is not None else 0

    def total_allocated(self, item_id: UUID) -> int:
        """Sum of every holder's balance for the item, central pool included."""
        self.session.flush()
        total = self.session.execute(
            select(func.coalesce(func.sum(Allocation.quantity), 0))
            .where(Allocation.item_id == item_id)
        ).scalar_one()
        return int(total)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def open_central_pool(self, item: StockItem) -> Allocation | None:
        """
        Place the whole quantity of a newly registered item in the central
        pool.  The item and its pool row are created in the same unit of
        work, so the item is conserved from its first committed state.
        """
        if item.quantity == 0:
            return None
        row = Allocation(
            item_id=item.id,
            holder_id=None,
            quantity=item.quantity,
            updated_at=self._clock.now(),
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "central_pool_opened",
            extra={"item_id": str(item.id), "quantity": item.quantity},
        )
        return row

    def adjust(self, item_id: UUID, holder_id: UUID | None, delta: int) -> int:
        """
        Apply a signed ``delta`` to one holder's balance.

        Preconditions:
            - The caller holds the item's critical section (``lock_item``).
            - Every adjustment is paired within the unit of work so the
              item's deltas net to zero before ``assert_balanced``.

        Postconditions:
            - Returns the new balance (>= 0).
            - A row is created if absent; a row reaching zero is pruned
              when pruning is enabled.

        Raises:
            InsufficientQuantityError: if the new balance would be negative.
        """
        row = self._row(item_id, holder_id)
        current = row.quantity if row is not None else 0
        new_balance = current + delta

        # INVARIANT: NON_NEGATIVE_BALANCE -- reject before any write
        if new_balance < 0:
            raise InsufficientQuantityError(
                item_id=str(item_id),
                holder_id=str(holder_id) if holder_id is not None else None,
                available=current,
                requested=-delta,
            )

        now = self._clock.now()
        if row is None:
            if new_balance > 0:
                self.session.add(
                    Allocation(
                        item_id=item_id,
                        holder_id=holder_id,
                        quantity=new_balance,
                        updated_at=now,
                    )
                )
        elif new_balance == 0 and self._prune_zero:
            self.session.delete(row)
        else:
            row.quantity = new_balance
            row.updated_at = now

        self.session.flush()
        self._pending[item_id] += delta

        logger.debug(
            "allocation_adjusted",
            extra={
                "item_id": str(item_id),
                "holder_id": str(holder_id) if holder_id is not None else None,
                "delta": delta,
                "balance": new_balance,
            },
        )
        return new_balance

    # ------------------------------------------------------------------
    # Conservation
    # ------------------------------------------------------------------

    def verify_conservation(self, item_id: UUID) -> int:
        """
        Recompute the item's allocated total and compare it to its quantity.

        Returns:
            The allocated total (== StockItem.quantity).

        Raises:
            StockItemNotFoundError: unknown item.
            ConservationViolationError: totals differ.
        """
        item = self.session.get(StockItem, item_id)
        if item is None:
            raise StockItemNotFoundError(str(item_id))
        total = self.total_allocated(item_id)
        # INVARIANT: CONSERVATION
        if total != item.quantity:
            logger.error(
                "conservation_violation",
                extra={
                    "item_id": str(item_id),
                    "expected": item.quantity,
                    "actual": total,
                    "invariant": KernelInvariant.CONSERVATION.value,
                },
            )
            raise ConservationViolationError(str(item_id), item.quantity, total)
        return total

    def assert_balanced(self) -> None:
        """
        Check every item adjusted in this unit of work.

        Raises:
            ConservationViolationError: an item's adjustments do not net to
                zero, or its stored rows do not sum to its quantity.
        """
        for item_id, net in list(self._pending.items()):
            if net != 0:
                item = self.session.get(StockItem, item_id)
                expected = item.quantity if item is not None else 0
                logger.error(
                    "unpaired_adjustment",
                    extra={
                        "item_id": str(item_id),
                        "net_delta": net,
                        "invariant": KernelInvariant.CONSERVATION.value,
                    },
                )
                raise ConservationViolationError(
                    str(item_id), expected, expected + net,
                )
            self.verify_conservation(item_id)
        self._pending.clear()
