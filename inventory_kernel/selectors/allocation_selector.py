"""
Module: inventory_kernel.selectors.allocation_selector
Responsibility: Read-only balance queries over the allocations table.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/.

Failure modes:
    - A holder with no row reads as zero; listing returns an empty list.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import AllocationBalance
from inventory_kernel.models.allocation import Allocation
from inventory_kernel.selectors.base import BaseSelector


class AllocationSelector(BaseSelector[Allocation]):
    """Balances per (item, holder)."""

    def balance(self, item_id: UUID, holder_id: UUID | None) -> int:
        stmt = select(Allocation.quantity).where(Allocation.item_id == item_id)
        if holder_id is None:
            stmt = stmt.where(Allocation.holder_id.is_(None))
        else:
            stmt = stmt.where(Allocation.holder_id == holder_id)
        quantity = self.session.execute(stmt).scalar_one_or_none()
        return quantity or 0

    def list_balances(
        self,
        holder_id: UUID | None = None,
        item_id: UUID | None = None,
        central_only: bool = False,
    ) -> list[AllocationBalance]:
        """
        Non-zero balances, optionally filtered by holder and/or item.

        ``holder_id=None`` means "any holder"; pass ``central_only=True``
        to restrict to the central pool.
        """
        stmt = select(Allocation).where(Allocation.quantity > 0)
        if central_only:
            stmt = stmt.where(Allocation.holder_id.is_(None))
        elif holder_id is not None:
            stmt = stmt.where(Allocation.holder_id == holder_id)
        if item_id is not None:
            stmt = stmt.where(Allocation.item_id == item_id)
        stmt = stmt.order_by(Allocation.item_id, Allocation.holder_id)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]
