"""
Module: inventory_kernel.selectors.movement_selector
Responsibility: Read-only queries over the append-only movement ledger.
Architecture position: Kernel > Selectors.

Ordering:
    Movements of one item come back in ``sequence`` order, which is the
    order their transfers acquired the item's critical section.  Across
    items the listing is ordered by ``moved_at`` then item and sequence.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import MovementRecord
from inventory_kernel.models.movement import Movement
from inventory_kernel.selectors.base import BaseSelector


class MovementSelector(BaseSelector[Movement]):
    """Audit-order reads of movements."""

    def list_movements(self, item_id: UUID | None = None) -> list[MovementRecord]:
        stmt = select(Movement)
        if item_id is not None:
            stmt = stmt.where(Movement.item_id == item_id).order_by(Movement.sequence)
        else:
            stmt = stmt.order_by(Movement.moved_at, Movement.item_id, Movement.sequence)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
