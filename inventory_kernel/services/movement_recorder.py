"""
MovementRecorder -- append-only movement ledger writer.

Responsibility:
    Appends one immutable Movement per successful transfer.  Carries no
    balance logic: TransferService changes balances through
    AllocationLedger in the same unit of work, just before calling
    ``record``.

Invariants enforced:
    APPEND_ONLY_LEDGER -- only INSERTs; UPDATE/DELETE are rejected by the
        ORM listeners in db/immutability.py.
    Per-item ordering -- ``sequence`` is taken from the locked stock item
        row (``movement_seq + 1``) and ``moved_at`` is never earlier than
        the item's previous movement, so the audit order is observable
        through both.

Failure modes:
    - InvalidTransferError: non-positive quantity, or both sides central.
    - StockItemNotFoundError: unknown item.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.db.types import utc
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import MovementRecord
from inventory_kernel.exceptions import InvalidTransferError, StockItemNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import Movement, MovementKind
from inventory_kernel.models.stock_item import StockItem
from inventory_kernel.services.base import BaseService

logger = get_logger("services.movement_recorder")


class MovementRecorder(BaseService[Movement]):
    """Writes Movement rows. Never mutates or removes prior entries."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _last_moved_at(self, item_id: UUID):
        return self.session.execute(
            select(func.max(Movement.moved_at)).where(Movement.item_id == item_id)
        ).scalar_one_or_none()

    def record(
        self,
        item_id: UUID,
        from_holder_id: UUID | None,
        to_holder_id: UUID | None,
        quantity: int,
        actor_id: UUID,
        notes: str | None = None,
        request_id: UUID | None = None,
    ) -> MovementRecord:
        """
        Append a movement for ``item_id``.

        Preconditions:
            - The caller holds the item's critical section and has already
              applied the matching balance change.

        Postconditions:
            - A new Movement row is flushed with the next per-item sequence.
        """
        if quantity <= 0:
            raise InvalidTransferError(f"quantity must be positive, got {quantity}")
        if from_holder_id is None and to_holder_id is None:
            raise InvalidTransferError("source and destination are both the central pool")

        item = self.session.get(StockItem, item_id)
        if item is None:
            raise StockItemNotFoundError(str(item_id))

        moved_at = self._clock.now()
        last = self._last_moved_at(item_id)
        if last is not None and utc(last) > moved_at:
            moved_at = utc(last)

        item.movement_seq += 1
        movement = Movement(
            item_id=item_id,
            sequence=item.movement_seq,
            from_holder_id=from_holder_id,
            to_holder_id=to_holder_id,
            quantity=quantity,
            kind=MovementKind.classify(from_holder_id, to_holder_id).value,
            moved_by_id=actor_id,
            moved_at=moved_at,
            notes=notes,
            request_id=request_id,
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "movement_recorded",
            extra={
                "movement_id": str(movement.id),
                "item_id": str(item_id),
                "sequence": movement.sequence,
                "from_holder_id": str(from_holder_id) if from_holder_id else None,
                "to_holder_id": str(to_holder_id) if to_holder_id else None,
                "quantity": quantity,
                "kind": movement.kind,
            },
        )
        return movement.to_dto()
