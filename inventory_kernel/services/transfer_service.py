"""
TransferService -- one atomic quantity transfer for one item.

Responsibility:
    Validates a transfer request, then debits the source and credits the
    destination through AllocationLedger and appends the Movement through
    MovementRecorder, all inside the caller's unit of work.

Architecture position:
    Kernel > Services.  Called by InventoryOrchestrator (direct transfers)
    and RequestWorkflowService (request completion).

Invariants enforced:
    ATOMIC_TRANSFER -- debit, credit and movement are flushed in the same
        transaction.  Any failure propagates and the orchestrator rolls
        the whole unit of work back, so no Movement exists without its
        balance change and vice versa.
    CONSERVATION -- ``assert_balanced`` runs after the paired adjustment
        and before the movement is recorded.

Failure modes:
    - InvalidTransferError: quantity not a positive int, or source equals
      destination.
    - UnauthorizedError: actor lacks canMoveStock.
    - HolderNotFoundError: a non-central holder is unknown to the directory.
    - StockItemNotFoundError / InsufficientQuantityError: from the ledger.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.authorization import ActorDirectory, AuthorizationPolicy
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import MovementRecord
from inventory_kernel.domain.events import DomainEvent, DomainEventType, EventSink
from inventory_kernel.exceptions import (
    HolderNotFoundError,
    InvalidTransferError,
    UnauthorizedError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import Movement
from inventory_kernel.services.allocation_ledger import AllocationLedger
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.movement_recorder import MovementRecorder

logger = get_logger("services.transfer")


class TransferService(BaseService[Movement]):
    """
    Executes transfers between holders of one stock item.

    Contract:
        ``from_holder_id=None`` debits the central pool;
        ``to_holder_id=None`` returns quantity to the central pool.

    Non-goals:
        - Does NOT take the in-process item lock (the orchestrator does).
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        authorization: AuthorizationPolicy,
        directory: ActorDirectory,
        ledger: AllocationLedger | None = None,
        recorder: MovementRecorder | None = None,
        clock: Clock | None = None,
        emit: EventSink | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._authorization = authorization
        self._directory = directory
        self._ledger = ledger or AllocationLedger(session, self._clock)
        self._recorder = recorder or MovementRecorder(session, self._clock)
        self._emit = emit

    def _check_holder(self, holder_id: UUID | None) -> None:
        if holder_id is not None and self._directory.role_of(holder_id) is None:
            raise HolderNotFoundError(str(holder_id))

    def transfer(
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
        Move ``quantity`` of ``item_id`` from one holder to another.

        Preconditions:
            - The caller holds the item's in-process lock.

        Postconditions:
            - Source balance decreased and destination balance increased by
              ``quantity``; one Movement appended; a ``stock_transferred``
              event buffered.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidTransferError(f"quantity must be an integer, got {quantity!r}")
        if quantity <= 0:
            raise InvalidTransferError(f"quantity must be positive, got {quantity}")
        if from_holder_id == to_holder_id:
            raise InvalidTransferError("source and destination holder are the same")

        if not self._authorization.can_move_stock(actor_id):
            raise UnauthorizedError(str(actor_id), "move stock", "missing canMoveStock")

        self._check_holder(from_holder_id)
        self._check_holder(to_holder_id)

        self._ledger.lock_item(item_id)

        self._ledger.adjust(item_id, from_holder_id, -quantity)
        self._ledger.adjust(item_id, to_holder_id, quantity)
        self._ledger.assert_balanced()

        movement = self._recorder.record(
            item_id,
            from_holder_id,
            to_holder_id,
            quantity,
            actor_id,
            notes=notes,
            request_id=request_id,
        )

        logger.info(
            "stock_transferred",
            extra={
                "movement_id": str(movement.movement_id),
                "item_id": str(item_id),
                "quantity": quantity,
                "kind": movement.kind,
            },
        )

        if self._emit is not None:
            self._emit(DomainEvent(
                event_type=DomainEventType.STOCK_TRANSFERRED,
                occurred_at=movement.moved_at,
                actor_id=actor_id,
                request_id=request_id,
                item_id=item_id,
                payload={
                    "movement_id": str(movement.movement_id),
                    "from_holder_id": str(from_holder_id) if from_holder_id else None,
                    "to_holder_id": str(to_holder_id) if to_holder_id else None,
                    "quantity": quantity,
                    "kind": movement.kind,
                },
            ))
        return movement
