"""
Inventory Orchestrator - public entry point of the inventory kernel.

The Orchestrator ties together:
- ItemLockRegistry: item-scoped critical sections
- TransferService: atomic single-item transfers
- RequestWorkflowService: request lifecycle and completion
- CatalogService: stock item registration
- Selectors: balances, movements, requests

Every public call is one unit of work.  The orchestrator owns its
transaction boundary (``session_scope``): it takes the item locks the
call needs, opens a session, runs the service, commits, and only then
releases the locks and publishes the domain events buffered during the
call.  A failure anywhere rolls back the whole unit of work and discards
its events.

Transient contention (lock timeouts, database lock/deadlock errors) is
retried with bounded exponential backoff; exhaustion surfaces as
UnavailableError.  Deterministic errors propagate on the first attempt.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, TypeVar
from uuid import UUID
from uuid import uuid4 as _uuid4

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.config import InventoryConfig, configure
from inventory_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from inventory_kernel.domain.authorization import ActorDirectory, AuthorizationPolicy
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    AllocationBalance,
    MovementRecord,
    RequestItemSpec,
    RequestSnapshot,
    StockItemRecord,
)
from inventory_kernel.domain.events import DomainEvent, EventPublisher, NullEventPublisher
from inventory_kernel.domain.workflow import RequestStatus, RequestType
from inventory_kernel.exceptions import (
    HolderNotFoundError,
    LockTimeoutError,
    UnavailableError,
)
from inventory_kernel.logging_config import LogContext, configure_logging, get_logger
from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.selectors.request_selector import RequestSelector
from inventory_kernel.services.allocation_ledger import AllocationLedger
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.item_locks import ItemLockRegistry, item_key, request_key
from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.transfer_service import TransferService
from inventory_kernel.services.workflow_service import RequestWorkflowService

logger = get_logger("services.inventory_orchestrator")

T = TypeVar("T")

_TRANSIENT_MARKERS = ("locked", "deadlock", "serialize", "could not obtain lock")


def is_transient(exc: BaseException) -> bool:
    """True for contention errors that are safe to retry."""
    if isinstance(exc, LockTimeoutError):
        return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in _TRANSIENT_MARKERS)
    return False


class _UnitOfWork:
    """Services bound to one session, sharing one event buffer."""

    def __init__(self, orchestrator: "InventoryOrchestrator", session: Session):
        self.session = session
        self.events: list[DomainEvent] = []
        clock = orchestrator._clock
        self.ledger = AllocationLedger(
            session, clock, prune_zero=orchestrator._config.prune_zero_allocations,
        )
        self.transfers = TransferService(
            session,
            orchestrator._authorization,
            orchestrator._directory,
            ledger=self.ledger,
            recorder=MovementRecorder(session, clock),
            clock=clock,
            emit=self.events.append,
        )
        self.workflow = RequestWorkflowService(
            session,
            orchestrator._authorization,
            orchestrator._directory,
            self.transfers,
            clock=clock,
            emit=self.events.append,
            require_final_assignee_on_create=(
                orchestrator._config.require_final_assignee_on_create
            ),
        )
        self.catalog = CatalogService(session, clock, ledger=self.ledger)


class InventoryOrchestrator:
    """
    Protocol-agnostic API of the inventory kernel.

    Args:
        session_factory: Produces one session per unit of work.
        config: Lock timeout, retry and workflow settings.
        authorization: Capability predicates (canMoveStock, ...).
        directory: Actor and role lookup.
        events: Receives domain events after commit. Defaults to a
            publisher that drops them.
        clock: Timestamp source. Defaults to SystemClock.
        locks: Shared lock registry. Orchestrators serving the same store
            in one process must share a registry.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: InventoryConfig,
        authorization: AuthorizationPolicy,
        directory: ActorDirectory,
        events: EventPublisher | None = None,
        clock: Clock | None = None,
        locks: ItemLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._authorization = authorization
        self._directory = directory
        self._events = events or NullEventPublisher()
        self._clock = clock or SystemClock()
        self._locks = locks or ItemLockRegistry()

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        work: Callable[[_UnitOfWork], T],
        *,
        actor_id: UUID | None = None,
        lock_keys: Iterable[str] = (),
        request_id: UUID | None = None,
        item_id: UUID | None = None,
    ) -> T:
        keys = tuple(lock_keys)
        correlation_id = _uuid4().hex
        attempts = self._config.max_attempts

        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=actor_id,
            request_id=request_id,
            item_id=item_id,
        ):
            for attempt in range(1, attempts + 1):
                try:
                    with self._locks.hold(keys, self._config.lock_timeout_seconds):
                        with session_scope(self._session_factory) as session:
                            uow = _UnitOfWork(self, session)
                            result = work(uow)
                    break
                except Exception as exc:
                    if not is_transient(exc):
                        raise
                    if attempt >= attempts:
                        logger.error(
                            "unit_of_work_unavailable",
                            extra={"operation": operation, "attempts": attempt},
                        )
                        raise UnavailableError(operation, attempt) from exc
                    delay = self._config.backoff_for(attempt)
                    logger.warning(
                        "unit_of_work_retry",
                        extra={
                            "operation": operation,
                            "attempt": attempt,
                            "delay_seconds": delay,
                            "error": type(exc).__name__,
                        },
                    )
                    time.sleep(delay)

            self._publish(uow.events)
        return result

    def _read(self, work: Callable[[Session], T]) -> T:
        with session_scope(self._session_factory) as session:
            return work(session)

    def _publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            try:
                self._events.publish(event)
            except Exception:
                # Delivery belongs to the subscriber; the change is committed
                logger.error(
                    "event_publish_failed",
                    extra={"event_type": event.event_type.value},
                    exc_info=True,
                )

    def _check_holder(self, holder_id: UUID | None) -> None:
        if holder_id is not None and self._directory.role_of(holder_id) is None:
            raise HolderNotFoundError(str(holder_id))

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def transfer_stock(
        self,
        item_id: UUID,
        from_holder_id: UUID | None,
        to_holder_id: UUID | None,
        quantity: int,
        actor_id: UUID,
        notes: str | None = None,
    ) -> MovementRecord:
        """Move ``quantity`` of an item between two holders atomically."""
        return self._run(
            "transfer_stock",
            lambda uow: uow.transfers.transfer(
                item_id, from_holder_id, to_holder_id, quantity, actor_id, notes=notes,
            ),
            actor_id=actor_id,
            lock_keys=[item_key(item_id)],
            item_id=item_id,
        )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(
        self,
        actor_id: UUID,
        request_type: RequestType | str,
        title: str,
        items: Iterable[RequestItemSpec | Mapping[str, Any]],
        description: str = "",
        assigned_to: UUID | None = None,
        final_assignee: UUID | None = None,
    ) -> RequestSnapshot:
        items = list(items)
        return self._run(
            "create_request",
            lambda uow: uow.workflow.create_request(
                actor_id,
                request_type,
                title,
                items,
                description=description,
                assigned_to=assigned_to,
                final_assignee=final_assignee,
            ),
            actor_id=actor_id,
        )

    def _decision_keys(self, request_id: UUID) -> list[str]:
        item_ids = self._read(
            lambda session: RequestSelector(session).stock_item_ids(request_id)
        )
        return [request_key(request_id)] + [item_key(i) for i in item_ids]

    def approve_request(
        self, request_id: UUID, actor_id: UUID, notes: str | None = None,
    ) -> RequestSnapshot:
        """Approve the current stage; a final approval completes the request."""
        return self._run(
            "approve_request",
            lambda uow: uow.workflow.approve(request_id, actor_id, notes),
            actor_id=actor_id,
            lock_keys=self._decision_keys(request_id),
            request_id=request_id,
        )

    def deny_request(
        self, request_id: UUID, actor_id: UUID, notes: str | None = None,
    ) -> RequestSnapshot:
        return self._run(
            "deny_request",
            lambda uow: uow.workflow.deny(request_id, actor_id, notes),
            actor_id=actor_id,
            lock_keys=[request_key(request_id)],
            request_id=request_id,
        )

    def get_request(self, request_id: UUID) -> RequestSnapshot:
        return self._read(lambda session: RequestSelector(session).get(request_id))

    def list_requests(
        self,
        created_by: UUID | None = None,
        assigned_to: UUID | None = None,
        status: RequestStatus | str | None = None,
    ) -> list[RequestSnapshot]:
        return self._read(
            lambda session: RequestSelector(session).list_requests(
                created_by=created_by, assigned_to=assigned_to, status=status,
            )
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def register_stock_item(
        self,
        actor_id: UUID,
        name: str,
        quantity: int,
        category_id: UUID | None = None,
        specialty_id: UUID | None = None,
        price: int = 0,
        expiry: datetime | None = None,
        unique_number: str | None = None,
        notes: str | None = None,
    ) -> StockItemRecord:
        """Create a stock item whose whole quantity sits in the central pool."""
        return self._run(
            "register_stock_item",
            lambda uow: uow.catalog.register_item(
                actor_id,
                name,
                quantity,
                category_id=category_id,
                specialty_id=specialty_id,
                price=price,
                expiry=expiry,
                unique_number=unique_number,
                notes=notes,
            ),
            actor_id=actor_id,
        )

    def get_stock_item(self, item_id: UUID) -> StockItemRecord:
        return self._read(
            lambda session: CatalogService(session, self._clock).get_item(item_id).to_dto()
        )

    # ------------------------------------------------------------------
    # Balances and ledger
    # ------------------------------------------------------------------

    def get_balance(self, item_id: UUID, holder_id: UUID | None) -> int:
        """Quantity of the item held by the holder (central pool if None)."""
        self._check_holder(holder_id)

        def work(session: Session) -> int:
            CatalogService(session, self._clock).get_item(item_id)
            return AllocationSelector(session).balance(item_id, holder_id)

        return self._read(work)

    def list_allocations(
        self,
        holder_id: UUID | None = None,
        item_id: UUID | None = None,
    ) -> list[AllocationBalance]:
        return self._read(
            lambda session: AllocationSelector(session).list_balances(
                holder_id=holder_id, item_id=item_id,
            )
        )

    def list_movements(self, item_id: UUID | None = None) -> list[MovementRecord]:
        return self._read(
            lambda session: MovementSelector(session).list_movements(item_id)
        )

    def verify_conservation(self, item_id: UUID) -> int:
        """
        Re-sum the item's allocations under its lock.

        Returns the allocated total; raises ConservationViolationError when
        it differs from the item's quantity.
        """
        return self._run(
            "verify_conservation",
            lambda uow: uow.ledger.verify_conservation(item_id),
            lock_keys=[item_key(item_id)],
            item_id=item_id,
        )


def build_orchestrator(
    config: InventoryConfig,
    authorization: AuthorizationPolicy,
    directory: ActorDirectory,
    events: EventPublisher | None = None,
    clock: Clock | None = None,
    create_schema: bool = False,
) -> InventoryOrchestrator:
    """
    Start the kernel from a loaded configuration.

    Installs ``config`` as the process-wide configuration, sets up logging
    at ``config.log_level``, opens the engine on ``config.database_url``
    and returns an orchestrator bound to it.  Call once per process.

    Raises:
        RuntimeError: if a configuration is already installed.
    """
    configure(config)
    configure_logging(level=config.log_level)
    engine = init_engine_from_url(config.database_url, echo=config.echo_sql)
    if create_schema:
        create_tables(engine)
    logger.info(
        "inventory_kernel_started",
        extra={"dialect": engine.dialect.name, "log_level": config.log_level},
    )
    return InventoryOrchestrator(
        get_session_factory(),
        config,
        authorization,
        directory,
        events=events,
        clock=clock,
    )
