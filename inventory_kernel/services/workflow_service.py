"""
RequestWorkflowService -- drives stock requests through their lifecycle.

Responsibility:
    Creates requests (type, routing and item validation, assignee
    resolution), applies approve/deny decisions according to the pure
    transition plan in ``domain.workflow``, and realizes the automatic
    ``approved -> completed`` edge by calling TransferService once per
    catalogued request line.

Architecture position:
    Kernel > Services.  Imperative shell around ``domain.workflow``.

Invariants enforced:
    TERMINAL_REQUESTS -- ``plan_action`` rejects every action on a denied
        or completed request before anything is written.
    ATOMIC_TRANSFER -- completion and its transfers share the approve
        call's unit of work; a failing line rolls back the whole call,
        including the status change and the decision row.

Failure modes:
    - InvalidRequestError: bad type, empty title or items, bad assignee.
    - InvalidTransitionError: terminal status, illegal action, missing
      final assignee.
    - UnauthorizedError: creator lacks the capability, or the caller is
      not the current assignee.
    - RequestNotFoundError / StockItemNotFoundError / HolderNotFoundError.
    - Any TransferService error raised during completion.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.authorization import ActorDirectory, AuthorizationPolicy
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import RequestItemSpec, RequestSnapshot
from inventory_kernel.domain.events import DomainEvent, DomainEventType, EventSink
from inventory_kernel.domain.roles import Role, display_name
from inventory_kernel.domain.workflow import (
    RequestAction,
    RequestStatus,
    RequestType,
    plan_action,
    routing_for,
)
from inventory_kernel.exceptions import (
    HolderNotFoundError,
    InvalidRequestError,
    InvalidTransitionError,
    RequestNotFoundError,
    StockItemNotFoundError,
    UnauthorizedError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.request import Request, RequestDecision, RequestItem
from inventory_kernel.models.stock_item import StockItem
from inventory_kernel.services.allocation_ledger import AllocationLedger
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.transfer_service import TransferService

logger = get_logger("services.workflow")


def coerce_item_spec(item: RequestItemSpec | Mapping[str, Any]) -> RequestItemSpec:
    """Accept a RequestItemSpec or a plain mapping with the same keys."""
    if isinstance(item, RequestItemSpec):
        return item
    if not isinstance(item, Mapping):
        raise InvalidRequestError(f"unsupported item payload: {item!r}")
    unknown = set(item) - {"quantity", "stock_item_id", "item_name", "notes"}
    if unknown:
        raise InvalidRequestError(f"unknown item fields: {sorted(unknown)}")
    if "quantity" not in item:
        raise InvalidRequestError("each item needs a quantity")
    return RequestItemSpec(**item)


class RequestWorkflowService(BaseService[Request]):
    """Request state machine over the ``requests`` table."""

    def __init__(
        self,
        session: Session,
        authorization: AuthorizationPolicy,
        directory: ActorDirectory,
        transfers: TransferService,
        clock: Clock | None = None,
        emit: EventSink | None = None,
        require_final_assignee_on_create: bool = True,
    ):
        super().__init__(session)
        self._authorization = authorization
        self._directory = directory
        self._transfers = transfers
        self._clock = clock or SystemClock()
        self._emit = emit
        self._require_final_assignee = require_final_assignee_on_create

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _publish(self, event_type: DomainEventType, request: Request, actor_id: UUID, **payload) -> None:
        if self._emit is None:
            return
        self._emit(DomainEvent(
            event_type=event_type,
            occurred_at=self._clock.now(),
            actor_id=actor_id,
            request_id=request.id,
            payload={"status": request.status, **payload},
        ))

    def _expect_role(self, actor_id: UUID, role: Role, field: str) -> None:
        actual = self._directory.role_of(actor_id)
        if actual is None:
            raise HolderNotFoundError(str(actor_id))
        if actual != role:
            raise InvalidRequestError(
                f"{field} must be a {display_name(role)}, "
                f"got {display_name(actual)}"
            )

    def load_for_update(self, request_id: UUID) -> Request:
        """Load a request with a row lock held until the transaction ends."""
        request = self.session.execute(
            select(Request)
            .where(Request.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request

    # ------------------------------------------------------------------
    # Creation
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
        """
        Validate and store a new ``pending`` request.

        When ``assigned_to`` is omitted, the directory's default actor for
        the first-stage role is used.
        """
        try:
            request_type = RequestType(request_type)
        except ValueError:
            raise InvalidRequestError(f"unknown request type: {request_type!r}")

        if not self._authorization.can_create_request(actor_id, request_type):
            raise UnauthorizedError(
                str(actor_id),
                f"create {request_type.value} request",
                "missing canCreateRequests",
            )

        if not (title or "").strip():
            raise InvalidRequestError("title is required")

        specs = [coerce_item_spec(i) for i in items]
        if not specs:
            raise InvalidRequestError("a request needs at least one item")
        for spec in specs:
            if spec.is_catalogued and self.session.get(StockItem, spec.stock_item_id) is None:
                raise StockItemNotFoundError(str(spec.stock_item_id))

        rule = routing_for(request_type)

        if assigned_to is None:
            assigned_to = self._directory.default_actor_for(rule.first_role)
            if assigned_to is None:
                raise InvalidRequestError(
                    f"no {display_name(rule.first_role)} available to assign"
                )
        else:
            self._expect_role(assigned_to, rule.first_role, "assigned_to")

        if rule.two_stage:
            if final_assignee is None:
                if self._require_final_assignee:
                    raise InvalidTransitionError(
                        None, None, "create",
                        f"{request_type.value} requires a final assignee",
                    )
            else:
                self._expect_role(final_assignee, rule.final_role, "final_assignee")
        elif final_assignee is not None:
            raise InvalidRequestError(
                f"final_assignee is only allowed on two-stage requests, "
                f"not {request_type.value}"
            )

        now = self._clock.now()
        request = Request(
            request_type=request_type.value,
            title=title.strip(),
            description=description or "",
            status=RequestStatus.PENDING.value,
            assigned_to_id=assigned_to,
            final_assignee_id=final_assignee,
            created_at=now,
            created_by_id=actor_id,
        )
        for position, spec in enumerate(specs, start=1):
            request.items.append(RequestItem(
                position=position,
                stock_item_id=spec.stock_item_id,
                item_name=spec.item_name,
                quantity=spec.quantity,
                notes=spec.notes,
            ))
        self.session.add(request)
        self.session.flush()

        logger.info(
            "request_created",
            extra={
                "request_id": str(request.id),
                "request_type": request_type.value,
                "assigned_to": str(assigned_to),
                "item_count": len(specs),
            },
        )
        self._publish(
            DomainEventType.REQUEST_CREATED, request, actor_id,
            request_type=request_type.value,
            assigned_to=str(assigned_to),
        )
        return request.to_dto()

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def _plan(self, request: Request, actor_id: UUID, action: RequestAction):
        # Terminal and illegal-action checks come before the assignee check
        plan = plan_action(
            request.type_enum,
            request.status_enum,
            action,
            has_final_assignee=request.final_assignee_id is not None,
            request_id=str(request.id),
        )
        if actor_id != request.assigned_to_id:
            raise UnauthorizedError(
                str(actor_id), f"{action.value} request {request.id}",
                "not the current assignee",
            )
        if not self._authorization.can_approve(actor_id, request.to_dto()):
            raise UnauthorizedError(
                str(actor_id), f"{action.value} request {request.id}",
                "role may not decide at this stage",
            )
        return plan

    def _record_decision(
        self, request: Request, actor_id: UUID, action: RequestAction, notes: str | None,
    ) -> None:
        request.decisions.append(RequestDecision(
            ordinal=len(request.decisions) + 1,
            actor_id=actor_id,
            stage=request.status,
            decision=action.value,
            notes=notes,
            decided_at=self._clock.now(),
        ))

    def approve(self, request_id: UUID, actor_id: UUID, notes: str | None = None) -> RequestSnapshot:
        """
        Approve the request's current stage.

        A first-stage approval of a two-stage request hands it to the final
        assignee.  An approval reaching ``approved`` is followed in the same
        unit of work by the automatic completion.
        """
        request = self.load_for_update(request_id)
        plan = self._plan(request, actor_id, RequestAction.APPROVE)
        self._record_decision(request, actor_id, RequestAction.APPROVE, notes)

        for status in plan:
            if status == RequestStatus.PENDING_SECONDARY:
                request.first_approver_id = actor_id
                request.assigned_to_id = request.final_assignee_id
                request.status = status.value
                self.session.flush()
                logger.info(
                    "request_approved",
                    extra={
                        "request_id": str(request.id),
                        "to_status": status.value,
                        "next_assignee": str(request.assigned_to_id),
                    },
                )
                self._publish(
                    DomainEventType.REQUEST_APPROVED, request, actor_id,
                    stage="first",
                    next_assignee=str(request.assigned_to_id),
                )
            elif status == RequestStatus.APPROVED:
                if request.first_approver_id is None:
                    request.first_approver_id = actor_id
                request.status = status.value
                request.decided_at = self._clock.now()
                self.session.flush()
                logger.info(
                    "request_approved",
                    extra={"request_id": str(request.id), "to_status": status.value},
                )
                self._publish(
                    DomainEventType.REQUEST_APPROVED, request, actor_id, stage="final",
                )
            elif status == RequestStatus.COMPLETED:
                self._complete(request, actor_id)

        return request.to_dto()

    def deny(self, request_id: UUID, actor_id: UUID, notes: str | None = None) -> RequestSnapshot:
        """Deny the request at its current stage. No stock moves."""
        request = self.load_for_update(request_id)
        plan = self._plan(request, actor_id, RequestAction.DENY)
        self._record_decision(request, actor_id, RequestAction.DENY, notes)

        request.status = plan[-1].value
        request.decided_at = self._clock.now()
        self.session.flush()

        logger.info(
            "request_denied",
            extra={"request_id": str(request.id), "denied_by": str(actor_id)},
        )
        self._publish(DomainEventType.REQUEST_DENIED, request, actor_id, notes=notes)
        return request.to_dto()

    # ------------------------------------------------------------------
    # Automatic approved -> completed edge
    # ------------------------------------------------------------------

    def transfer_endpoints(self, request: Request) -> tuple[UUID | None, UUID]:
        """(source, destination) holders for the request's transfers."""
        rule = routing_for(request.request_type)
        if rule.source_is_central:
            return None, request.assigned_to_id
        return request.first_approver_id, request.final_assignee_id

    def _complete(self, request: Request, actor_id: UUID) -> None:
        source, destination = self.transfer_endpoints(request)
        lines = [line for line in request.items if line.stock_item_id is not None]

        # Row locks in a stable order across items
        ledger = AllocationLedger(self.session, self._clock)
        for item_id in sorted({line.stock_item_id for line in lines}, key=str):
            ledger.lock_item(item_id)

        movements = []
        for line in lines:
            movements.append(self._transfers.transfer(
                line.stock_item_id,
                source,
                destination,
                line.quantity,
                actor_id,
                notes=f"request {request.id}: {request.title}",
                request_id=request.id,
            ))

        request.status = RequestStatus.COMPLETED.value
        request.completed_at = self._clock.now()
        self.session.flush()

        logger.info(
            "request_completed",
            extra={
                "request_id": str(request.id),
                "transfer_count": len(movements),
                "informational_lines": len(request.items) - len(lines),
            },
        )
        self._publish(
            DomainEventType.REQUEST_COMPLETED, request, actor_id,
            movement_ids=[str(m.movement_id) for m in movements],
        )
