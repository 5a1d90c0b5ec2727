"""
Request workflow state machine (``inventory_kernel.domain.workflow``).

Responsibility
--------------
Pure definition of the request lifecycle: request types, statuses, the
transition table, per-type routing (who approves first, whether a second
stage exists), and the planning function that turns an approval into the
exact sequence of statuses the request passes through.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Lifecycle::

    pending --approve[single-stage]--> approved --complete(auto)--> completed
    pending --approve[two-stage]-----> pending_secondary
    pending_secondary --approve------> approved --complete(auto)--> completed
    pending | pending_secondary --deny--> denied

``denied`` and ``completed`` are terminal.  The ``approved -> completed``
edge is automatic: it fires in the same unit of work as the approval that
reached ``approved`` and is the only point at which stock moves.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from inventory_kernel.domain.roles import Role
from inventory_kernel.exceptions import InvalidTransitionError


class RequestType(str, Enum):
    """Kinds of stock request."""

    PREPARE_ORDER = "prepare_order"
    INVENTORY_SHARE = "inventory_share"
    RECEIVE_INVENTORY = "receive_inventory"


class RequestStatus(str, Enum):
    """Request lifecycle states."""

    PENDING = "pending"
    PENDING_SECONDARY = "pending_secondary"
    APPROVED = "approved"
    DENIED = "denied"
    COMPLETED = "completed"


class RequestAction(str, Enum):
    """Actions that drive a request between states."""

    APPROVE = "approve"
    DENY = "deny"
    COMPLETE = "complete"


TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.DENIED,
    RequestStatus.COMPLETED,
})


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""

    from_state: RequestStatus
    to_state: RequestStatus
    action: RequestAction
    two_stage_only: bool = False
    single_stage_only: bool = False
    automatic: bool = False
    moves_stock: bool = False


REQUEST_TRANSITIONS: tuple[Transition, ...] = (
    Transition(
        RequestStatus.PENDING, RequestStatus.APPROVED,
        RequestAction.APPROVE, single_stage_only=True,
    ),
    Transition(
        RequestStatus.PENDING, RequestStatus.PENDING_SECONDARY,
        RequestAction.APPROVE, two_stage_only=True,
    ),
    Transition(
        RequestStatus.PENDING_SECONDARY, RequestStatus.APPROVED,
        RequestAction.APPROVE, two_stage_only=True,
    ),
    Transition(
        RequestStatus.PENDING, RequestStatus.DENIED, RequestAction.DENY,
    ),
    Transition(
        RequestStatus.PENDING_SECONDARY, RequestStatus.DENIED,
        RequestAction.DENY, two_stage_only=True,
    ),
    Transition(
        RequestStatus.APPROVED, RequestStatus.COMPLETED,
        RequestAction.COMPLETE, automatic=True, moves_stock=True,
    ),
)


@dataclass(frozen=True)
class RoutingRule:
    """Who must act on a request of a given type, and in how many stages."""

    request_type: RequestType
    first_role: Role
    two_stage: bool = False
    final_role: Role | None = None
    source_is_central: bool = True


ROUTING: dict[RequestType, RoutingRule] = {
    RequestType.PREPARE_ORDER: RoutingRule(
        RequestType.PREPARE_ORDER, first_role=Role.STOCK_KEEPER,
    ),
    RequestType.RECEIVE_INVENTORY: RoutingRule(
        RequestType.RECEIVE_INVENTORY, first_role=Role.STOCK_KEEPER,
    ),
    RequestType.INVENTORY_SHARE: RoutingRule(
        RequestType.INVENTORY_SHARE,
        first_role=Role.PRODUCT_MANAGER,
        two_stage=True,
        final_role=Role.STOCK_KEEPER,
        source_is_central=False,
    ),
}


def routing_for(request_type: RequestType | str) -> RoutingRule:
    """Return the routing rule for a request type."""
    return ROUTING[RequestType(request_type)]


def find_transition(
    request_type: RequestType,
    current: RequestStatus,
    action: RequestAction,
) -> Transition | None:
    """Return the transition for (type, status, action), or None."""
    two_stage = routing_for(request_type).two_stage
    for t in REQUEST_TRANSITIONS:
        if t.from_state != current or t.action != action:
            continue
        if t.two_stage_only and not two_stage:
            continue
        if t.single_stage_only and two_stage:
            continue
        return t
    return None


def role_for_stage(
    request_type: RequestType, status: RequestStatus,
) -> Role | None:
    """Role expected of the assignee while the request sits in ``status``."""
    rule = routing_for(request_type)
    if status == RequestStatus.PENDING:
        return rule.first_role
    if status == RequestStatus.PENDING_SECONDARY:
        return rule.final_role
    return None


def plan_action(
    request_type: RequestType,
    current: RequestStatus,
    action: RequestAction,
    *,
    has_final_assignee: bool = True,
    request_id: str | None = None,
) -> tuple[RequestStatus, ...]:
    """
    Compute the ordered statuses a request passes through for ``action``.

    An approval that reaches ``approved`` is followed by the automatic
    ``approved -> completed`` edge, so the plan for a final approval is
    ``(approved, completed)``.

    Raises:
        InvalidTransitionError: terminal status, illegal action for the
            current status, or a two-stage request without a final assignee.
    """
    if current in TERMINAL_REQUEST_STATUSES:
        raise InvalidTransitionError(
            request_id, current.value, action.value,
            f"request is already {current.value}",
        )

    transition = find_transition(request_type, current, action)
    if transition is None:
        raise InvalidTransitionError(
            request_id, current.value, action.value,
            f"no '{action.value}' transition from {current.value} "
            f"for {request_type.value}",
        )

    if transition.to_state == RequestStatus.PENDING_SECONDARY and not has_final_assignee:
        raise InvalidTransitionError(
            request_id, current.value, action.value,
            "inventory_share requires a final assignee",
        )

    plan = [transition.to_state]
    follow = find_transition(request_type, transition.to_state, RequestAction.COMPLETE)
    if follow is not None and follow.automatic:
        plan.append(follow.to_state)
    return tuple(plan)
