"""
ORM-level immutability enforcement for append-only records.

===============================================================================
PROTECTED ENTITIES
===============================================================================

    Movement          append-only; no UPDATE, no DELETE
    RequestDecision   append-only; no UPDATE, no DELETE
    RequestItem       fixed once its Request is created; no UPDATE, no DELETE

Flow:

    [before_update event] --> _reject_update() --> ImmutabilityViolationError
    [before_delete event] --> _reject_delete() --> ImmutabilityViolationError

If a check fails the flush is aborted and the database is never modified.

Raw SQL bypasses these listeners; the services never issue raw UPDATE or
DELETE against protected tables.
"""

from sqlalchemy import event

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_registered = False


def _entity_id(target) -> str:
    return str(getattr(target, "id", "<unknown>"))


def _reject_update(mapper, connection, target):
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation",
        extra={
            "entity_type": entity_type,
            "entity_id": _entity_id(target),
            "invariant": KernelInvariant.APPEND_ONLY_LEDGER.value,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=_entity_id(target),
        reason=f"{entity_type} records are append-only -- cannot modify",
    )


def _reject_delete(mapper, connection, target):
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation",
        extra={
            "entity_type": entity_type,
            "entity_id": _entity_id(target),
            "invariant": KernelInvariant.APPEND_ONLY_LEDGER.value,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=_entity_id(target),
        reason=f"{entity_type} records are append-only -- cannot delete",
    )


def _protected_models():
    from inventory_kernel.models.movement import Movement
    from inventory_kernel.models.request import RequestDecision, RequestItem

    return (Movement, RequestDecision, RequestItem)


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after the models are importable and before any write.
    """
    global _registered
    if _registered:
        return
    for model in _protected_models():
        event.listen(model, "before_update", _reject_update)
        event.listen(model, "before_delete", _reject_delete)
    _registered = True
    logger.debug("immutability_listeners_registered")
