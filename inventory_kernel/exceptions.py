"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, CLI tools, tests) must be able to react to a failed
transfer or a rejected approval without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        orchestrator.transfer_stock(item_id, None, keeper_id, 60, actor_id)
    except InsufficientQuantityError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- AllocationError
    |   +-- InsufficientQuantityError
    |   +-- ConservationViolationError
    |
    +-- TransferError
    |   +-- InvalidTransferError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- InvalidRequestError
    |
    +-- UnauthorizedError
    |
    +-- CatalogError
    |   +-- InvalidStockItemError
    |
    +-- NotFoundError
    |   +-- StockItemNotFoundError
    |   +-- RequestNotFoundError
    |   +-- HolderNotFoundError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |   +-- UnavailableError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
HANDLING PATTERNS
===============================================================================

* AllocationError / WorkflowError / UnauthorizedError / NotFoundError are
  deterministic: the same pre-state always produces the same error.  They
  are surfaced to the caller and never retried automatically.
* LockTimeoutError is transient.  The orchestrator retries it with bounded
  backoff and converts exhaustion into UnavailableError so the caller can
  resubmit.
* ImmutabilityViolationError means code tried to rewrite the audit trail.
  Treat it as a bug, not a user error.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Allocation-related exceptions


class AllocationError(InventoryKernelError):
    """Base exception for allocation ledger errors."""

    code: str = "ALLOCATION_ERROR"


class InsufficientQuantityError(AllocationError):
    """A debit would drive a holder's balance below zero."""

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(
        self,
        item_id: str,
        holder_id: str | None,
        available: int,
        requested: int,
    ):
        self.item_id = item_id
        self.holder_id = holder_id
        self.available = available
        self.requested = requested
        holder = holder_id if holder_id is not None else "central pool"
        super().__init__(
            f"Insufficient quantity of item {item_id} held by {holder}: "
            f"available={available}, requested={requested}"
        )


class ConservationViolationError(AllocationError):
    """
    Sum of allocations for an item does not equal the item's quantity.

    Raised before flush when a unit of work would leave the ledger
    unbalanced, and by conservation audits that detect drift.
    """

    code: str = "CONSERVATION_VIOLATION"

    def __init__(self, item_id: str, expected: int, actual: int):
        self.item_id = item_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Conservation violated for item {item_id}: "
            f"stock quantity={expected}, allocated total={actual}"
        )


# Transfer-related exceptions


class TransferError(InventoryKernelError):
    """Base exception for transfer errors."""

    code: str = "TRANSFER_ERROR"


class InvalidTransferError(TransferError):
    """Transfer arguments violate a precondition."""

    code: str = "INVALID_TRANSFER"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid transfer: {reason}")


# Workflow-related exceptions


class WorkflowError(InventoryKernelError):
    """Base exception for request workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The requested action is not legal from the request's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        request_id: str | None,
        current_status: str | None,
        action: str,
        reason: str,
    ):
        self.request_id = request_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        super().__init__(
            f"Cannot {action} request {request_id} "
            f"(status={current_status}): {reason}"
        )


class InvalidRequestError(WorkflowError):
    """Request payload is malformed (bad type, empty items, bad quantity)."""

    code: str = "INVALID_REQUEST"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid request: {reason}")


# Authorization


class UnauthorizedError(InventoryKernelError):
    """Actor lacks the capability, or is not the current assignee."""

    code: str = "UNAUTHORIZED"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(f"Actor {actor_id} may not {action}: {reason}")


# Catalog


class CatalogError(InventoryKernelError):
    """Base exception for stock catalog errors."""

    code: str = "CATALOG_ERROR"


class InvalidStockItemError(CatalogError):
    """Stock item attributes are malformed (empty name, bad quantity)."""

    code: str = "INVALID_STOCK_ITEM"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid stock item: {reason}")


# Lookup failures


class NotFoundError(InventoryKernelError):
    """Base exception for missing referenced entities."""

    code: str = "NOT_FOUND"


class StockItemNotFoundError(NotFoundError):
    """Stock item with given ID was not found."""

    code: str = "STOCK_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Stock item not found: {item_id}")


class RequestNotFoundError(NotFoundError):
    """Request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class HolderNotFoundError(NotFoundError):
    """Holder (user) is unknown to the actor directory."""

    code: str = "HOLDER_NOT_FOUND"

    def __init__(self, holder_id: str):
        self.holder_id = holder_id
        super().__init__(f"Holder not found: {holder_id}")


# Concurrency


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """An item-scoped lock could not be acquired in time. Transient."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, item_id: str, timeout: float):
        self.item_id = item_id
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for lock on item {item_id}"
        )


class UnavailableError(ConcurrencyError):
    """Transient contention persisted after all retries; resubmit later."""

    code: str = "UNAVAILABLE"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"{operation} unavailable after {attempts} attempt(s); retry later"
        )


# Immutability


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
