"""
Domain DTOs (``inventory_kernel.domain.dtos``).

Frozen value objects returned by services and selectors.  ORM models never
leave the kernel; every public operation returns one of these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from inventory_kernel.domain.workflow import RequestStatus, RequestType
from inventory_kernel.exceptions import InvalidRequestError


@dataclass(frozen=True)
class StockItemRecord:
    """Catalog entry with its authoritative total quantity."""

    item_id: UUID
    name: str
    quantity: int
    category_id: UUID | None = None
    specialty_id: UUID | None = None
    price: int = 0
    expiry: datetime | None = None
    unique_number: str | None = None
    notes: str | None = None
    created_by: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AllocationBalance:
    """Quantity of one item held by one holder (None = central pool)."""

    item_id: UUID
    holder_id: UUID | None
    quantity: int

    @property
    def is_central(self) -> bool:
        return self.holder_id is None


@dataclass(frozen=True)
class MovementRecord:
    """Immutable ledger entry for one transfer."""

    movement_id: UUID
    item_id: UUID
    sequence: int
    from_holder_id: UUID | None
    to_holder_id: UUID | None
    quantity: int
    kind: str
    moved_by: UUID
    moved_at: datetime
    notes: str | None = None
    request_id: UUID | None = None


@dataclass(frozen=True)
class RequestItemSpec:
    """
    One line of a request as submitted.

    Either ``stock_item_id`` (catalog reference) or ``item_name`` (free
    text for a not-yet-catalogued item) must be given.
    """

    quantity: int
    stock_item_id: UUID | None = None
    item_name: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidRequestError(
                f"item quantity must be an integer, got {self.quantity!r}"
            )
        if self.quantity <= 0:
            raise InvalidRequestError(
                f"item quantity must be positive, got {self.quantity}"
            )
        if self.stock_item_id is None and not (self.item_name or "").strip():
            raise InvalidRequestError(
                "each item needs a stock_item_id or an item_name"
            )

    @property
    def is_catalogued(self) -> bool:
        return self.stock_item_id is not None


@dataclass(frozen=True)
class RequestItemRecord:
    """Persisted request line."""

    position: int
    quantity: int
    stock_item_id: UUID | None = None
    item_name: str | None = None
    notes: str | None = None

    @property
    def is_catalogued(self) -> bool:
        return self.stock_item_id is not None


@dataclass(frozen=True)
class DecisionRecord:
    """One approve/deny decision on a request. Immutable."""

    decision_id: UUID
    actor_id: UUID
    stage: RequestStatus
    decision: str
    decided_at: datetime
    notes: str | None = None


@dataclass(frozen=True)
class RequestSnapshot:
    """Point-in-time view of a request and its lines."""

    request_id: UUID
    request_type: RequestType
    title: str
    status: RequestStatus
    created_by: UUID
    assigned_to: UUID
    created_at: datetime
    description: str = ""
    final_assignee: UUID | None = None
    first_approver: UUID | None = None
    decided_at: datetime | None = None
    completed_at: datetime | None = None
    items: tuple[RequestItemRecord, ...] = ()
    decisions: tuple[DecisionRecord, ...] = field(default_factory=tuple)

    @property
    def catalogued_items(self) -> tuple[RequestItemRecord, ...]:
        return tuple(i for i in self.items if i.is_catalogued)
