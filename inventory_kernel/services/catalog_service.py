"""
CatalogService -- registration of stock items.

Registering an item is the only way quantity enters the system: the item
row and a central-pool allocation holding its full quantity are flushed
together, so the item is conserved from its first committed state.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import StockItemRecord
from inventory_kernel.exceptions import InvalidStockItemError, StockItemNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock_item import StockItem
from inventory_kernel.services.allocation_ledger import AllocationLedger
from inventory_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService[StockItem]):
    """Creates stock items and resolves catalog references."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: AllocationLedger | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ledger = ledger or AllocationLedger(session, self._clock)

    def register_item(
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
        if not (name or "").strip():
            raise InvalidStockItemError("name is required")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidStockItemError(f"quantity must be an integer, got {quantity!r}")
        if quantity < 0:
            raise InvalidStockItemError(f"quantity cannot be negative, got {quantity}")
        if price < 0:
            raise InvalidStockItemError(f"price cannot be negative, got {price}")

        item = StockItem(
            name=name.strip(),
            quantity=quantity,
            category_id=category_id,
            specialty_id=specialty_id,
            price=price,
            expiry=expiry,
            unique_number=unique_number,
            notes=notes,
            movement_seq=0,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(item)
        self.session.flush()

        self._ledger.open_central_pool(item)

        logger.info(
            "stock_item_registered",
            extra={"item_id": str(item.id), "quantity": quantity},
        )
        return item.to_dto()

    def get_item(self, item_id: UUID) -> StockItem:
        """Return the ORM item or raise StockItemNotFoundError."""
        item = self.session.get(StockItem, item_id)
        if item is None:
            raise StockItemNotFoundError(str(item_id))
        return item
