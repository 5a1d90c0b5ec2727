"""
Module: inventory_kernel.models.stock_item
Responsibility: ORM persistence for catalog stock items.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity >= 0 (DB check constraint).
    - quantity is the authoritative organization-wide total; the sum of the
      item's Allocation rows always equals it (checked by AllocationLedger).
    - movement_seq only grows; MovementRecorder increments it on the locked
      row to number the item's movements.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.domain.dtos import StockItemRecord


class StockItem(TrackedBase):
    """Catalog entry. Quantity changes only through registration."""

    __tablename__ = "stock_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_items_quantity_non_negative"),
        CheckConstraint("movement_seq >= 0", name="ck_stock_items_movement_seq"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    specialty_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    # Price in cents
    price: Mapped[int] = mapped_column(default=0, nullable=False)
    expiry: Mapped[datetime | None] = mapped_column(nullable=True)
    unique_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(default=0, nullable=False)
    movement_seq: Mapped[int] = mapped_column(default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<StockItem {self.id} {self.name!r} quantity={self.quantity}>"

    def to_dto(self) -> StockItemRecord:
        return StockItemRecord(
            item_id=self.id,
            name=self.name,
            quantity=self.quantity,
            category_id=self.category_id,
            specialty_id=self.specialty_id,
            price=self.price,
            expiry=self.expiry,
            unique_number=self.unique_number,
            notes=self.notes,
            created_by=self.created_by_id,
            created_at=self.created_at,
        )
