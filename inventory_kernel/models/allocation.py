"""
Module: inventory_kernel.models.allocation
Responsibility: ORM persistence for per-holder item balances.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity >= 0 (DB check constraint).
    - At most one row per (item, holder); the central pool (holder_id NULL)
      gets its own partial unique index because NULLs never collide in a
      plain unique constraint.

Owned exclusively by AllocationLedger; no other writer touches this table.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.domain.dtos import AllocationBalance


class Allocation(Base):
    """Quantity of one item attributed to one holder."""

    __tablename__ = "allocations"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_allocations_quantity_non_negative"),
        UniqueConstraint("item_id", "holder_id", name="uq_allocations_item_holder"),
        Index(
            "ix_allocations_central_unique",
            "item_id",
            unique=True,
            postgresql_where=text("holder_id IS NULL"),
            sqlite_where=text("holder_id IS NULL"),
        ),
        Index("ix_allocations_holder", "holder_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id"),
        nullable=False,
    )
    # NULL = central pool
    holder_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    quantity: Mapped[int] = mapped_column(default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        holder = self.holder_id or "central"
        return f"<Allocation item={self.item_id} holder={holder} quantity={self.quantity}>"

    def to_dto(self) -> AllocationBalance:
        return AllocationBalance(
            item_id=self.item_id,
            holder_id=self.holder_id,
            quantity=self.quantity,
        )
