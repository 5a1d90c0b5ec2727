"""
Module: inventory_kernel.models.movement
Responsibility: ORM persistence for the append-only movement ledger.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity > 0 (DB check constraint).
    - A movement has at least one non-central side.
    - (item_id, sequence) is unique; sequence is monotonic per item.
    - Append-only: UPDATE and DELETE are rejected by ORM listeners
      (db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.domain.dtos import MovementRecord


class MovementKind(str, Enum):
    """Direction of a movement relative to the central pool."""

    ALLOCATION = "allocation"  # central -> holder
    RETURN = "return"  # holder -> central
    SHARE = "share"  # holder -> holder

    @classmethod
    def classify(cls, from_holder_id: UUID | None, to_holder_id: UUID | None) -> "MovementKind":
        if from_holder_id is None:
            return cls.ALLOCATION
        if to_holder_id is None:
            return cls.RETURN
        return cls.SHARE


class Movement(Base):
    """Immutable record of quantity moving between holders."""

    __tablename__ = "movements"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
        CheckConstraint(
            "from_holder_id IS NOT NULL OR to_holder_id IS NOT NULL",
            name="ck_movements_has_holder",
        ),
        CheckConstraint(
            "kind IN ('allocation', 'return', 'share')",
            name="ck_movements_valid_kind",
        ),
        UniqueConstraint("item_id", "sequence", name="uq_movements_item_sequence"),
        Index("ix_movements_moved_at", "moved_at"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    from_holder_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    to_holder_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    quantity: Mapped[int] = mapped_column(nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    moved_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    moved_at: Mapped[datetime] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("requests.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Movement {self.item_id}#{self.sequence} "
            f"{self.from_holder_id or 'central'} -> {self.to_holder_id or 'central'} "
            f"x{self.quantity}>"
        )

    def to_dto(self) -> MovementRecord:
        return MovementRecord(
            movement_id=self.id,
            item_id=self.item_id,
            sequence=self.sequence,
            from_holder_id=self.from_holder_id,
            to_holder_id=self.to_holder_id,
            quantity=self.quantity,
            kind=self.kind,
            moved_by=self.moved_by_id,
            moved_at=self.moved_at,
            notes=self.notes,
            request_id=self.request_id,
        )
