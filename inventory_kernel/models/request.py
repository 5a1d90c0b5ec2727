"""
Module: inventory_kernel.models.request
Responsibility: ORM persistence for stock requests, their lines, and the
    decisions taken on them.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - status is one of the lifecycle values (DB check constraint); the
      service layer enforces which transitions are legal.
    - Requests are never deleted; they are the audit trail of approvals.
    - RequestItem lines are fixed at creation (ORM listeners reject UPDATE
      and DELETE).
    - Each line references a catalog item or carries a free-text name.
    - RequestDecision rows are append-only.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.domain.dtos import (
    DecisionRecord,
    RequestItemRecord,
    RequestSnapshot,
)
from inventory_kernel.domain.workflow import RequestStatus, RequestType


class Request(TrackedBase):
    """Persistent stock request."""

    __tablename__ = "requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'pending_secondary', 'approved', "
            "'denied', 'completed')",
            name="ck_requests_valid_status",
        ),
        CheckConstraint(
            "request_type IN ('prepare_order', 'inventory_share', "
            "'receive_inventory')",
            name="ck_requests_valid_type",
        ),
        Index("ix_requests_assigned_status", "assigned_to_id", "status"),
        Index("ix_requests_created_by", "created_by_id", "created_at"),
    )

    request_type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=RequestStatus.PENDING.value,
    )
    assigned_to_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    final_assignee_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    # Set when the first stage of a two-stage request is approved
    first_approver_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    items: Mapped[list["RequestItem"]] = relationship(
        "RequestItem",
        back_populates="request",
        order_by="RequestItem.position",
        lazy="selectin",
    )

    decisions: Mapped[list["RequestDecision"]] = relationship(
        "RequestDecision",
        back_populates="request",
        order_by="RequestDecision.ordinal",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Request {self.id} {self.request_type} status={self.status}>"

    @property
    def status_enum(self) -> RequestStatus:
        return RequestStatus(self.status)

    @property
    def type_enum(self) -> RequestType:
        return RequestType(self.request_type)

    def to_dto(self) -> RequestSnapshot:
        return RequestSnapshot(
            request_id=self.id,
            request_type=self.type_enum,
            title=self.title,
            description=self.description,
            status=self.status_enum,
            created_by=self.created_by_id,
            assigned_to=self.assigned_to_id,
            final_assignee=self.final_assignee_id,
            first_approver=self.first_approver_id,
            created_at=self.created_at,
            decided_at=self.decided_at,
            completed_at=self.completed_at,
            items=tuple(i.to_dto() for i in self.items),
            decisions=tuple(d.to_dto() for d in self.decisions),
        )


class RequestItem(Base):
    """One requested line. Fixed once the request exists."""

    __tablename__ = "request_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_request_items_quantity_positive"),
        CheckConstraint(
            "stock_item_id IS NOT NULL OR item_name IS NOT NULL",
            name="ck_request_items_reference",
        ),
        UniqueConstraint("request_id", "position", name="uq_request_items_position"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("requests.id"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False)
    stock_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id"),
        nullable=True,
    )
    item_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    quantity: Mapped[int] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    request: Mapped["Request"] = relationship("Request", back_populates="items")

    def to_dto(self) -> RequestItemRecord:
        return RequestItemRecord(
            position=self.position,
            quantity=self.quantity,
            stock_item_id=self.stock_item_id,
            item_name=self.item_name,
            notes=self.notes,
        )


class RequestDecision(Base):
    """Approve/deny decision taken on a request. Append-only."""

    __tablename__ = "request_decisions"

    __table_args__ = (
        CheckConstraint(
            "decision IN ('approve', 'deny')",
            name="ck_request_decisions_valid_decision",
        ),
        UniqueConstraint("request_id", "ordinal", name="uq_request_decisions_ordinal"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("requests.id"),
        nullable=False,
    )
    ordinal: Mapped[int] = mapped_column(nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    # Status the request was in when the decision was taken
    stage: Mapped[str] = mapped_column(String(50), nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    request: Mapped["Request"] = relationship("Request", back_populates="decisions")

    def to_dto(self) -> DecisionRecord:
        return DecisionRecord(
            decision_id=self.id,
            actor_id=self.actor_id,
            stage=RequestStatus(self.stage),
            decision=self.decision,
            decided_at=self.decided_at,
            notes=self.notes,
        )
