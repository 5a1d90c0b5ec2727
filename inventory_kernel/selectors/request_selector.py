"""
Module: inventory_kernel.selectors.request_selector
Responsibility: Read-only request queries (single request, filtered
    listings, and the catalog items a request will touch on completion).
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import RequestSnapshot
from inventory_kernel.domain.workflow import RequestStatus
from inventory_kernel.exceptions import InvalidRequestError, RequestNotFoundError
from inventory_kernel.models.request import Request, RequestItem
from inventory_kernel.selectors.base import BaseSelector


class RequestSelector(BaseSelector[Request]):
    """Request reads returning RequestSnapshot DTOs."""

    def get(self, request_id: UUID) -> RequestSnapshot:
        request = self.session.get(Request, request_id)
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request.to_dto()

    def list_requests(
        self,
        created_by: UUID | None = None,
        assigned_to: UUID | None = None,
        status: RequestStatus | str | None = None,
    ) -> list[RequestSnapshot]:
        """Requests matching every given filter, newest first."""
        stmt = select(Request)
        if created_by is not None:
            stmt = stmt.where(Request.created_by_id == created_by)
        if assigned_to is not None:
            stmt = stmt.where(Request.assigned_to_id == assigned_to)
        if status is not None:
            try:
                status = RequestStatus(status)
            except ValueError:
                raise InvalidRequestError(f"unknown request status: {status!r}")
            stmt = stmt.where(Request.status == status.value)
        stmt = stmt.order_by(Request.created_at.desc(), Request.id)
        return [r.to_dto() for r in self.session.execute(stmt).scalars()]

    def stock_item_ids(self, request_id: UUID) -> list[UUID]:
        """
        Distinct catalog items referenced by the request's lines.

        Lines are immutable, so the result can be read before the unit of
        work that completes the request and used to pick its item locks.
        """
        if self.session.get(Request, request_id) is None:
            raise RequestNotFoundError(str(request_id))
        stmt = (
            select(RequestItem.stock_item_id)
            .where(RequestItem.request_id == request_id)
            .where(RequestItem.stock_item_id.is_not(None))
            .distinct()
        )
        return sorted(self.session.execute(stmt).scalars(), key=str)
