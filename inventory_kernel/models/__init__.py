"""ORM models. Importing this package registers every table on Base.metadata."""

from inventory_kernel.models.allocation import Allocation
from inventory_kernel.models.movement import Movement, MovementKind
from inventory_kernel.models.request import Request, RequestDecision, RequestItem
from inventory_kernel.models.stock_item import StockItem

__all__ = [
    "StockItem",
    "Allocation",
    "Movement",
    "MovementKind",
    "Request",
    "RequestItem",
    "RequestDecision",
]
