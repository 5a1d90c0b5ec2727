"""Read-only selectors returning DTOs."""

from inventory_kernel.selectors.allocation_selector import AllocationSelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.selectors.request_selector import RequestSelector

__all__ = ["AllocationSelector", "MovementSelector", "RequestSelector"]
