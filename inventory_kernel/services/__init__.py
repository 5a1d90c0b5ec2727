"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.allocation_ledger import AllocationLedger
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.inventory_orchestrator import (
    InventoryOrchestrator,
    build_orchestrator,
)
from inventory_kernel.services.item_locks import ItemLockRegistry
from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.transfer_service import TransferService
from inventory_kernel.services.workflow_service import RequestWorkflowService

__all__ = [
    "AllocationLedger",
    "CatalogService",
    "InventoryOrchestrator",
    "ItemLockRegistry",
    "MovementRecorder",
    "RequestWorkflowService",
    "TransferService",
    "build_orchestrator",
]
