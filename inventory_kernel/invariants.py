"""
Kernel Invariants Contract.

These invariants are structural law for the inventory kernel.  No
configuration value, role, or capability toggle may switch them off.

This module exists solely to declare them explicitly.  Enforcement is
distributed across AllocationLedger, MovementRecorder, TransferService,
RequestWorkflowService, and the immutability listeners in db/immutability.py.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    CONSERVATION = "conservation"
    """For every item, the sum of all allocations (central pool included)
    equals StockItem.quantity.  Checked by AllocationLedger after every
    unit of work that touches the item."""

    NON_NEGATIVE_BALANCE = "non_negative_balance"
    """No holder's balance ever drops below zero.  AllocationLedger.adjust
    rejects the debit with InsufficientQuantityError."""

    APPEND_ONLY_LEDGER = "append_only_ledger"
    """Movements and request decisions are never updated or deleted.
    Enforced by ORM listeners (db/immutability.py)."""

    ATOMIC_TRANSFER = "atomic_transfer"
    """Debit, credit and movement record commit together or not at all."""

    ITEM_SERIALIZATION = "item_serialization"
    """Balance read-modify-write for one item never interleaves with
    another for the same item.  Enforced by ItemLockRegistry and
    SELECT ... FOR UPDATE on the stock item row."""

    TERMINAL_REQUESTS = "terminal_requests"
    """Denied and completed requests accept no further transitions."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)
