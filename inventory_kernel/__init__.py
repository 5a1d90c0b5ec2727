"""
Inventory Kernel

Role-gated inventory transfer and approval engine with:
- Per-item allocation ledger with quantity conservation
- Append-only movement ledger
- Atomic, item-serialized transfers
- Single- and two-stage request approval workflow
"""

__version__ = "0.1.0"
