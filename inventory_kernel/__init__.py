"""
Inventory Kernel

Persistence and invariants for a single-pool stock core:
- Per-product quantity and reservation records
- Received stock batches with their cost basis
- An append-only movement ledger that the records project
"""

__version__ = "0.1.0"
