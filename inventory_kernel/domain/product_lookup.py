"""ProductLookup -- the product-existence check the stock core depends on.

The product catalog itself lives outside the inventory core.  The service
only needs to know whether an id refers to an existing, active product;
ProductRepository provides the database-backed implementation and tests may
pass any object with a matching ``exists`` method.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class ProductLookup(Protocol):
    """Protocol for resolving product existence by id."""

    def exists(self, product_id: UUID) -> bool:
        """Return True when the product exists and is active."""
        ...
