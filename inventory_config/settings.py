"""
Inventory settings schema (``inventory_config.settings``).

One frozen dataclass holding every tunable of the stock core.  Values are
validated on construction, so an ``InventorySettings`` that exists is
always usable.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Self

VALID_COST_METHODS = {"fifo", "lifo"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class InventorySettings:
    """
    Effective configuration for the inventory core.

    Field defaults mirror ``defaults.yaml``; the loader is the normal way
    to build one.
    """

    # Database
    database_url: str = "sqlite:///inventory.db"
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    # Costing
    default_cost_method: str = "fifo"
    strict_cost_method: bool = False
    cost_cache_size: int = 256

    # Stock levels applied when a receipt auto-creates an inventory record
    default_reorder_level: int = 10
    default_max_level: int = 1000
    enforce_max_level: bool = False

    # Batches
    expiry_warning_days: int = 30

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url cannot be empty")
        if self.default_cost_method not in VALID_COST_METHODS:
            raise ValueError(
                f"default_cost_method must be one of {sorted(VALID_COST_METHODS)}, "
                f"got {self.default_cost_method!r}"
            )
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {self.log_level!r}"
            )
        for name in (
            "pool_size",
            "max_overflow",
            "cost_cache_size",
            "default_reorder_level",
            "default_max_level",
            "expiry_warning_days",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} cannot be negative, got {value}")
        if self.pool_size == 0:
            raise ValueError("pool_size must be at least 1")
        for name in ("echo_sql", "strict_cost_method", "enforce_max_level"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be a boolean, got {getattr(self, name)!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build from a flat mapping; unknown keys are rejected."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown inventory settings: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def redacted(self) -> dict[str, Any]:
        """Settings safe for logs: credentials stripped from the URL."""
        from sqlalchemy.engine import make_url

        data = self.to_dict()
        data["database_url"] = make_url(self.database_url).render_as_string(
            hide_password=True
        )
        return data
