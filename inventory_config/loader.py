"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Builds the effective ``InventorySettings`` from three layers, later layers
winning:

1. ``defaults.yaml`` shipped inside this package.
2. An optional deployment YAML file.
3. ``INVENTORY_*`` environment variables.

Invariants enforced
-------------------
* YAML is read with ``yaml.safe_load`` only.
* Every error raises ``ValueError`` (bad values, unknown keys) or
  propagates ``FileNotFoundError`` / ``yaml.YAMLError``; nothing is
  silently defaulted.
* ``compute_checksum`` is a deterministic SHA-256 over the canonical JSON
  form of the effective settings.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from inventory_config.settings import InventorySettings
from inventory_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# (section, key) in YAML -> flat settings field
_YAML_FIELDS: dict[tuple[str, str], str] = {
    ("database", "url"): "database_url",
    ("database", "echo_sql"): "echo_sql",
    ("database", "pool_size"): "pool_size",
    ("database", "max_overflow"): "max_overflow",
    ("costing", "default_cost_method"): "default_cost_method",
    ("costing", "strict_cost_method"): "strict_cost_method",
    ("costing", "cache_size"): "cost_cache_size",
    ("stock_levels", "default_reorder_level"): "default_reorder_level",
    ("stock_levels", "default_max_level"): "default_max_level",
    ("stock_levels", "enforce_max_level"): "enforce_max_level",
    ("batches", "expiry_warning_days"): "expiry_warning_days",
    ("logging", "level"): "log_level",
}

ENV_OVERRIDES: dict[str, str] = {
    "INVENTORY_DATABASE_URL": "database_url",
    "INVENTORY_DEFAULT_COST_METHOD": "default_cost_method",
    "INVENTORY_STRICT_COST_METHOD": "strict_cost_method",
    "INVENTORY_LOG_LEVEL": "log_level",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def flatten_sections(data: dict[str, Any], source: str = "<yaml>") -> dict[str, Any]:
    """Map sectioned YAML onto flat settings field names."""
    flat: dict[str, Any] = {}
    for section, body in data.items():
        if not isinstance(body, dict):
            raise ValueError(f"{source}: section {section!r} must be a mapping")
        for key, value in body.items():
            field_name = _YAML_FIELDS.get((section, key))
            if field_name is None:
                raise ValueError(f"{source}: unknown setting {section}.{key}")
            flat[field_name] = value
    return flat


def parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name}: cannot interpret {value!r} as a boolean")


def env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Settings fields taken from INVENTORY_* environment variables."""
    overrides: dict[str, Any] = {}
    for var, field_name in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        match field_name:
            case "strict_cost_method":
                overrides[field_name] = parse_bool(raw, var)
            case "default_cost_method":
                overrides[field_name] = raw.strip().lower()
            case "log_level":
                overrides[field_name] = raw.strip().upper()
            case _:
                overrides[field_name] = raw
    return overrides


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_settings(
    config_path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> InventorySettings:
    """
    Build the effective settings.

    Args:
        config_path: Optional deployment YAML layered over the defaults.
        env: Environment mapping; defaults to ``os.environ``.

    Raises:
        FileNotFoundError: ``config_path`` does not exist.
        ValueError: unknown keys or invalid values in any layer.
    """
    merged = flatten_sections(load_yaml_file(DEFAULTS_PATH), str(DEFAULTS_PATH))
    sources = [str(DEFAULTS_PATH)]

    if config_path is not None:
        path = Path(config_path)
        merged.update(flatten_sections(load_yaml_file(path), str(path)))
        sources.append(str(path))

    overrides = env_overrides(os.environ if env is None else env)
    if overrides:
        merged.update(overrides)
        sources.append("environment")

    settings = InventorySettings.from_dict(merged)

    logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "sources": sources,
            "checksum": settings_checksum(settings),
            "default_cost_method": settings.default_cost_method,
            "strict_cost_method": settings.strict_cost_method,
        },
    )
    return settings


def settings_checksum(settings: InventorySettings) -> str:
    """Checksum of the effective settings, credentials excluded."""
    return compute_checksum(settings.redacted())
