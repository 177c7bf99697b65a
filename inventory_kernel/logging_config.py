"""
Structured JSON logging for the inventory kernel.

Every logger handed out by ``get_logger`` lives under ``inventory_kernel``
and writes one JSON object per line.  Event names are snake_case messages;
event data travels in ``extra``.  The product, actor and reference a service
call is working on are bound once with ``LogContext.bind`` and stamped on
every line emitted inside the block:

    with LogContext.bind(product_id=product_id, actor_id=actor_id):
        logger.info("stock_adjusted", extra={"delta": -2})

    {"ts": "...", "level": "INFO", "logger": "inventory_kernel.services.inventory",
     "message": "stock_adjusted", "product_id": "...", "actor_id": "...", "delta": -2}

When an InventoryError is logged with ``exc_info`` its ``code`` and
structured attributes (requested, available, entity_id, ...) are emitted as
``exc_*`` fields, so a failed consume can be queried by ``exc_code`` without
parsing the traceback.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

LOGGER_NAMESPACE = "inventory_kernel"

_EMPTY: Mapping[str, str] = MappingProxyType({})

_bound: ContextVar[Mapping[str, str]] = ContextVar("inventory_log_context", default=_EMPTY)


class LogContext:
    """Per-thread / per-task fields stamped on every log line."""

    FIELDS = frozenset({"product_id", "actor_id", "reference_id", "batch_id"})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_bound.get())

    @classmethod
    def clear(cls) -> None:
        _bound.set(_EMPTY)

    @classmethod
    def bind(cls, **fields: Any) -> "_Binding":
        """
        Layer ``fields`` over the current context for the duration of a block.

        Values are stringified; None values and names outside ``FIELDS`` are
        ignored.  The previous context is restored on exit, also on error.
        """
        return _Binding(
            {k: str(v) for k, v in fields.items() if v is not None and k in cls.FIELDS}
        )


class _Binding:

    def __init__(self, fields: dict[str, str]):
        self._fields = fields
        self._token = None

    def __enter__(self) -> type[LogContext]:
        merged = {**_bound.get(), **self._fields}
        self._token = _bound.set(MappingProxyType(merged))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        _bound.reset(self._token)


# LogRecord attributes that are not event data
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, bound context, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_bound.get(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._error_fields(record))

        return json.dumps(payload, default=_json_default)

    def _error_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``inventory_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_installed: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``inventory_kernel`` logger.

    Only the first call has an effect until ``reset_logging``; the engine
    and the CLI may both call it.
    """
    global _installed
    with _lock:
        if _installed is not None:
            return
        _installed = handler or logging.StreamHandler(stream or sys.stderr)
        _installed.setFormatter(StructuredFormatter())

        root = logging.getLogger(LOGGER_NAMESPACE)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_installed)


def reset_logging() -> None:
    """Drop the handler installed by ``configure_logging`` (tests only)."""
    global _installed
    with _lock:
        root = logging.getLogger(LOGGER_NAMESPACE)
        if _installed is not None:
            root.removeHandler(_installed)
            _installed = None
        root.setLevel(logging.WARNING)
