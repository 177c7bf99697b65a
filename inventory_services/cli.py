"""
Command-line entry point: ``inventory-ledger``.

Usage:
    inventory-ledger [--config PATH] init-db
    inventory-ledger [--config PATH] reconcile [--product ID] [--repair]
    inventory-ledger [--config PATH] valuation [--product ID]

Results are printed to stdout as JSON; logs go to stderr.  Exit status is
0 on success, 1 when unrepaired ledger drift is found, 2 on usage or
configuration errors.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from inventory_config import InventorySettings, load_settings
from inventory_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.logging_config import configure_logging, get_logger
from inventory_services.inventory_service import InventoryService
from inventory_services.replay_service import LedgerReplayService

logger = get_logger("services.cli")

EXIT_OK = 0
EXIT_DRIFT = 1
EXIT_USAGE = 2


def _json_default(value):
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _emit(payload, stream) -> None:
    stream.write(json.dumps(payload, indent=2, sort_keys=True, default=_json_default))
    stream.write("\n")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="inventory-ledger",
        description="Maintenance commands for the inventory stock ledger",
    )
    p.add_argument("--config", help="YAML settings file layered over the defaults")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the inventory tables")

    reconcile = sub.add_parser("reconcile", help="Compare stored stock with the ledger")
    reconcile.add_argument("--product", type=UUID, help="Only this product id")
    reconcile.add_argument(
        "--repair",
        action="store_true",
        help="Rewrite drifting quantities from the ledger",
    )

    valuation = sub.add_parser("valuation", help="Report remaining stock value")
    valuation.add_argument("--product", type=UUID, help="Only this product id")

    return p.parse_args(argv)


def _init_db(settings: InventorySettings, out) -> int:
    create_tables()
    _emit({"status": "ok", "database": settings.redacted()["database_url"]}, out)
    return EXIT_OK


def _reconcile(args: argparse.Namespace, out) -> int:
    with session_scope() as session:
        replay = LedgerReplayService(session)
        if args.product is not None:
            reports = [replay.reconcile(args.product)]
        else:
            reports = replay.reconcile_all()

        repaired: list[str] = []
        if args.repair:
            for report in reports:
                if not report.is_consistent:
                    replay.repair(report.product_id)
                    repaired.append(str(report.product_id))

    drifting = [r for r in reports if not r.is_consistent]
    _emit(
        {
            "products_checked": len(reports),
            "products_with_drift": len(drifting),
            "repaired": repaired,
            "reports": [r.to_dict() for r in reports],
        },
        out,
    )
    if drifting and not args.repair:
        return EXIT_DRIFT
    return EXIT_OK


def _valuation(args: argparse.Namespace, settings: InventorySettings, out) -> int:
    with session_scope() as session:
        service = InventoryService(session, settings=settings)
        lines = service.get_inventory_valuation()
    if args.product is not None:
        lines = [line for line in lines if line.product_id == args.product]
    _emit(
        {
            "total_value": sum((line.stock_value for line in lines), Decimal("0")),
            "products": [
                {
                    "product_id": line.product_id,
                    "on_hand_quantity": line.on_hand_quantity,
                    "batch_quantity": line.batch_quantity,
                    "average_cost": line.average_cost,
                    "stock_value": line.stock_value,
                }
                for line in lines
            ],
        },
        out,
    )
    return EXIT_OK


def main(argv: Sequence[str] | None = None, out=None) -> int:
    out = out or sys.stdout
    args = _parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"inventory-ledger: invalid configuration: {exc}\n")
        return EXIT_USAGE

    configure_logging(level=settings.log_level)
    init_engine_from_url(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )
    register_immutability_listeners()

    match args.command:
        case "init-db":
            return _init_db(settings, out)
        case "reconcile":
            return _reconcile(args, out)
        case "valuation":
            return _valuation(args, settings, out)
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
