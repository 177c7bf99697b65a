"""
End-to-end tests for the ``inventory-ledger`` command against a scratch
SQLite file configured through ``--config``.
"""

import json
from decimal import Decimal
from io import StringIO

import pytest
import yaml
from sqlalchemy import select

from inventory_config.loader import ENV_OVERRIDES
from inventory_kernel.db import engine as engine_module
from inventory_kernel.models.inventory_record import InventoryRecordModel
from inventory_kernel.repositories.product_repository import ProductRepository
from inventory_services.cli import EXIT_DRIFT, EXIT_OK, EXIT_USAGE, main
from inventory_services.inventory_service import InventoryService


@pytest.fixture
def cli_config(tmp_path, monkeypatch):
    """Config file for a private database; engine globals restored afterwards."""
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(engine_module, "_engine", engine_module._engine)
    monkeypatch.setattr(engine_module, "_SessionFactory", engine_module._SessionFactory)

    path = tmp_path / "inventory.yaml"
    path.write_text(yaml.safe_dump({
        "database": {"url": f"sqlite:///{tmp_path / 'cli.db'}"},
        "logging": {"level": "DEBUG"},
    }))
    original = engine_module._engine
    yield str(path)
    if engine_module._engine is not original:
        engine_module._engine.dispose()


def _run(*argv):
    out = StringIO()
    code = main(list(argv), out=out)
    return code, json.loads(out.getvalue()) if out.getvalue() else None


@pytest.fixture
def seeded(cli_config, test_actor_id):
    """Initialised database holding one product with 10 @ 5.00 and 10 @ 7.00."""
    code, _ = _run("--config", cli_config, "init-db")
    assert code == EXIT_OK
    with engine_module.session_scope() as session:
        product = ProductRepository(session).add(sku="CLI-1", name="Widget")
        service = InventoryService(session)
        service.process_received_batch(product.id, 10, Decimal("5.00"), test_actor_id)
        service.process_received_batch(product.id, 10, Decimal("7.00"), test_actor_id)
        product_id = product.id
    return cli_config, product_id


def _force_drift(product_id, quantity):
    with engine_module.session_scope() as session:
        record = session.execute(
            select(InventoryRecordModel).where(InventoryRecordModel.product_id == product_id)
        ).scalar_one()
        record.quantity = quantity


class TestInitDb:

    def test_creates_schema(self, cli_config, tmp_path):
        code, payload = _run("--config", cli_config, "init-db")

        assert code == EXIT_OK
        assert payload["status"] == "ok"
        assert payload["database"].endswith("cli.db")
        assert (tmp_path / "cli.db").exists()

    def test_bad_config_is_usage_error(self, tmp_path, cli_config):
        bad = tmp_path / "bad.yaml"
        bad.write_text(yaml.safe_dump({"costing": {"default_cost_method": "average"}}))

        code, payload = _run("--config", str(bad), "init-db")

        assert code == EXIT_USAGE
        assert payload is None

    def test_missing_config_is_usage_error(self, tmp_path, cli_config):
        code, _ = _run("--config", str(tmp_path / "nope.yaml"), "init-db")

        assert code == EXIT_USAGE


class TestReconcileCommand:

    def test_consistent_ledger(self, seeded):
        config, product_id = seeded

        code, payload = _run("--config", config, "reconcile")

        assert code == EXIT_OK
        assert payload["products_checked"] == 1
        assert payload["products_with_drift"] == 0
        assert payload["reports"][0]["product_id"] == str(product_id)

    def test_drift_reported_then_repaired(self, seeded):
        config, product_id = seeded
        _force_drift(product_id, 17)

        code, payload = _run("--config", config, "reconcile")
        assert code == EXIT_DRIFT
        [drift] = payload["reports"][0]["drifts"]
        assert (drift["stored"], drift["replayed"]) == (17, 20)

        code, payload = _run("--config", config, "reconcile", "--repair")
        assert code == EXIT_OK
        assert payload["repaired"] == [str(product_id)]

        code, payload = _run("--config", config, "reconcile", "--product", str(product_id))
        assert code == EXIT_OK
        assert payload["products_with_drift"] == 0


class TestValuationCommand:

    def test_reports_stock_value(self, seeded):
        config, product_id = seeded

        code, payload = _run("--config", config, "valuation", "--product", str(product_id))

        assert code == EXIT_OK
        assert Decimal(payload["total_value"]) == Decimal("120.00")
        [line] = payload["products"]
        assert line["on_hand_quantity"] == 20
        assert Decimal(line["average_cost"]) == Decimal("6.00")
