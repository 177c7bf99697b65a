"""
Tests for inventory_config: layered YAML/env loading and settings validation.
"""

from pathlib import Path

import pytest
import yaml

from inventory_config import InventorySettings, compute_checksum, load_settings, settings_checksum
from inventory_config.loader import env_overrides, flatten_sections, load_yaml_file, parse_bool


def _write_yaml(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadSettings:

    def test_packaged_defaults(self):
        settings = load_settings(env={})

        assert settings == InventorySettings()
        assert settings.default_cost_method == "fifo"
        assert settings.strict_cost_method is False
        assert settings.expiry_warning_days == 30

    def test_file_layer_overrides_defaults(self, tmp_path):
        config = _write_yaml(tmp_path / "inventory.yaml", {
            "costing": {"default_cost_method": "lifo", "cache_size": 0},
            "stock_levels": {"enforce_max_level": True},
        })

        settings = load_settings(config, env={})

        assert settings.default_cost_method == "lifo"
        assert settings.cost_cache_size == 0
        assert settings.enforce_max_level is True
        assert settings.default_reorder_level == 10

    def test_environment_overrides_file(self, tmp_path):
        config = _write_yaml(tmp_path / "inventory.yaml", {
            "database": {"url": "sqlite:///from-file.db"},
        })

        settings = load_settings(config, env={
            "INVENTORY_DATABASE_URL": "sqlite:///from-env.db",
            "INVENTORY_DEFAULT_COST_METHOD": " LIFO ",
            "INVENTORY_STRICT_COST_METHOD": "yes",
            "INVENTORY_LOG_LEVEL": "debug",
        })

        assert settings.database_url == "sqlite:///from-env.db"
        assert settings.default_cost_method == "lifo"
        assert settings.strict_cost_method is True
        assert settings.log_level == "DEBUG"

    def test_empty_environment_values_ignored(self):
        settings = load_settings(env={"INVENTORY_LOG_LEVEL": ""})

        assert settings.log_level == "INFO"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml", env={})

    def test_unknown_key_rejected(self, tmp_path):
        config = _write_yaml(tmp_path / "inventory.yaml", {"costing": {"method": "fifo"}})

        with pytest.raises(ValueError, match="costing.method"):
            load_settings(config, env={})

    def test_invalid_value_rejected(self, tmp_path):
        config = _write_yaml(tmp_path / "inventory.yaml", {
            "costing": {"default_cost_method": "average"},
        })

        with pytest.raises(ValueError, match="default_cost_method"):
            load_settings(config, env={})

    def test_config_trace_logged(self, captured_logs):
        load_settings(env={})

        [entry] = [r for r in captured_logs() if r["message"] == "INVENTORY_CONFIG_TRACE"]
        assert len(entry["checksum"]) == 64
        assert entry["sources"][-1].endswith("defaults.yaml")


class TestYamlHelpers:

    def test_non_mapping_document_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            load_yaml_file(path)

    def test_empty_document_is_empty_mapping(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml_file(path) == {}

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError):
            flatten_sections({"costing": "fifo"})

    @pytest.mark.parametrize("raw, expected", [("1", True), ("On", True), ("no", False), ("FALSE", False)])
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw, "X") is expected

    def test_parse_bool_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_bool("maybe", "INVENTORY_STRICT_COST_METHOD")

    def test_env_overrides_only_known_variables(self):
        assert env_overrides({"INVENTORY_UNKNOWN": "1", "PATH": "/bin"}) == {}


class TestInventorySettings:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"database_url": ""},
            {"default_cost_method": "FIFO"},
            {"log_level": "verbose"},
            {"cost_cache_size": -1},
            {"expiry_warning_days": 1.5},
            {"pool_size": 0},
            {"default_reorder_level": True},
            {"enforce_max_level": "yes"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            InventorySettings(**kwargs)

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="bogus"):
            InventorySettings.from_dict({"bogus": 1})

    def test_redacted_hides_password(self):
        settings = InventorySettings(database_url="postgresql://inv:s3cret@db/inventory")

        redacted = settings.redacted()

        assert "s3cret" not in redacted["database_url"]
        assert settings.to_dict()["database_url"].endswith("s3cret@db/inventory")


class TestChecksum:

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_checksum_tracks_values(self):
        assert settings_checksum(InventorySettings()) != settings_checksum(
            InventorySettings(default_cost_method="lifo")
        )

    def test_checksum_ignores_password(self):
        first = InventorySettings(database_url="postgresql://inv:one@db/inventory")
        second = InventorySettings(database_url="postgresql://inv:two@db/inventory")

        assert settings_checksum(first) == settings_checksum(second)
