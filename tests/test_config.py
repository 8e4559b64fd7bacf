"""
Unit tests for configuration loading and validation.
"""

import os
import shutil
import tempfile

import pytest
import yaml

from financeapp.config.loader import (
    AppConfig,
    ExportConfig,
    LoggingConfig,
    StorageConfig,
    load_app_config,
)
from financeapp.core.model import AllocationTargets


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_no_path_gives_defaults(self):
        """Verify built-in defaults without a config file."""
        config = load_app_config(None)
        assert config == AppConfig()
        assert config.storage.db_path == "financeapp.db"
        assert config.storage.snapshot_key == "financeapp_pro_state"
        assert config.export.delimiter == ";"
        assert config.export.decimal_separator == ","
        assert config.allocation == AllocationTargets(10, 5, 10, 20)
        assert config.logging.level == "WARNING"

    def test_valid_config_loads_correctly(self):
        """Test that a full configuration loads correctly."""
        config_path = self._write_config({
            "storage": {"db_path": "/tmp/finance.db", "snapshot_key": "shop"},
            "export": {"delimiter": "\t", "decimal_separator": "."},
            "allocation": {"reserve": 20, "future_taxes": 10, "reinvestment": 15, "distribution": 25},
            "logging": {"level": "debug"},
        })
        config = load_app_config(config_path)

        assert config.storage == StorageConfig(db_path="/tmp/finance.db", snapshot_key="shop")
        assert config.export == ExportConfig(delimiter="\t", decimal_separator=".")
        assert config.allocation == AllocationTargets(20, 10, 15, 25)
        assert config.logging == LoggingConfig(level="DEBUG")

    def test_partial_config_keeps_defaults(self):
        """Test that omitted sections and keys keep defaults."""
        config_path = self._write_config({"allocation": {"reserve": 30}})
        config = load_app_config(config_path)

        assert config.allocation == AllocationTargets(30, 5, 10, 20)
        assert config.storage == StorageConfig()

    def test_empty_file_gives_defaults(self):
        """Test that an empty file is accepted."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, "w").close()
        assert load_app_config(config_path) == AppConfig()

    def test_missing_file(self):
        """Test error for a config path that does not exist."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_app_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_invalid_yaml(self):
        """Test error for invalid YAML."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, "w", encoding="utf-8") as f:
            f.write("storage: [unclosed")
        with pytest.raises(yaml.YAMLError, match="Invalid YAML"):
            load_app_config(config_path)

    def test_unknown_top_level_key(self):
        """Test that unknown sections are rejected."""
        config_path = self._write_config({"budget": {"daily": 1}})
        with pytest.raises(ValueError, match="Unknown keys in configuration"):
            load_app_config(config_path)

    def test_unknown_section_key(self):
        """Test that unknown keys inside a section are rejected."""
        config_path = self._write_config({"allocation": {"savings": 10}})
        with pytest.raises(ValueError, match="Unknown keys in allocation"):
            load_app_config(config_path)

    def test_root_must_be_mapping(self):
        """Test that a list root is rejected."""
        config_path = self._write_config(["storage"])
        with pytest.raises(ValueError, match="root must be a dictionary"):
            load_app_config(config_path)

    def test_section_must_be_mapping(self):
        """Test that a scalar section is rejected."""
        config_path = self._write_config({"export": ";"})
        with pytest.raises(ValueError, match="'export' must be a dictionary"):
            load_app_config(config_path)

    @pytest.mark.parametrize("value", [-1, 101, "ten", True])
    def test_invalid_allocation_percentage(self, value):
        """Test allocation percentages must be numbers within 0-100."""
        config_path = self._write_config({"allocation": {"reserve": value}})
        with pytest.raises(ValueError, match="allocation.reserve"):
            load_app_config(config_path)

    def test_invalid_log_level(self):
        """Test unknown logging levels are rejected."""
        config_path = self._write_config({"logging": {"level": "loud"}})
        with pytest.raises(ValueError, match="level must be one of"):
            load_app_config(config_path)

    def test_same_delimiter_and_decimal_separator(self):
        """Test export separators must differ."""
        config_path = self._write_config({"export": {"delimiter": ",", "decimal_separator": ","}})
        with pytest.raises(ValueError, match="must differ"):
            load_app_config(config_path)

    def test_empty_snapshot_key(self):
        """Test an empty snapshot key is rejected."""
        config_path = self._write_config({"storage": {"snapshot_key": ""}})
        with pytest.raises(ValueError, match="snapshot_key cannot be empty"):
            load_app_config(config_path)
