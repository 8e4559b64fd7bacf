"""
Configuration management and loading.

Handles application settings read from a YAML file.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from financeapp.core.model import AllocationTargets
from financeapp.storage.db import DEFAULT_DB_PATH
from financeapp.storage.repository import DEFAULT_SNAPSHOT_KEY

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FINANCEAPP_CONFIG"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class StorageConfig:
    """Where the snapshot is stored."""
    db_path: str = DEFAULT_DB_PATH
    snapshot_key: str = DEFAULT_SNAPSHOT_KEY

    def __post_init__(self):
        """Validate storage values are not empty."""
        if not self.db_path:
            raise ValueError("db_path cannot be empty")
        if not self.snapshot_key:
            raise ValueError("snapshot_key cannot be empty")


@dataclass(frozen=True)
class ExportConfig:
    """Delimited export format."""
    delimiter: str = ";"
    decimal_separator: str = ","

    def __post_init__(self):
        """Validate separators are single characters and distinct."""
        if len(self.delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        if len(self.decimal_separator) != 1:
            raise ValueError("decimal_separator must be a single character")
        if self.delimiter == self.decimal_separator:
            raise ValueError("delimiter and decimal_separator must differ")


@dataclass(frozen=True)
class LoggingConfig:
    """Logging options."""
    level: str = "WARNING"

    def __post_init__(self):
        """Validate the level name."""
        if self.level not in LOG_LEVELS:
            raise ValueError(f"level must be one of: {list(LOG_LEVELS)}")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    allocation: AllocationTargets = field(default_factory=AllocationTargets)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration from a YAML file.

    Every section is optional; omitted values keep their defaults. Unknown
    keys are rejected so typos never go unnoticed.

    Args:
        path: Path to YAML configuration file, or None for built-in defaults

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return AppConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        logger.debug("Config file %s is empty, using defaults", path)
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    _check_keys(raw_config, {'storage', 'export', 'allocation', 'logging'}, "configuration")

    storage_data = _section(raw_config, 'storage')
    _check_keys(storage_data, {'db_path', 'snapshot_key'}, "storage")
    storage = StorageConfig(
        db_path=str(storage_data.get('db_path', DEFAULT_DB_PATH)),
        snapshot_key=str(storage_data.get('snapshot_key', DEFAULT_SNAPSHOT_KEY))
    )

    export_data = _section(raw_config, 'export')
    _check_keys(export_data, {'delimiter', 'decimal_separator'}, "export")
    export = ExportConfig(
        delimiter=str(export_data.get('delimiter', ';')),
        decimal_separator=str(export_data.get('decimal_separator', ','))
    )

    allocation_data = _section(raw_config, 'allocation')
    allowed_allocation_keys = {'reserve', 'future_taxes', 'reinvestment', 'distribution'}
    _check_keys(allocation_data, allowed_allocation_keys, "allocation")
    defaults = AllocationTargets()
    allocation_values = {}
    for key in sorted(allowed_allocation_keys):
        value = allocation_data.get(key, getattr(defaults, key))
        allocation_values[key] = _percentage(value, f"allocation.{key}")
    allocation = AllocationTargets(**allocation_values)

    logging_data = _section(raw_config, 'logging')
    _check_keys(logging_data, {'level'}, "logging")
    logging_config = LoggingConfig(level=str(logging_data.get('level', 'WARNING')).upper())

    return AppConfig(
        storage=storage,
        export=export,
        allocation=allocation,
        logging=logging_config
    )


def _section(raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return a config section, or an empty one when omitted."""
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict[str, Any], allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _percentage(value: Any, path: str) -> float:
    """Validate a 0-100 percentage."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    if value < 0 or value > 100:
        raise ValueError(f"'{path}' must be between 0 and 100")
    return float(value)
