"""
Configuration management and loading.

Handles application settings and environment variables.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from netusage.storage.db import DEFAULT_DB_PATH

DB_PATH_ENV_VAR = "NETUSAGE_DB"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class StorageConfig:
    """Where samples and settings are stored."""
    path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        if not self.path:
            raise ValueError("storage path cannot be empty")


@dataclass(frozen=True)
class SamplingConfig:
    """Counter sampling cadence and scope."""
    interval_seconds: float = 2.0
    include_loopback: bool = False

    def __post_init__(self):
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")


@dataclass(frozen=True)
class RetentionConfig:
    """How long samples are kept and whether pruning runs automatically."""
    days: int = 365
    auto_prune: bool = False

    def __post_init__(self):
        if self.days <= 0:
            raise ValueError("retention days must be > 0")


@dataclass(frozen=True)
class LoggingConfig:
    """Log verbosity."""
    level: str = "INFO"

    def __post_init__(self):
        if self.level not in VALID_LOG_LEVELS:
            raise ValueError(f"logging level must be one of: {sorted(VALID_LOG_LEVELS)}")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_db_path(self, path: str) -> "AppConfig":
        """Return a copy with a different storage path."""
        return replace(self, storage=StorageConfig(path=path))


def load_config(path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    With no path, defaults are used. The NETUSAGE_DB environment variable,
    when set, overrides storage.path.

    Args:
        path: Optional path to YAML configuration file
        env: Environment mapping (default: os.environ)

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config = AppConfig()
    if path is not None:
        config = _load_file(path)

    env = os.environ if env is None else env
    db_override = env.get(DB_PATH_ENV_VAR)
    if db_override:
        config = config.with_db_path(db_override)
    return config


def _load_file(path: str) -> AppConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'storage', 'sampling', 'retention', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    storage = _section(raw_config, 'storage', {'path'})
    sampling = _section(raw_config, 'sampling', {'interval_seconds', 'include_loopback'})
    retention = _section(raw_config, 'retention', {'days', 'auto_prune'})
    logging_data = _section(raw_config, 'logging', {'level'})

    storage_config = StorageConfig()
    if 'path' in storage:
        storage_config = StorageConfig(path=_require_str(storage['path'], 'storage.path'))

    sampling_config = SamplingConfig(
        interval_seconds=_require_number(
            sampling.get('interval_seconds', SamplingConfig.interval_seconds),
            'sampling.interval_seconds'
        ),
        include_loopback=_require_bool(
            sampling.get('include_loopback', SamplingConfig.include_loopback),
            'sampling.include_loopback'
        )
    )

    days = retention.get('days', RetentionConfig.days)
    if not isinstance(days, int) or isinstance(days, bool):
        raise ValueError("'retention.days' must be an integer")
    retention_config = RetentionConfig(
        days=days,
        auto_prune=_require_bool(retention.get('auto_prune', RetentionConfig.auto_prune), 'retention.auto_prune')
    )

    level = _require_str(logging_data.get('level', LoggingConfig.level), 'logging.level')
    logging_config = LoggingConfig(level=level.upper())

    return AppConfig(
        storage=storage_config,
        sampling=sampling_config,
        retention=retention_config,
        logging=logging_config
    )


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict[str, Any]:
    """Return a validated config section, or an empty dict if absent.

    Raises:
        ValueError: If the section is not a mapping or has unknown keys
    """
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return data


def _require_str(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"'{path}' must be a string")
    return value


def _require_number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    return float(value)


def _require_bool(value: Any, path: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"'{path}' must be true or false")
    return value
