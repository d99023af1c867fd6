"""
Unit tests for configuration loading and validation.

Tests strict validation, defaults and environment overrides.
"""

import os
import tempfile

import pytest
import yaml

from netusage.config.loader import (
    AppConfig,
    DB_PATH_ENV_VAR,
    LoggingConfig,
    RetentionConfig,
    SamplingConfig,
    load_config
)


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_defaults_without_file(self):
        config = load_config(None, env={})

        assert config == AppConfig()
        assert config.storage.path == "network_stats.db"
        assert config.sampling.interval_seconds == 2.0
        assert config.retention.days == 365
        assert config.retention.auto_prune is False
        assert config.logging.level == "INFO"

    def test_valid_config_loads_correctly(self):
        config_path = self._write_config({
            "storage": {"path": "/var/lib/netusage/usage.db"},
            "sampling": {"interval_seconds": 5, "include_loopback": True},
            "retention": {"days": 90, "auto_prune": True},
            "logging": {"level": "debug"},
        })

        config = load_config(config_path, env={})

        assert config.storage.path == "/var/lib/netusage/usage.db"
        assert config.sampling.interval_seconds == 5.0
        assert config.sampling.include_loopback is True
        assert config.retention.days == 90
        assert config.retention.auto_prune is True
        assert config.logging.level == "DEBUG"

    def test_partial_config_keeps_defaults(self):
        config_path = self._write_config({"retention": {"days": 30}})

        config = load_config(config_path, env={})

        assert config.retention.days == 30
        assert config.sampling == SamplingConfig()

    def test_empty_file_gives_defaults(self):
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()

        assert load_config(config_path, env={}) == AppConfig()

    def test_env_overrides_storage_path(self):
        config_path = self._write_config({"storage": {"path": "from_file.db"}})

        config = load_config(config_path, env={DB_PATH_ENV_VAR: "from_env.db"})

        assert config.storage.path == "from_env.db"

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_config(os.path.join(self.temp_dir, "missing.yaml"), env={})

    def test_invalid_yaml(self):
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("storage: [unclosed")

        with pytest.raises(yaml.YAMLError):
            load_config(config_path, env={})

    def test_unknown_top_level_key(self):
        config_path = self._write_config({"alerts": {"email": "x"}})

        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_config(config_path, env={})

    def test_unknown_section_key(self):
        config_path = self._write_config({"sampling": {"interval": 2}})

        with pytest.raises(ValueError, match="Unknown sampling keys"):
            load_config(config_path, env={})

    def test_section_must_be_mapping(self):
        config_path = self._write_config({"storage": "usage.db"})

        with pytest.raises(ValueError, match="'storage' must be a dictionary"):
            load_config(config_path, env={})

    @pytest.mark.parametrize("data, message", [
        ({"sampling": {"interval_seconds": 0}}, "interval_seconds must be > 0"),
        ({"sampling": {"interval_seconds": "fast"}}, "must be a number"),
        ({"sampling": {"include_loopback": "yes"}}, "must be true or false"),
        ({"retention": {"days": -1}}, "retention days must be > 0"),
        ({"retention": {"days": 1.5}}, "must be an integer"),
        ({"logging": {"level": "LOUD"}}, "logging level must be one of"),
        ({"storage": {"path": 42}}, "must be a string"),
    ])
    def test_invalid_values(self, data, message):
        config_path = self._write_config(data)

        with pytest.raises(ValueError, match=message):
            load_config(config_path, env={})


class TestConfigModels:
    """Test dataclass validation directly."""

    def test_with_db_path(self):
        config = AppConfig().with_db_path("other.db")

        assert config.storage.path == "other.db"
        assert config.sampling == SamplingConfig()

    def test_invalid_models(self):
        with pytest.raises(ValueError):
            RetentionConfig(days=0)
        with pytest.raises(ValueError):
            LoggingConfig(level="verbose")
