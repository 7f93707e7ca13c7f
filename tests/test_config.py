"""Tests for registry configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from eventbus_registry.config import RegistryConfig, build_config, load_config
from eventbus_registry.exceptions import ConfigError


class TestRegistryConfig:
    def test_defaults(self):
        config = RegistryConfig()
        assert config.expiration == 5000
        assert config.ping == 1000
        assert config.sweep == 0
        assert config.management_name == "eventbus_registry"
        assert config.metrics_port == 0

    def test_sweep_needs_expiration(self):
        assert RegistryConfig(expiration=5000, sweep=1000).sweep_enabled
        assert not RegistryConfig(expiration=0, sweep=1000).sweep_enabled
        assert not RegistryConfig(expiration=5000, sweep=0).sweep_enabled

    def test_ping_enabled(self):
        assert RegistryConfig(ping=1).ping_enabled
        assert not RegistryConfig(ping=0).ping_enabled

    def test_frozen(self):
        config = RegistryConfig()
        with pytest.raises(ValidationError):
            config.expiration = 10  # type: ignore[misc]

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            RegistryConfig(expiration=-1)

    def test_with_overrides_skips_none(self):
        config = RegistryConfig(expiration=3000)
        updated = config.with_overrides(expiration=None, sweep=500)
        assert updated.expiration == 3000
        assert updated.sweep == 500
        assert config.sweep == 0


class TestBuildConfig:
    def test_unknown_keys_ignored(self):
        config = build_config({"expiration": 100, "colour": "blue"})
        assert config.expiration == 100

    def test_invalid_value_raises_config_error(self):
        with pytest.raises(ConfigError):
            build_config({"ping": -5})

    def test_empty_management_name_rejected(self):
        with pytest.raises(ConfigError):
            build_config({"management_name": "  "})


class TestLoadConfig:
    def test_load_yaml(self, tmp_path: Path):
        path = tmp_path / "registry.yaml"
        path.write_text("expiration: 2000\nping: 0\nsweep: 250\n")
        config = load_config(path)
        assert config.expiration == 2000
        assert config.ping == 0
        assert config.sweep == 250

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == RegistryConfig()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("expiration: [1, 2\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)
