"""
Registry Configuration

Startup settings for the registry. A config is immutable once built;
overrides produce a new instance.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRATION_MS = 5000
DEFAULT_PING_MS = 1000
DEFAULT_SWEEP_MS = 0
DEFAULT_MANAGEMENT_NAME = "eventbus_registry"


class RegistryConfig(BaseModel):
    """Timing and management settings for a Registry.

    All intervals are in milliseconds; ``0`` disables the feature.

    Example:
        >>> config = RegistryConfig(expiration=5000, sweep=1000)
        >>> config.sweep_enabled
        True
    """

    model_config = {"frozen": True}

    expiration: int = Field(
        default=DEFAULT_EXPIRATION_MS,
        ge=0,
        description="Age after which an address is considered stale (0 disables)",
    )
    ping: int = Field(
        default=DEFAULT_PING_MS,
        ge=0,
        description="Heartbeat broadcast interval (0 disables)",
    )
    sweep: int = Field(
        default=DEFAULT_SWEEP_MS,
        ge=0,
        description="Eviction pass interval (0 disables)",
    )
    management_name: str = Field(
        default=DEFAULT_MANAGEMENT_NAME,
        description="Name the registry registers under on the management console",
    )
    metrics_port: int = Field(
        default=0,
        ge=0,
        le=65535,
        description="Prometheus exporter port (0 disables)",
    )

    @field_validator("management_name")
    @classmethod
    def validate_management_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("management_name must not be empty")
        return v

    @property
    def expiration_enabled(self) -> bool:
        return self.expiration > 0

    @property
    def ping_enabled(self) -> bool:
        return self.ping > 0

    @property
    def sweep_enabled(self) -> bool:
        """Sweeping needs both an expiration age and a sweep interval."""
        return self.expiration > 0 and self.sweep > 0

    def with_overrides(self, **overrides: Any) -> "RegistryConfig":
        """Return a new config with every non-``None`` override applied."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return build_config(data)


def build_config(data: Optional[dict[str, Any]] = None) -> RegistryConfig:
    """Build a RegistryConfig from a plain mapping, ignoring unknown keys.

    Raises:
        ConfigError: If a known key has an invalid value.
    """
    data = data or {}
    known = {k: v for k, v in data.items() if k in RegistryConfig.model_fields}
    unknown = sorted(set(data) - set(known))
    if unknown:
        logger.debug("Ignoring unknown config keys: %s", ", ".join(unknown))
    try:
        return RegistryConfig(**known)
    except ValidationError as exc:
        raise ConfigError(f"Invalid registry configuration: {exc}") from exc


def load_config(path: Union[str, Path]) -> RegistryConfig:
    """Load a RegistryConfig from a YAML file.

    An empty file yields the defaults.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    config = build_config(data)
    logger.debug("Loaded registry config from %s", path)
    return config
