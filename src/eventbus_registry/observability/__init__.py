"""Management console and metrics exposure for registries."""

from .management import (
    ManagedRegistry,
    ManagementConsole,
    RegistryCollector,
    RegistryStats,
    default_console,
    metric_prefix,
    serve_metrics,
)

__all__ = [
    "ManagedRegistry",
    "ManagementConsole",
    "RegistryCollector",
    "RegistryStats",
    "default_console",
    "metric_prefix",
    "serve_metrics",
]
