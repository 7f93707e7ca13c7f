# Copyright (c) EventBus Registry Contributors. All rights reserved.
# Licensed under the MIT License.
"""Management console for registry introspection.

Provides ``ManagementConsole``, a named catalogue of running registries
that exposes their administrative operations (list entries, expire an
address) out-of-band from the bus, and publishes their state as Prometheus
metrics through a ``CollectorRegistry``.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Iterator, Mapping, Optional, Protocol

from prometheus_client import CollectorRegistry
from prometheus_client import start_http_server as _start_http_server
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from ..exceptions import DuplicateRegistrationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryStats:
    """Cumulative operation counts for one registry."""

    registrations: int = 0
    sweep_evictions: int = 0
    explicit_evictions: int = 0
    rejected_patterns: int = 0


class ManagedRegistry(Protocol):
    """Administrative surface a registry exposes to the console."""

    def list_entries(self) -> Mapping[str, int]: ...

    def expire(self, address: str) -> bool: ...

    def stats(self) -> RegistryStats: ...


def metric_prefix(name: str) -> str:
    """Turn a console name into a valid Prometheus metric prefix."""
    prefix = re.sub(r"[^a-zA-Z0-9_]", "_", name)
    if prefix[:1].isdigit():
        prefix = f"_{prefix}"
    return prefix


class RegistryCollector:
    """Prometheus collector reading a managed registry at scrape time.

    Metrics exposed (``<prefix>`` derived from the console name):

    * ``<prefix>_entries``: number of addresses in the store
    * ``<prefix>_last_seen_milliseconds``: last-seen timestamp per address
    * ``<prefix>_registrations_total``: registrations received
    * ``<prefix>_evictions_total``: evictions, labelled by ``reason``
    * ``<prefix>_rejected_patterns_total``: search patterns that failed to compile
    """

    def __init__(self, name: str, managed: ManagedRegistry) -> None:
        self._prefix = metric_prefix(name)
        self._managed = managed

    def describe(self) -> list:
        # Lets CollectorRegistry detect name clashes without scraping the store
        return [
            GaugeMetricFamily(f"{self._prefix}_entries", "Registered addresses"),
            GaugeMetricFamily(
                f"{self._prefix}_last_seen_milliseconds",
                "Last-seen timestamp per address",
                labels=["address"],
            ),
            CounterMetricFamily(f"{self._prefix}_registrations", "Registrations received"),
            CounterMetricFamily(
                f"{self._prefix}_evictions", "Addresses evicted", labels=["reason"]
            ),
            CounterMetricFamily(
                f"{self._prefix}_rejected_patterns", "Search patterns rejected"
            ),
        ]

    def collect(self) -> Iterator:
        entries = self._managed.list_entries()
        stats = self._managed.stats()

        yield GaugeMetricFamily(
            f"{self._prefix}_entries", "Registered addresses", value=len(entries)
        )

        last_seen = GaugeMetricFamily(
            f"{self._prefix}_last_seen_milliseconds",
            "Last-seen timestamp per address",
            labels=["address"],
        )
        for address, timestamp in entries.items():
            last_seen.add_metric([address], timestamp)
        yield last_seen

        yield CounterMetricFamily(
            f"{self._prefix}_registrations",
            "Registrations received",
            value=stats.registrations,
        )

        evictions = CounterMetricFamily(
            f"{self._prefix}_evictions", "Addresses evicted", labels=["reason"]
        )
        evictions.add_metric(["sweep"], stats.sweep_evictions)
        evictions.add_metric(["explicit"], stats.explicit_evictions)
        yield evictions

        yield CounterMetricFamily(
            f"{self._prefix}_rejected_patterns",
            "Search patterns rejected",
            value=stats.rejected_patterns,
        )


class ManagementConsole:
    """Named catalogue of managed registries.

    Args:
        collector_registry: Prometheus registry the collectors are attached
            to. A private one is created when omitted.
    """

    def __init__(self, collector_registry: Optional[CollectorRegistry] = None) -> None:
        self.collector_registry = collector_registry or CollectorRegistry()
        self._managed: dict[str, tuple[ManagedRegistry, RegistryCollector]] = {}
        self._lock = threading.Lock()

    def register(self, name: str, managed: ManagedRegistry) -> None:
        """Attach *managed* under *name*.

        Raises:
            DuplicateRegistrationError: If *name* (or its metric names) is taken.
        """
        with self._lock:
            if name in self._managed:
                raise DuplicateRegistrationError(name)
            collector = RegistryCollector(name, managed)
            try:
                self.collector_registry.register(collector)
            except ValueError as exc:
                raise DuplicateRegistrationError(name) from exc
            self._managed[name] = (managed, collector)
        logger.debug("Attached %s to the management console", name)

    def unregister(self, name: str) -> bool:
        """Detach *name*. Returns False if it was not registered."""
        with self._lock:
            item = self._managed.pop(name, None)
            if item is None:
                return False
            self.collector_registry.unregister(item[1])
        logger.debug("Detached %s from the management console", name)
        return True

    def get(self, name: str) -> Optional[ManagedRegistry]:
        with self._lock:
            item = self._managed.get(name)
        return item[0] if item else None

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._managed)

    def list_entries(self, name: str) -> Mapping[str, int]:
        """Snapshot of the named registry's store.

        Raises:
            KeyError: If nothing is registered under *name*.
        """
        return self._require(name).list_entries()

    def expire(self, name: str, address: str) -> bool:
        """Explicitly evict *address* from the named registry.

        Raises:
            KeyError: If nothing is registered under *name*.
        """
        return self._require(name).expire(address)

    def _require(self, name: str) -> ManagedRegistry:
        managed = self.get(name)
        if managed is None:
            raise KeyError(f"No registry named {name!r} on the management console")
        return managed


_default_console: Optional[ManagementConsole] = None
_default_lock = threading.Lock()


def default_console() -> ManagementConsole:
    """Return the process-wide management console."""
    global _default_console
    with _default_lock:
        if _default_console is None:
            _default_console = ManagementConsole()
        return _default_console


def serve_metrics(console: ManagementConsole, port: int, addr: str = "0.0.0.0") -> None:
    """Start the Prometheus HTTP exporter for *console* on *port*."""
    _start_http_server(port, addr=addr, registry=console.collector_registry)
    logger.info("Serving registry metrics on %s:%d", addr, port)
