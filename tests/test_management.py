"""Tests for the management console and its Prometheus collector."""

from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry, generate_latest

from eventbus_registry.exceptions import DuplicateRegistrationError, InvalidPatternError
from eventbus_registry.observability import (
    ManagementConsole,
    RegistryCollector,
    default_console,
    metric_prefix,
    serve_metrics,
)


class TestMetricPrefix:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("eventbus_registry", "eventbus_registry"),
            ("eventbus.registry", "eventbus_registry"),
            ("reg-1", "reg_1"),
            ("1reg", "_1reg"),
        ],
    )
    def test_sanitized(self, name, expected):
        assert metric_prefix(name) == expected


class TestManagementConsole:
    def test_register_and_get(self, make_registry, console):
        registry = make_registry()
        console.register("reg", registry)
        assert console.get("reg") is registry
        assert console.names() == ["reg"]

    def test_duplicate_name(self, make_registry, console):
        console.register("reg", make_registry())
        with pytest.raises(DuplicateRegistrationError) as exc_info:
            console.register("reg", make_registry())
        assert exc_info.value.name == "reg"

    def test_metric_name_clash_is_duplicate(self, make_registry, console):
        """Two names sanitizing to the same metric prefix collide."""
        console.register("reg.a", make_registry())
        with pytest.raises(DuplicateRegistrationError):
            console.register("reg_a", make_registry())
        assert console.names() == ["reg.a"]

    def test_unregister(self, make_registry, console):
        console.register("reg", make_registry())
        assert console.unregister("reg") is True
        assert console.unregister("reg") is False
        assert console.get("reg") is None
        # Name and metrics are free again
        console.register("reg", make_registry())

    def test_unknown_name(self, console):
        with pytest.raises(KeyError):
            console.list_entries("missing")
        with pytest.raises(KeyError):
            console.expire("missing", "svc.a")

    def test_shared_collector_registry(self, make_registry):
        collectors = CollectorRegistry()
        console = ManagementConsole(collectors)
        console.register("reg", make_registry())
        assert console.collector_registry is collectors

    def test_default_console_is_singleton(self):
        assert default_console() is default_console()


class TestRegistryCollector:
    def test_exposes_store_and_counts(self, make_registry, console, clock):
        registry = make_registry(expiration=1000)
        console.register("reg", registry)

        clock.now = 1500
        registry.register("svc.a")
        registry.register("svc.b")
        registry.expire("svc.b")
        with pytest.raises(InvalidPatternError):
            registry.search("((")

        reg = console.collector_registry
        assert reg.get_sample_value("reg_entries") == 1
        assert reg.get_sample_value(
            "reg_last_seen_milliseconds", {"address": "svc.a"}
        ) == 1500
        assert reg.get_sample_value("reg_registrations_total") == 2
        assert reg.get_sample_value("reg_evictions_total", {"reason": "explicit"}) == 1
        assert reg.get_sample_value("reg_evictions_total", {"reason": "sweep"}) == 0
        assert reg.get_sample_value("reg_rejected_patterns_total") == 1

    def test_sweep_evictions_counted(self, make_registry, console, clock):
        registry = make_registry(expiration=1000, sweep=100)
        console.register("reg", registry)
        registry.register("svc.a")
        clock.now = 5000
        registry.sweep()
        assert console.collector_registry.get_sample_value(
            "reg_evictions_total", {"reason": "sweep"}
        ) == 1

    def test_exposition_text(self, make_registry):
        collectors = CollectorRegistry()
        registry = make_registry()
        collectors.register(RegistryCollector("reg", registry))
        registry.register("svc.a")

        text = generate_latest(collectors).decode()
        assert "reg_entries 1.0" in text
        assert 'reg_last_seen_milliseconds{address="svc.a"}' in text


def test_serve_metrics_uses_console_registry(console):
    with patch("eventbus_registry.observability.management._start_http_server") as start:
        serve_metrics(console, 9109)
    start.assert_called_once_with(9109, addr="0.0.0.0", registry=console.collector_registry)
