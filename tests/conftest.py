"""Shared fixtures for registry tests."""

import pytest

from eventbus_registry import InMemoryEventBus, ManagementConsole, Registry, RegistryConfig


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class Recorder:
    """Collects message bodies published on a channel."""

    def __init__(self) -> None:
        self.bodies: list = []

    def __call__(self, message) -> None:
        self.bodies.append(message.body)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bus():
    return InMemoryEventBus()


@pytest.fixture
def console():
    return ManagementConsole()


@pytest.fixture
def make_registry(bus, clock, console):
    """Factory building a registry wired to the shared fake clock and console."""

    def _make(**config) -> Registry:
        return Registry(bus, RegistryConfig(**config), clock=clock, console=console)

    return _make


@pytest.fixture
def listen(bus):
    """Subscribe a Recorder to a channel on the shared bus."""

    def _listen(channel: str) -> Recorder:
        recorder = Recorder()
        bus.subscribe(channel, recorder)
        return recorder

    return _listen
