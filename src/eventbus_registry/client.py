"""Thin bus client matching the registry's channel API."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

from .events import EventBus, Message
from .registry import (
    EXPIRED_CHANNEL,
    GET_CHANNEL,
    PING_CHANNEL,
    REGISTER_CHANNEL,
    SEARCH_CHANNEL,
)

logger = logging.getLogger(__name__)


class RegistryClient:
    """Talks to a registry over the bus.

    Args:
        bus: The bus the registry is listening on.

    Example:
        >>> client = RegistryClient(bus)
        >>> client.register("svc.a")
        >>> client.search(r"svc\\..*")
        {'svc.a': 1700000000000}
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._subscriptions: list[Callable[[Message], Any]] = []

    def register(self, address: str) -> None:
        """Announce *address*. Fire-and-forget."""
        self._bus.send(REGISTER_CHANNEL, address)

    def get(self, addresses: Optional[Iterable[str]] = None) -> dict[str, int]:
        """Fresh entries, optionally restricted to *addresses*."""
        body = list(addresses) if addresses is not None else None
        return self._bus.request(GET_CHANNEL, body) or {}

    def search(self, pattern: str) -> dict[str, int]:
        """Fresh entries whose whole address matches *pattern*.

        Raises:
            ReplyFailure: If the registry rejected the pattern.
        """
        return self._bus.request(SEARCH_CHANNEL, pattern) or {}

    def fresh(self, address: str) -> bool:
        """Whether *address* is currently registered and fresh."""
        return address in self.get()

    def on_expired(self, callback: Callable[[str], Any]) -> None:
        """Call *callback* with each evicted address."""
        self._listen(EXPIRED_CHANNEL, callback)

    def on_ping(self, callback: Callable[[int], Any]) -> None:
        """Call *callback* with each heartbeat timestamp."""
        self._listen(PING_CHANNEL, callback)

    def close(self) -> None:
        """Drop every subscription made through this client."""
        for handler in self._subscriptions:
            self._bus.unsubscribe(handler)
        self._subscriptions = []

    def _listen(self, channel: str, callback: Callable[[Any], Any]) -> None:
        def handler(message: Message) -> None:
            callback(message.body)

        self._bus.subscribe(channel, handler)
        self._subscriptions.append(handler)
        logger.debug("Listening on %s", channel)
