# Copyright (c) EventBus Registry Contributors. All rights reserved.
# Licensed under the MIT License.
"""
EventBus Registry

Liveness registry for addresses on a shared bus. Endpoints announce
themselves on the register channel; the registry records when each address
was last seen, answers freshness-filtered lookups and full-match pattern
searches, evicts stale addresses on a timer, and broadcasts a heartbeat.

Sweep removes stale entries with a compare-and-remove against the
timestamp it snapshotted, so an address refreshed between the snapshot and
the removal survives and no eviction notice is published for it.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from collections import Counter
from typing import Any, Callable, Iterable, Mapping, Optional

from .config import RegistryConfig
from .events import EventBus, Message
from .exceptions import DuplicateRegistrationError, InvalidPatternError
from .observability import ManagementConsole, RegistryStats, default_console
from .store import AddressStore, current_millis

logger = logging.getLogger(__name__)

# Bus channels
REGISTER_CHANNEL = "eventbus.registry.register"
GET_CHANNEL = "eventbus.registry.get"
SEARCH_CHANNEL = "eventbus.registry.search"
PING_CHANNEL = "eventbus.registry.ping"
EXPIRED_CHANNEL = "eventbus.registry.expired"

ALL_CHANNELS = [
    REGISTER_CHANNEL,
    GET_CHANNEL,
    SEARCH_CHANNEL,
    PING_CHANNEL,
    EXPIRED_CHANNEL,
]

# Failure code replied on the search channel for an unparsable pattern
FAILURE_INVALID_PATTERN = 400

Clock = Callable[[], int]


def compile_pattern(pattern: Any) -> "re.Pattern[str]":
    """Compile a search pattern.

    Raises:
        InvalidPatternError: If *pattern* is not a string or not a valid regex.
    """
    if not isinstance(pattern, str):
        raise InvalidPatternError(repr(pattern), "pattern must be a string")
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc


class Registry:
    """
    Address liveness registry bound to an event bus.

    Direct calls (``register``, ``lookup``, ``search``, ``sweep``, ``ping``,
    ``expire``) work without ``start()``; ``start()`` additionally wires the
    bus handlers, the periodic sweep and heartbeat tasks, and the management
    console registration. ``stop()`` undoes all three.

    Args:
        bus: Bus the registry listens and publishes on.
        config: Timing configuration. Defaults to ``RegistryConfig()``.
        store: Address store to use. A fresh one is created when omitted.
        clock: Millisecond clock, injectable for tests.
        console: Management console. Defaults to the process-wide console.
    """

    def __init__(
        self,
        bus: EventBus,
        config: Optional[RegistryConfig] = None,
        *,
        store: Optional[AddressStore] = None,
        clock: Clock = current_millis,
        console: Optional[ManagementConsole] = None,
    ):
        self._bus = bus
        self._config = config or RegistryConfig()
        self._store = store if store is not None else AddressStore()
        self._clock = clock
        self._console = console

        # Bound once so unsubscribe can match them by identity
        self._handlers = [
            (REGISTER_CHANNEL, self._on_register),
            (GET_CHANNEL, self._on_get),
            (SEARCH_CHANNEL, self._on_search),
        ]

        self._tasks: list[asyncio.Task] = []
        self._running = False
        self._management_attached = False

        self._counts: Counter[str] = Counter()
        self._counts_lock = threading.Lock()

    @property
    def config(self) -> RegistryConfig:
        return self._config

    @property
    def store(self) -> AddressStore:
        return self._store

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Register bus handlers, start the timers and attach to the console."""
        if self._running:
            return
        self._running = True

        for channel, handler in self._handlers:
            self._bus.subscribe(channel, handler)

        self._attach_management()

        if self._config.ping_enabled:
            self._tasks.append(
                asyncio.create_task(self._periodic("ping", self._config.ping, self.ping))
            )
        if self._config.sweep_enabled:
            self._tasks.append(
                asyncio.create_task(self._periodic("sweep", self._config.sweep, self.sweep))
            )

        logger.info(
            "EventBus registry started (expiration=%dms, ping=%dms, sweep=%dms)",
            self._config.expiration,
            self._config.ping,
            self._config.sweep,
        )

    async def stop(self) -> None:
        """Cancel the timers, release bus handlers and detach from the console."""
        if not self._running:
            return
        self._running = False

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        for _, handler in self._handlers:
            self._bus.unsubscribe(handler)

        if self._management_attached:
            self._management().unregister(self._config.management_name)
            self._management_attached = False

        logger.info("EventBus registry stopped")

    async def _periodic(self, name: str, interval_ms: int, tick: Callable[[], Any]) -> None:
        """Run *tick* every *interval_ms* until cancelled.

        A failing tick is logged and the schedule carries on.
        """
        interval = interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                tick()
            except Exception:
                logger.exception("Registry %s tick failed", name)

    def _management(self) -> ManagementConsole:
        if self._console is None:
            self._console = default_console()
        return self._console

    def _attach_management(self) -> None:
        name = self._config.management_name
        logger.debug("Attaching EventBus registry to the management console as %s", name)
        try:
            self._management().register(name, self)
        except DuplicateRegistrationError:
            logger.info(
                "EventBus registry %s has already been registered with the management "
                "console. To be expected with multiple registry instances",
                name,
            )
        else:
            self._management_attached = True

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, address: str) -> None:
        """Record that *address* was seen now, overwriting any prior value."""
        self._store.put(address, self._clock())
        self._count("registrations")
        logger.info("EventBus registered address: %s", address)

    def lookup(self, addresses: Optional[Iterable[str]] = None) -> dict[str, int]:
        """Return fresh entries, optionally restricted to *addresses*."""
        now = self._clock()
        entries = self._store.copy()
        if addresses is not None:
            wanted = set(addresses)
            entries = {a: ts for a, ts in entries.items() if a in wanted}
        return {a: ts for a, ts in entries.items() if self._is_fresh(ts, now)}

    def search(self, pattern: str) -> dict[str, int]:
        """Return fresh entries whose whole address matches *pattern*.

        Raises:
            InvalidPatternError: If *pattern* does not compile.
        """
        try:
            compiled = compile_pattern(pattern)
        except InvalidPatternError:
            self._count("rejected_patterns")
            raise
        return {
            address: ts
            for address, ts in self.lookup().items()
            if compiled.fullmatch(address)
        }

    def sweep(self) -> list[str]:
        """Evict every stale entry and publish one notice per removed address.

        Returns:
            Addresses removed by this pass.
        """
        if not self._config.expiration_enabled:
            return []

        now = self._clock()
        stale = [
            (address, ts)
            for address, ts in self._store.copy().items()
            if not self._is_fresh(ts, now)
        ]

        removed: list[str] = []
        for address, last_seen in stale:
            if self._store.remove_if(address, last_seen):
                removed.append(address)
            else:
                logger.debug("Skipping eviction of %s: refreshed during sweep", address)

        if removed:
            self._count("sweep_evictions", len(removed))
        for address in removed:
            logger.info("EventBus registry expired address: %s", address)
            self._notify_expired(address)

        logger.debug("Sweep removed %d of %d stale entries", len(removed), len(stale))
        return removed

    def ping(self) -> int:
        """Broadcast the current time on the ping channel."""
        now = self._clock()
        self._bus.publish(PING_CHANNEL, now)
        return now

    def expire(self, address: str) -> bool:
        """Explicitly evict *address*.

        Returns:
            True if the address was present and a notice was published.
        """
        removed = self._store.remove(address)
        if removed is None:
            return False
        self._count("explicit_evictions")
        logger.info("Explicit expiration for %s was %d", address, removed)
        self._notify_expired(address)
        return True

    def list_entries(self) -> Mapping[str, int]:
        """Read-only, point-in-time copy of the whole store."""
        return self._store.snapshot()

    def stats(self) -> RegistryStats:
        with self._counts_lock:
            return RegistryStats(
                registrations=self._counts["registrations"],
                sweep_evictions=self._counts["sweep_evictions"],
                explicit_evictions=self._counts["explicit_evictions"],
                rejected_patterns=self._counts["rejected_patterns"],
            )

    def _is_fresh(self, last_seen: Optional[int], now: int) -> bool:
        if not self._config.expiration_enabled:
            return True
        return last_seen is not None and now - last_seen < self._config.expiration

    def _notify_expired(self, address: str) -> None:
        # Called after the removal returned, outside the store lock
        try:
            self._bus.publish(EXPIRED_CHANNEL, address)
        except Exception:
            logger.exception("Failed to publish expiration of %s", address)

    def _count(self, key: str, amount: int = 1) -> None:
        with self._counts_lock:
            self._counts[key] += amount

    # ------------------------------------------------------------------
    # Bus handlers
    # ------------------------------------------------------------------

    def _on_register(self, message: Message) -> None:
        if not isinstance(message.body, str):
            logger.warning("Ignoring registration with non-string address: %r", message.body)
            return
        self.register(message.body)

    def _on_get(self, message: Message) -> None:
        addresses = message.body
        if isinstance(addresses, str):
            addresses = [addresses]
        message.reply(self.lookup(addresses))

    def _on_search(self, message: Message) -> None:
        try:
            results = self.search(message.body)
        except InvalidPatternError as exc:
            logger.warning("Rejected search: %s", exc)
            message.fail(FAILURE_INVALID_PATTERN, str(exc))
            return
        message.reply(results)
