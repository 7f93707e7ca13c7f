# Copyright (c) EventBus Registry Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Address Store

Thread-safe mapping from address to last-seen timestamp (milliseconds since
the epoch). Every mutation is atomic; readers work on copies so they never
iterate a structure that is being mutated.
"""

from __future__ import annotations

import threading
import time
from types import MappingProxyType
from typing import Iterator, Mapping, Optional


def current_millis() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class AddressStore:
    """Internally synchronized address -> last-seen mapping.

    Example:
        >>> store = AddressStore()
        >>> store.put("svc.a", 1000)
        >>> store.get("svc.a")
        1000
    """

    def __init__(self) -> None:
        self._entries: dict[str, int] = {}
        self._lock = threading.Lock()

    def put(self, address: str, last_seen: int) -> Optional[int]:
        """Set the timestamp for *address*, returning the previous one."""
        with self._lock:
            previous = self._entries.get(address)
            self._entries[address] = last_seen
            return previous

    def get(self, address: str) -> Optional[int]:
        with self._lock:
            return self._entries.get(address)

    def remove(self, address: str) -> Optional[int]:
        """Remove *address*, returning its timestamp or ``None`` if absent."""
        with self._lock:
            return self._entries.pop(address, None)

    def remove_if(self, address: str, expected: Optional[int]) -> bool:
        """Remove *address* only if its timestamp still equals *expected*.

        Returns:
            True if the entry was removed.
        """
        with self._lock:
            if address not in self._entries or self._entries[address] != expected:
                return False
            del self._entries[address]
            return True

    def copy(self) -> dict[str, int]:
        """Point-in-time copy as a plain dict owned by the caller."""
        with self._lock:
            return dict(self._entries)

    def snapshot(self) -> Mapping[str, int]:
        """Point-in-time, read-only copy of every entry."""
        return MappingProxyType(self.copy())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.copy())
