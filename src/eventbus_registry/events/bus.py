"""
Event bus abstraction for the registry's request and broadcast channels.

Provides an in-process bus with glob-style channel matching. Three delivery
modes are supported: ``publish`` fans a message out to every matching
handler, ``send`` delivers to a single handler without waiting for an
answer, and ``request`` delivers to a single handler and returns its reply.
"""

from __future__ import annotations

import fnmatch
import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..exceptions import NoHandlersError, ReplyFailure

logger = logging.getLogger(__name__)

# Failure code used when a request handler raises instead of replying
FAILURE_HANDLER_ERROR = 500


@dataclass
class Message:
    """A message delivered to a bus handler."""

    channel: str
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    message_id: str = field(default_factory=lambda: f"msg-{time.monotonic_ns()}")
    _reply_handler: Optional[Callable[[Any], None]] = field(default=None, repr=False)
    _fail_handler: Optional[Callable[[int, str], None]] = field(default=None, repr=False)

    @property
    def expects_reply(self) -> bool:
        """Whether the sender is waiting for a reply."""
        return self._reply_handler is not None

    def reply(self, body: Any) -> None:
        """Answer a request. Ignored for publish/send messages."""
        if self._reply_handler is not None:
            self._reply_handler(body)

    def fail(self, code: int, text: str) -> None:
        """Answer a request with a failure. Ignored for publish/send messages."""
        if self._fail_handler is not None:
            self._fail_handler(code, text)


MessageHandler = Callable[[Message], Any]


class EventBus(ABC):
    """Abstract base class for event bus implementations."""

    @abstractmethod
    def publish(self, channel: str, body: Any = None) -> int:
        """Deliver a message to every handler matching *channel*.

        Returns:
            Number of handlers the message was delivered to.
        """

    @abstractmethod
    def send(self, channel: str, body: Any = None) -> None:
        """Deliver a message to one matching handler, fire-and-forget.

        Raises:
            NoHandlersError: If nothing is subscribed to *channel*.
        """

    @abstractmethod
    def request(self, channel: str, body: Any = None) -> Any:
        """Deliver a message to one matching handler and return its reply.

        Raises:
            NoHandlersError: If nothing is subscribed to *channel*.
            ReplyFailure: If the handler failed the message or raised.
        """

    @abstractmethod
    def subscribe(self, pattern: str, handler: MessageHandler) -> None:
        """Subscribe a handler to channels matching a glob-style pattern.

        Args:
            pattern: Glob-style pattern (e.g., ``eventbus.registry.*``, ``*``).
            handler: Callable invoked with the matching Message.
        """

    @abstractmethod
    def unsubscribe(self, handler: MessageHandler) -> None:
        """Remove a handler from all subscriptions."""


class InMemoryEventBus(EventBus):
    """Synchronous in-process event bus with glob-style pattern matching.

    Handlers run on the caller's thread. Point-to-point delivery rotates
    across the matching handlers.
    """

    def __init__(self) -> None:
        self._subscriptions: list[tuple[str, MessageHandler]] = []
        self._lock = threading.Lock()
        self._counter = itertools.count()

    def _matching(self, channel: str) -> list[MessageHandler]:
        with self._lock:
            subscriptions = list(self._subscriptions)
        return [h for p, h in subscriptions if fnmatch.fnmatchcase(channel, p)]

    def _pick(self, channel: str) -> MessageHandler:
        handlers = self._matching(channel)
        if not handlers:
            raise NoHandlersError(channel)
        return handlers[next(self._counter) % len(handlers)]

    def publish(self, channel: str, body: Any = None) -> int:
        handlers = self._matching(channel)
        for handler in handlers:
            try:
                handler(Message(channel=channel, body=body))
            except Exception:
                logger.exception("Handler %r failed for %s", handler, channel)
        return len(handlers)

    def send(self, channel: str, body: Any = None) -> None:
        handler = self._pick(channel)
        try:
            handler(Message(channel=channel, body=body))
        except Exception:
            logger.exception("Handler %r failed for %s", handler, channel)

    def request(self, channel: str, body: Any = None) -> Any:
        handler = self._pick(channel)
        # First answer wins; later reply/fail calls are ignored
        outcome: list[tuple[bool, Any]] = []

        def on_reply(reply_body: Any) -> None:
            if not outcome:
                outcome.append((True, reply_body))

        def on_fail(code: int, text: str) -> None:
            if not outcome:
                outcome.append((False, ReplyFailure(code, text)))

        message = Message(
            channel=channel,
            body=body,
            _reply_handler=on_reply,
            _fail_handler=on_fail,
        )
        try:
            handler(message)
        except Exception as exc:
            logger.exception("Request handler %r failed for %s", handler, channel)
            raise ReplyFailure(FAILURE_HANDLER_ERROR, str(exc)) from exc

        if not outcome:
            return None
        ok, value = outcome[0]
        if not ok:
            raise value
        return value

    def subscribe(self, pattern: str, handler: MessageHandler) -> None:
        with self._lock:
            self._subscriptions.append((pattern, handler))

    def unsubscribe(self, handler: MessageHandler) -> None:
        with self._lock:
            self._subscriptions = [
                (p, h) for p, h in self._subscriptions if h is not handler
            ]

    def handler_count(self, channel: Optional[str] = None) -> int:
        """Number of subscriptions, optionally only those matching *channel*."""
        if channel is None:
            with self._lock:
                return len(self._subscriptions)
        return len(self._matching(channel))
