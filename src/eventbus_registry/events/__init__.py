"""In-process event bus used to host and drive the registry."""

from .bus import (
    FAILURE_HANDLER_ERROR,
    EventBus,
    InMemoryEventBus,
    Message,
    MessageHandler,
)

__all__ = [
    "EventBus",
    "InMemoryEventBus",
    "Message",
    "MessageHandler",
    "FAILURE_HANDLER_ERROR",
]
