"""
EventBus Registry - liveness tracking for addresses on a shared bus

Endpoints announce themselves; the registry tracks when each address was
last seen, answers freshness-filtered lookups and pattern searches, evicts
stale addresses and broadcasts a heartbeat.

Version: 1.0.0
"""

__version__ = "1.0.0"

from .client import RegistryClient
from .config import RegistryConfig, build_config, load_config
from .events import EventBus, InMemoryEventBus, Message
from .exceptions import (
    BusError,
    ConfigError,
    DuplicateRegistrationError,
    InvalidPatternError,
    NoHandlersError,
    RegistryError,
    ReplyFailure,
)
from .observability import ManagementConsole, RegistryStats, default_console
from .registry import (
    EXPIRED_CHANNEL,
    GET_CHANNEL,
    PING_CHANNEL,
    REGISTER_CHANNEL,
    SEARCH_CHANNEL,
    Registry,
)
from .store import AddressStore, current_millis

__all__ = [
    "__version__",
    # Core
    "Registry",
    "RegistryConfig",
    "AddressStore",
    "RegistryClient",
    "build_config",
    "load_config",
    "current_millis",
    # Channels
    "REGISTER_CHANNEL",
    "GET_CHANNEL",
    "SEARCH_CHANNEL",
    "PING_CHANNEL",
    "EXPIRED_CHANNEL",
    # Bus
    "EventBus",
    "InMemoryEventBus",
    "Message",
    # Management
    "ManagementConsole",
    "RegistryStats",
    "default_console",
    # Exceptions
    "RegistryError",
    "ConfigError",
    "InvalidPatternError",
    "DuplicateRegistrationError",
    "BusError",
    "NoHandlersError",
    "ReplyFailure",
]
