# Copyright (c) EventBus Registry Contributors. All rights reserved.
# Licensed under the MIT License.
"""Centralized exception hierarchy for the EventBus registry.

All registry exceptions inherit from RegistryError, so hosts can catch
every failure raised by this package with a single clause.
"""


class RegistryError(Exception):
    """Base exception for all EventBus registry errors."""


class ConfigError(RegistryError):
    """Registry configuration could not be loaded or validated."""


class InvalidPatternError(RegistryError):
    """A search pattern is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid search pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class DuplicateRegistrationError(RegistryError):
    """A managed object with the same name is already on the console."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} is already registered with the management console")
        self.name = name


class BusError(RegistryError):
    """Errors raised by event bus delivery."""


class NoHandlersError(BusError):
    """Raised when a point-to-point message has no subscriber."""

    def __init__(self, channel: str) -> None:
        super().__init__(f"No handlers registered for {channel}")
        self.channel = channel


class ReplyFailure(BusError):
    """A request handler failed the message instead of replying."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message


__all__ = [
    "RegistryError",
    "ConfigError",
    "InvalidPatternError",
    "DuplicateRegistrationError",
    "BusError",
    "NoHandlersError",
    "ReplyFailure",
]
