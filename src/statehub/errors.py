"""
Error hierarchy for statehub.

All statehub-specific errors inherit from StateHubError so callers at the
relay and HTTP boundaries can catch them in one place.
"""

from typing import Any, Optional


class StateHubError(Exception):
    """Base error for all statehub operations."""


class ConfigError(StateHubError):
    """Invalid or missing configuration."""


class DuplicateNameError(StateHubError):
    """A state with this name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"State '{name}' is already registered")


class DispatchError(StateHubError):
    """An action could not be routed to a state."""


class UnknownStateError(DispatchError):
    """No state is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown state '{name}'")


class UnknownActionError(DispatchError):
    """The state exists but has no such action."""

    def __init__(self, name: str, action: str):
        self.name = name
        self.action = action
        super().__init__(f"Unknown action '{action}' for state '{name}'")


class HandlerError(StateHubError):
    """An action handler raised while running.

    The original exception is kept as ``__cause__`` and on ``original``.
    """

    def __init__(self, name: str, action: str, original: BaseException):
        self.name = name
        self.action = action
        self.original = original
        super().__init__(f"Action '{action}' on state '{name}' failed: {original}")


class StoreError(StateHubError):
    """Base error for durable store operations."""


class StoreWriteError(StoreError):
    """Writing a key to the durable store failed."""

    def __init__(self, key: str, reason: Optional[Any] = None):
        self.key = key
        super().__init__(f"Failed to write '{key}' to store: {reason}")


class ProtocolError(StateHubError):
    """Inbound message could not be decoded."""


__all__ = [
    "StateHubError",
    "ConfigError",
    "DuplicateNameError",
    "DispatchError",
    "UnknownStateError",
    "UnknownActionError",
    "HandlerError",
    "StoreError",
    "StoreWriteError",
    "ProtocolError",
]
