"""
statehub - real-time state synchronization between one hub and many observers.

Named values live in a StateRegistry on the hub. Observers connect over a
WebSocket, receive a full snapshot, request mutations, and receive every
applied mutation except the ones they sent themselves.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .errors import (
    StateHubError,
    ConfigError,
    DuplicateNameError,
    DispatchError,
    UnknownStateError,
    UnknownActionError,
    HandlerError,
    StoreError,
    StoreWriteError,
    ProtocolError,
)
from .persistence import DurableStore, JsonFileStore, MemoryStore
from .state import State, StateChange, StateRegistry
from .relay import Connection, SyncRelay
from .host import HostBridge, register_host_states
from .config import HubConfig
from .server import Hub, create_app, run

__all__ = [
    "State",
    "StateChange",
    "StateRegistry",
    "SyncRelay",
    "Connection",
    "DurableStore",
    "JsonFileStore",
    "MemoryStore",
    "HostBridge",
    "register_host_states",
    "HubConfig",
    "Hub",
    "create_app",
    "run",
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
