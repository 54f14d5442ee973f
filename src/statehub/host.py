"""
Bridge to the host process that embeds the hub.

A desktop shell (or any supervising process) reports version, headless mode
and update progress to the hub, and wants to hear back when observers change
the update channel or ask for an update. The bridge maps inbound host events
onto ordinary states and forwards selected state changes outward through a
post callable, as one more subscriber of the registry.

Host messages are dicts of the form {"event": <name>, "body": <payload>}.

Usage:
    register_host_states(registry)
    bridge = HostBridge(registry, post=channel.send)
    bridge.start()

    bridge.handle({"event": "version", "body": "1.4.2"})
    bridge.check_update()
"""

from typing import Any, Callable, Dict, Optional
import logging

from .state import StateChange, StateRegistry

logger = logging.getLogger(__name__)

VERSION = "version"
HEADLESS = "headless"
UPDATE_CHANNEL = "updateChannel"
UPDATE_STATUS = "updateStatus"

UPDATE_STATUS_EVENTS = ("update-available", "download-progress", "update-downloaded")

HostPost = Callable[[Dict[str, Any]], None]


def register_host_states(registry: StateRegistry) -> None:
    """Register the states the host bridge reads and writes."""
    registry.register(VERSION, "")
    registry.register(HEADLESS, "")
    registry.register(UPDATE_CHANNEL, None, durable=registry.store is not None)
    registry.register(UPDATE_STATUS, {})


class HostBridge:
    """
    Two-way adapter between host messages and host states.

    Args:
        registry: Registry holding the host states (see register_host_states)
        post: Callable delivering a message to the host. None means no host is
              attached and outbound messages are dropped.
    """

    def __init__(self, registry: StateRegistry, post: Optional[HostPost] = None):
        self.registry = registry
        self.post = post
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def connected(self) -> bool:
        return self.post is not None

    def start(self) -> None:
        """Start forwarding update channel changes to the host."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.registry.get(UPDATE_CHANNEL).subscribe(self._on_update_channel)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, message: Dict[str, Any]) -> bool:
        """
        Apply one inbound host message.

        Returns:
            True if the message changed a state, False if it was ignored
        """
        event = message.get("event")
        body = message.get("body")
        logger.debug(f"Host message: {event}")

        if event == VERSION:
            self.registry.get(VERSION).set(body)
        elif event == HEADLESS:
            self.registry.get(HEADLESS).set(body)
        elif event == UPDATE_CHANNEL:
            if not body:
                return False
            self.registry.get(UPDATE_CHANNEL).set(body)
        elif event in UPDATE_STATUS_EVENTS:
            self.registry.get(UPDATE_STATUS).set(dict(message))
        else:
            logger.info(f"Ignoring host event '{event}'")
            return False
        return True

    def install_update(self) -> bool:
        return self._post({"event": "installUpdate"})

    def check_update(self) -> bool:
        return self._post({"event": "checkUpdate"})

    def _on_update_channel(self, change: StateChange) -> None:
        self._post({"event": "setUpdateChannel", "body": change.value})

    def _post(self, message: Dict[str, Any]) -> bool:
        if self.post is None:
            logger.debug(f"No host attached, dropped '{message['event']}'")
            return False
        self.post(message)
        return True


__all__ = [
    "HostBridge",
    "register_host_states",
    "VERSION",
    "HEADLESS",
    "UPDATE_CHANNEL",
    "UPDATE_STATUS",
    "UPDATE_STATUS_EVENTS",
]
