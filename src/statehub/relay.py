"""
Sync relay between a StateRegistry and its live connections.

The relay is a permanent registry subscriber. Every applied change is sent as
a 'state' message to all connections except the one the change came from,
and every inbound 'state' message is dispatched to the registry with the
sending connection as origin.

Each connection owns an outbound asyncio.Queue of encoded frames. send()
only enqueues, so notification stays synchronous and keeps the order in which
actions were applied; the transport drains the queue through stream().
Calls made off the event loop thread are handed to the loop with
call_soon_threadsafe. A connection whose queue overflows is evicted: its
stream ends and the transport closes it, so the observer reconnects and
receives a fresh initState.

Usage:
    relay = SyncRelay(registry)
    relay.attach()

    conn = relay.connect()           # conn.queue now holds the initState frame
    relay.handle_message(conn, raw)  # inbound text frame
    async for frame in relay.stream(conn):
        await websocket.send_text(frame)
    relay.disconnect(conn)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from .errors import ConfigError, DispatchError, HandlerError, ProtocolError
from .protocol import ERROR, INIT_STATE, STATE, decode, encode, parse_state
from .state import StateChange, StateRegistry

logger = logging.getLogger(__name__)

ERROR_BROADCAST_ALL = "all"
ERROR_BROADCAST_ORIGIN = "origin"
ERROR_BROADCAST_MODES = (ERROR_BROADCAST_ALL, ERROR_BROADCAST_ORIGIN)

DEFAULT_QUEUE_SIZE = 1000


def _new_connection_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class Connection:
    """One connected observer and its outbound frame queue."""
    id: str = field(default_factory=_new_connection_id)
    queue: "asyncio.Queue[str]" = field(default_factory=lambda: asyncio.Queue(maxsize=DEFAULT_QUEUE_SIZE))
    connected_at: datetime = field(default_factory=datetime.now)
    evicted: bool = False

    def drain(self) -> List[str]:
        """Pop every queued frame without waiting."""
        frames = []
        while True:
            try:
                frames.append(self.queue.get_nowait())
            except asyncio.QueueEmpty:
                return frames


class SyncRelay:
    """
    Bridges registry changes to and from many connections.

    Args:
        registry: The registry whose states are synchronized
        error_broadcast: Who receives 'error' messages for failed actions:
                         'all' connections (default) or only the 'origin'

    Raises:
        ConfigError: If error_broadcast is not a known mode
    """

    def __init__(self, registry: StateRegistry, error_broadcast: str = ERROR_BROADCAST_ALL):
        if error_broadcast not in ERROR_BROADCAST_MODES:
            raise ConfigError(
                f"error_broadcast must be one of {', '.join(ERROR_BROADCAST_MODES)}, got {error_broadcast!r}"
            )
        self.registry = registry
        self.error_broadcast = error_broadcast
        self._connections: Dict[str, Connection] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def attach(self) -> None:
        """Subscribe to the registry. Calling it again has no effect."""
        if self._unsubscribe is None:
            self._unsubscribe = self.registry.subscribe(self._on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def connect(self, connection: Optional[Connection] = None) -> Connection:
        """
        Add a connection and queue its initState snapshot.

        No other connection is told about the new one.
        """
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass

        connection = connection or Connection()
        self._connections[connection.id] = connection
        self.send(INIT_STATE, self.registry.snapshot(), to=connection.id)
        logger.info(f"Connection {connection.id} opened ({self.connection_count} connected)")
        return connection

    def disconnect(self, connection: Connection) -> bool:
        """Remove a connection. Returns False if it was not connected."""
        removed = self._connections.pop(connection.id, None) is not None
        if removed:
            logger.info(f"Connection {connection.id} closed ({self.connection_count} connected)")
        return removed

    def handle_message(self, connection: Connection, raw: str) -> None:
        """
        Process one inbound text frame from connection.

        Failures are contained here: malformed frames and unknown names or
        actions are logged and dropped, handler errors produce an 'error'
        message. The connection is never closed because of its message.
        """
        try:
            envelope = decode(raw)
        except ProtocolError as e:
            logger.warning(f"Dropped frame from {connection.id}: {e}")
            return

        if envelope.type != STATE:
            logger.warning(f"Dropped message of unknown type '{envelope.type}' from {connection.id}")
            return

        try:
            message = parse_state(envelope.data)
        except ProtocolError as e:
            logger.warning(f"Dropped state message from {connection.id}: {e}")
            return

        try:
            self.registry.dispatch(message.name, message.action, message.args, origin=connection.id)
        except DispatchError as e:
            logger.warning(f"Dropped state message from {connection.id}: {e}")
        except HandlerError as e:
            logger.error(f"Action from {connection.id} failed: {e}", exc_info=e.original)
            self.broadcast_error(str(e), origin=connection.id)

    def broadcast_error(self, message: str, origin: Optional[str] = None) -> int:
        """
        Send an 'error' message according to the error broadcast policy.

        With the 'origin' policy and a known origin only that connection is
        told; otherwise every connection is.
        """
        if self.error_broadcast == ERROR_BROADCAST_ORIGIN and origin is not None:
            return self.send(ERROR, message, to=origin)
        return self.send(ERROR, message)

    def send(self, message_type: str, payload: Any = None, to: Optional[str] = None, skip: Optional[str] = None) -> int:
        """
        Queue a message for delivery.

        Args:
            message_type: Envelope type
            payload: Envelope data
            to: Only deliver to this connection id
            skip: Deliver to every connection except this id

        Returns:
            Number of connections the message was queued for. Off the event
            loop thread, the number it was handed to the loop for.

        Raises:
            ValueError: If both to and skip are given
        """
        if to is not None and skip is not None:
            raise ValueError("send() accepts either 'to' or 'skip', not both")

        frame = encode(message_type, payload)

        if to is not None:
            target = self._connections.get(to)
            targets = [target] if target is not None else []
        else:
            targets = [conn for conn in self._connections.values() if conn.id != skip]

        loop = None if self._on_loop() else self._loop
        count = 0
        for conn in targets:
            if loop is not None:
                try:
                    loop.call_soon_threadsafe(self._deliver, conn, frame, message_type)
                    count += 1
                except RuntimeError:
                    logger.warning(f"Event loop closed, dropped '{message_type}' message for {conn.id}")
            elif self._deliver(conn, frame, message_type):
                count += 1

        logger.debug(f"Queued '{message_type}' for {count} connection(s)")
        return count

    def _on_loop(self) -> bool:
        """True when the caller may touch connection queues directly."""
        if self._loop is None or self._loop.is_closed():
            return True
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _deliver(self, connection: Connection, frame: str, message_type: str) -> bool:
        if connection.evicted:
            return False
        try:
            connection.queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            self._evict(connection, message_type)
            return False

    def _evict(self, connection: Connection, message_type: str) -> None:
        connection.evicted = True
        self._connections.pop(connection.id, None)
        logger.warning(
            f"Outbound queue full for {connection.id} on '{message_type}' message, "
            f"evicted ({self.connection_count} connected)"
        )

    def _on_change(self, change: StateChange) -> None:
        self.send(STATE, change.to_message(), skip=change.origin)

    async def stream(self, connection: Connection) -> AsyncIterator[str]:
        """
        Yield queued frames for connection as they arrive.

        Ends when the connection is evicted, dropping its backlog, and ends
        quietly when the consuming task is cancelled on disconnect.
        """
        try:
            while not connection.evicted:
                frame = await connection.queue.get()
                if connection.evicted:
                    return
                yield frame
        except (asyncio.CancelledError, GeneratorExit):
            return


__all__ = [
    "Connection",
    "SyncRelay",
    "ERROR_BROADCAST_ALL",
    "ERROR_BROADCAST_ORIGIN",
    "ERROR_BROADCAST_MODES",
]
