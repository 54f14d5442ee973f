"""
Named values and the registry that dispatches actions to them.

A State is a single named value with a table of permitted actions. Every
action runs synchronously, produces the new value, writes it through to the
durable store (for durable states) and notifies subscribers with a
StateChange. The registry owns every State of one hub and forwards all of
their changes to registry-wide subscribers such as the sync relay.

Usage:
    registry = StateRegistry(store=JsonFileStore(path))
    count = registry.register('count', 0, actions={'add': lambda v, n: v + n})
    theme = registry.register('theme', 'dark', durable=True)

    registry.subscribe(lambda change: print(change.name, change.args))
    count.call('add', [2])
    registry.dispatch('theme', 'set', ['light'], origin='conn-1')
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence
import logging

from .errors import (
    ConfigError,
    DuplicateNameError,
    HandlerError,
    StoreWriteError,
    UnknownActionError,
    UnknownStateError,
)
from .persistence import DurableStore

logger = logging.getLogger(__name__)

# handler(current_value, *args) -> new_value
ActionHandler = Callable[..., Any]


@dataclass(frozen=True)
class StateChange:
    """Notification emitted after an action has been applied."""
    name: str
    action: str
    args: List[Any] = field(default_factory=list)
    value: Any = None
    origin: Optional[str] = None  # connection id for remote actions, None for local ones

    def to_message(self) -> Dict[str, Any]:
        """Wire payload of a 'state' message. Value and origin stay hub-side."""
        return {"name": self.name, "action": self.action, "args": list(self.args)}


Subscriber = Callable[[StateChange], None]


def _set_value(_current: Any, value: Any) -> Any:
    return value


def _validate_actions(name: str, actions: Optional[Dict[str, ActionHandler]]) -> Dict[str, ActionHandler]:
    table: Dict[str, ActionHandler] = {"set": _set_value}
    for action, handler in (actions or {}).items():
        if not isinstance(action, str) or not action:
            raise ConfigError(f"State '{name}' has an invalid action name: {action!r}")
        if not callable(handler):
            raise ConfigError(f"Action '{action}' of state '{name}' is not callable")
        table[action] = handler
    return table


class State:
    """
    A single named, observable value.

    Args:
        name: Unique name of the value within its registry
        initial: Value used when nothing has been persisted yet
        actions: Mapping of action name -> handler(current, *args) -> new value.
                 A 'set' action that replaces the value is always available.
        durable: Write every change through to store and restore from it
        store: Durable store, required when durable is True

    Raises:
        ConfigError: If an action handler is invalid or a durable state has no store
    """

    def __init__(
        self,
        name: str,
        initial: Any = None,
        actions: Optional[Dict[str, ActionHandler]] = None,
        durable: bool = False,
        store: Optional[DurableStore] = None,
    ):
        if durable and store is None:
            raise ConfigError(f"Durable state '{name}' needs a durable store")

        self._name = name
        self._durable = durable
        self._store = store if durable else None
        self._actions = _validate_actions(name, actions)
        self._subscribers: List[Subscriber] = []
        self._origin: Optional[str] = None

        self._value = initial
        if self._store is not None and name in self._store:
            self._value = self._store.get(name)
            logger.debug(f"Restored durable state '{name}' from store")

    @property
    def name(self) -> str:
        return self._name

    @property
    def value(self) -> Any:
        return self._value

    @property
    def durable(self) -> bool:
        return self._durable

    @property
    def actions(self) -> List[str]:
        return list(self._actions.keys())

    @property
    def origin(self) -> Optional[str]:
        """Connection id behind the action currently running, if it came from a connection."""
        return self._origin

    @contextmanager
    def marked_origin(self, connection_id: Optional[str]) -> Iterator[None]:
        """
        Mark connection_id as the origin for the duration of the block.

        The marker is always cleared on exit, including when the block raises.
        A None connection_id leaves the marker untouched.
        """
        if connection_id is None:
            yield
            return

        previous = self._origin
        self._origin = connection_id
        try:
            yield
        finally:
            self._origin = previous

    def set(self, value: Any) -> StateChange:
        """Replace the value. Shorthand for call('set', [value])."""
        return self.call("set", [value])

    def call(self, action: str, args: Optional[Sequence[Any]] = None, origin: Optional[str] = None) -> StateChange:
        """
        Run an action and notify subscribers.

        Args:
            action: Name of the action to run
            args: Positional arguments passed to the handler after the current value
            origin: Connection id the action came from, None for local calls

        Returns:
            The StateChange delivered to subscribers

        Raises:
            UnknownActionError: If the action is not in this state's table
            HandlerError: If the handler raises. The value is left unchanged
                          and no notification is sent.
        """
        handler = self._actions.get(action)
        if handler is None:
            raise UnknownActionError(self._name, action)

        args = list(args or [])
        with self.marked_origin(origin):
            try:
                new_value = handler(self._value, *args)
            except Exception as e:
                raise HandlerError(self._name, action, e) from e

            self._value = new_value
            self._persist(new_value)

            change = StateChange(name=self._name, action=action, args=args, value=new_value, origin=origin)
            self._notify(change)

        return change

    def _persist(self, value: Any) -> None:
        if self._store is None:
            return
        try:
            self._store.set(self._name, value)
        except StoreWriteError as e:
            # In-memory value stays authoritative; observers still get the change
            logger.error(f"Durable write failed for state '{self._name}': {e}")

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for every later change of this state.

        Callbacks run in subscription order. Returns a function that removes
        the callback again.
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, change: StateChange) -> None:
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Error in subscriber for state '{self._name}': {e}", exc_info=True)

    def __repr__(self) -> str:
        flag = ", durable" if self._durable else ""
        return f"State({self._name!r}, {self._value!r}{flag})"


class StateRegistry:
    """
    All named values of one hub, addressed by name.

    Registry-wide subscribers receive changes from every state, including
    states registered after they subscribed.

    Args:
        store: Durable store handed to states registered with durable=True
    """

    def __init__(self, store: Optional[DurableStore] = None):
        self.store = store
        self._states: Dict[str, State] = {}
        self._subscribers: List[Subscriber] = []

    def register(
        self,
        name: str,
        initial: Any = None,
        actions: Optional[Dict[str, ActionHandler]] = None,
        durable: bool = False,
    ) -> State:
        """
        Create and register a new state.

        Raises:
            DuplicateNameError: If name is already registered
            ConfigError: If the actions are invalid, or durable without a store
        """
        if name in self._states:
            raise DuplicateNameError(name)

        state = State(name, initial, actions=actions, durable=durable, store=self.store)
        state.subscribe(self._publish)
        self._states[name] = state

        logger.debug(f"Registered state '{name}' (durable={durable}, actions={state.actions})")
        return state

    def get(self, name: str) -> State:
        """Return the state registered under name, or raise UnknownStateError."""
        state = self._states.get(name)
        if state is None:
            raise UnknownStateError(name)
        return state

    def names(self) -> List[str]:
        return list(self._states.keys())

    def dispatch(
        self,
        name: str,
        action: str,
        args: Optional[Sequence[Any]] = None,
        origin: Optional[str] = None,
    ) -> StateChange:
        """
        Route an action to the named state.

        When origin is given the state carries it as its origin marker while the
        handler runs, and the resulting StateChange names it so the relay can
        skip that connection. The marker is cleared even if the handler fails.

        Raises:
            UnknownStateError: If no state is registered under name
            UnknownActionError: If the state has no such action
            HandlerError: If the handler raised
        """
        return self.get(name).call(action, args, origin=origin)

    def snapshot(self) -> Dict[str, Any]:
        """Current value of every registered state."""
        return {name: state.value for name, state in self._states.items()}

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for changes of every state. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _publish(self, change: StateChange) -> None:
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Error in registry subscriber for '{change.name}': {e}", exc_info=True)

    def __contains__(self, name: object) -> bool:
        return name in self._states

    def __iter__(self) -> Iterator[State]:
        return iter(list(self._states.values()))

    def __len__(self) -> int:
        return len(self._states)


__all__ = ["State", "StateChange", "StateRegistry", "ActionHandler", "Subscriber"]
