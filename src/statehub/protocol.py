"""
Wire protocol between the hub and its connections.

Every frame is a JSON text message with the envelope:

    {"type": "<message type>", "data": <payload>}

Message types:
- state      client -> hub: {name, action, args} request a mutation
             hub -> client: {name, action, args} applied mutation (never sent to its origin)
- initState  hub -> client: {name: value, ...} full snapshot, first message on connect
- error      hub -> client: string describing a failed action
"""

from typing import Any, List
import json

from pydantic import BaseModel, Field, ValidationError

from .errors import ProtocolError

STATE = "state"
INIT_STATE = "initState"
ERROR = "error"


class Envelope(BaseModel):
    """Outer frame of every message."""
    type: str = Field(..., min_length=1, description="Message type")
    data: Any = Field(default=None, description="Type-specific payload")


class StateMessage(BaseModel):
    """Payload of a 'state' message in either direction."""
    name: str = Field(..., description="Name of the target state")
    action: str = Field(..., description="Action to run on the state")
    args: List[Any] = Field(default_factory=list, description="Positional action arguments")


def encode(message_type: str, data: Any = None) -> str:
    """Serialize a message to its JSON text frame."""
    return json.dumps({"type": message_type, "data": data})


def decode(raw: str) -> Envelope:
    """
    Parse a JSON text frame into an Envelope.

    Raises:
        ProtocolError: If the frame is not JSON or has no usable type
    """
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as e:
        raise ProtocolError(f"Malformed message: {e.errors()[0].get('msg', e)}") from e


def parse_state(data: Any) -> StateMessage:
    """
    Validate the payload of an inbound 'state' message.

    Raises:
        ProtocolError: If name/action are missing or args is not a list
    """
    try:
        return StateMessage.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Malformed state message: {e.errors()[0].get('msg', e)}") from e


__all__ = [
    "STATE",
    "INIT_STATE",
    "ERROR",
    "Envelope",
    "StateMessage",
    "encode",
    "decode",
    "parse_state",
]
