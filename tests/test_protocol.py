"""Unit Tests for the wire protocol"""
import json

import pytest

from statehub.errors import ProtocolError
from statehub.protocol import INIT_STATE, STATE, decode, encode, parse_state


class TestEncode:

    def test_envelope_shape(self):
        frame = encode(STATE, {"name": "count", "action": "set", "args": [1]})
        assert json.loads(frame) == {
            "type": "state",
            "data": {"name": "count", "action": "set", "args": [1]},
        }

    def test_init_state_payload_is_mapping(self):
        frame = encode(INIT_STATE, {"count": 0, "theme": "dark"})
        assert json.loads(frame)["data"] == {"count": 0, "theme": "dark"}

    def test_unserializable_payload_raises(self):
        with pytest.raises(TypeError):
            encode(STATE, object())


class TestDecode:

    def test_valid_frame(self):
        envelope = decode('{"type": "state", "data": {"name": "count", "action": "set", "args": [2]}}')
        assert envelope.type == "state"
        assert envelope.data["args"] == [2]

    def test_data_defaults_to_none(self):
        assert decode('{"type": "ping"}').data is None

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2]",
        '{"data": {}}',
        '{"type": ""}',
    ])
    def test_malformed_frames(self, raw):
        with pytest.raises(ProtocolError):
            decode(raw)


class TestParseState:

    def test_args_default_to_empty(self):
        message = parse_state({"name": "count", "action": "reset"})
        assert message.args == []

    @pytest.mark.parametrize("data", [
        None,
        "count",
        {"name": "count"},
        {"action": "set", "args": [1]},
        {"name": "count", "action": "set", "args": "oops"},
    ])
    def test_invalid_payloads(self, data):
        with pytest.raises(ProtocolError):
            parse_state(data)
