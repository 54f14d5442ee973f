"""Unit Tests for HostBridge

Tests: inbound host events mapped onto host states, update channel
forwarding, update requests, behaviour without a host
"""
from unittest.mock import Mock

import pytest

from statehub.host import HostBridge, register_host_states
from statehub.persistence import MemoryStore
from statehub.state import StateRegistry


@pytest.fixture
def host_registry():
    registry = StateRegistry(store=MemoryStore())
    register_host_states(registry)
    return registry


@pytest.fixture
def post():
    return Mock()


@pytest.fixture
def bridge(host_registry, post):
    bridge = HostBridge(host_registry, post=post)
    bridge.start()
    return bridge


class TestHostStates:

    def test_registered_defaults(self, host_registry):
        assert host_registry.snapshot() == {
            "version": "",
            "headless": "",
            "updateChannel": None,
            "updateStatus": {},
        }

    def test_update_channel_durable_with_store(self, host_registry):
        assert host_registry.get("updateChannel").durable is True
        assert host_registry.get("version").durable is False

    def test_update_channel_not_durable_without_store(self):
        registry = StateRegistry()
        register_host_states(registry)
        assert registry.get("updateChannel").durable is False


class TestInboundEvents:

    def test_version_and_headless(self, bridge, host_registry):
        assert bridge.handle({"event": "version", "body": "1.4.2"}) is True
        assert bridge.handle({"event": "headless", "body": "true"}) is True

        assert host_registry.get("version").value == "1.4.2"
        assert host_registry.get("headless").value == "true"

    def test_update_channel_requires_body(self, bridge, host_registry):
        assert bridge.handle({"event": "updateChannel", "body": ""}) is False
        assert host_registry.get("updateChannel").value is None

        assert bridge.handle({"event": "updateChannel", "body": "beta"}) is True
        assert host_registry.get("updateChannel").value == "beta"

    @pytest.mark.parametrize("event", ["update-available", "download-progress", "update-downloaded"])
    def test_update_status_events_store_whole_message(self, bridge, host_registry, event):
        message = {"event": event, "body": {"percent": 40}}

        bridge.handle(message)

        assert host_registry.get("updateStatus").value == message

    def test_unknown_event_ignored(self, bridge, host_registry):
        before = host_registry.snapshot()
        assert bridge.handle({"event": "reboot"}) is False
        assert host_registry.snapshot() == before


class TestOutboundMessages:

    def test_update_channel_change_posted(self, bridge, host_registry, post):
        host_registry.dispatch("updateChannel", "set", ["alpha"], origin="conn-1")
        post.assert_called_once_with({"event": "setUpdateChannel", "body": "alpha"})

    def test_other_states_not_posted(self, bridge, host_registry, post):
        host_registry.get("version").set("2.0.0")
        post.assert_not_called()

    def test_install_and_check_update(self, bridge, post):
        assert bridge.install_update() is True
        assert bridge.check_update() is True
        assert [c.args[0] for c in post.call_args_list] == [
            {"event": "installUpdate"},
            {"event": "checkUpdate"},
        ]

    def test_stop_stops_forwarding(self, bridge, host_registry, post):
        bridge.stop()
        host_registry.get("updateChannel").set("beta")
        post.assert_not_called()

    def test_without_host_posts_are_dropped(self, host_registry):
        bridge = HostBridge(host_registry)
        bridge.start()

        assert bridge.connected is False
        assert bridge.check_update() is False
        host_registry.get("updateChannel").set("beta")
