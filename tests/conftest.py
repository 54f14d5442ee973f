"""Pytest fixtures for statehub tests"""
import pytest

from statehub.config import HubConfig
from statehub.persistence import JsonFileStore, MemoryStore
from statehub.relay import SyncRelay
from statehub.state import StateRegistry

_ENV_VARS = (
    "PORT",
    "STATEHUB_HOST",
    "STATEHUB_DATA_DIR",
    "CERT_PATH",
    "KEY_PATH",
    "DISABLE_HTTPS",
    "STATEHUB_STATIC_DIR",
    "STATEHUB_CORS_ORIGINS",
    "STATEHUB_ERROR_BROADCAST",
    "STATEHUB_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch):
    """Keep the developer's environment out of config resolution."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry(store):
    """Registry with the count/theme pair used across tests."""
    registry = StateRegistry(store=store)
    registry.register("count", 0, actions={
        "add": lambda value, n: value + n,
        "boom": lambda value: 1 / 0,
    })
    registry.register("theme", "dark", durable=True)
    return registry


@pytest.fixture
def relay(registry):
    relay = SyncRelay(registry)
    relay.attach()
    return relay


@pytest.fixture
def hub_config(tmp_path):
    return HubConfig(data_dir=tmp_path / "hub")


@pytest.fixture
def file_store(tmp_path):
    return JsonFileStore(tmp_path / "store.json")
