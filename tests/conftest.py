"""
Shared pytest fixtures for etcd SDK tests.
"""

import pytest
import pytest_asyncio

from etcd_sdk import EtcdConfig, EtcdSdk, StoreBackend
from etcd_sdk import connection


@pytest.fixture(autouse=True)
def clean_registry():
    """Drop connections leaked by a test so tests stay independent."""
    yield
    connection._clients.clear()


@pytest.fixture
def memory_config():
    """Config selecting the in-memory store."""
    return EtcdConfig(backend=StoreBackend.MEMORY, endpoints=["memory://test"])


@pytest_asyncio.fixture
async def sdk(memory_config):
    """SDK handle rooted at /api7 over the in-memory store."""
    handle = EtcdSdk(memory_config, prefix="/api7")
    yield handle
    await handle.close()


@pytest.fixture
def store(sdk):
    """The in-memory store behind ``sdk``."""
    return sdk._store
