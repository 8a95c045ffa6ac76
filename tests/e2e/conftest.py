"""
E2E test fixtures for the etcd SDK.

These tests require a running etcd member. Point them at it with
ETCD_ENDPOINTS (defaults to http://127.0.0.1:2379), e.g.:

    docker run -d -p 2379:2379 quay.io/coreos/etcd:v3.5.12 \\
        etcd --advertise-client-urls http://0.0.0.0:2379 \\
             --listen-client-urls http://0.0.0.0:2379
"""

import uuid

import pytest
import pytest_asyncio

from etcd_sdk import EtcdConfig, EtcdSdk


@pytest.fixture
def etcd_config():
    """Config for the etcd under test, read from ETCD_* variables."""
    return EtcdConfig(request_timeout=5.0)


@pytest_asyncio.fixture
async def etcd_sdk(etcd_config):
    """SDK handle rooted at a unique prefix so runs do not collide."""
    handle = EtcdSdk(etcd_config, prefix=f"/etcd-sdk-e2e/{uuid.uuid4().hex}")
    yield handle
    await handle.close()
