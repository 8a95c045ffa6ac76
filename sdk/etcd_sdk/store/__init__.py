"""
Key-value store backends.

Provides the KvStore protocol and its implementations:
- EtcdStore: etcd v3 over the JSON gRPC gateway
- InMemoryStore: revisioned in-process store for tests
"""

from .base import (
    DeleteResponse,
    KeyValue,
    KvStore,
    PutResponse,
    create_store,
)
from .etcd import EtcdStore
from .memory import InMemoryStore

__all__ = [
    "KvStore",
    "KeyValue",
    "PutResponse",
    "DeleteResponse",
    "create_store",
    "EtcdStore",
    "InMemoryStore",
]
