"""
Base protocol and types for the key-value store abstraction.

This module defines the KvStore protocol that all backends must implement,
along with the response types returned by the four store primitives.

Invariants:
    - Revisions are store-assigned and increase with every mutation
    - get/delete raise NotFoundError for absent keys
    - scan returns entries ordered by key

How to change safely:
    - Protocol changes require updating all implementations
    - Keep response types backend-neutral
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import EtcdConfig


@dataclass(frozen=True)
class KeyValue:
    """A stored entry.

    Attributes:
        key: Storage key
        value: Raw stored bytes
        revision: Store revision at the time of the read
        create_revision: Revision of the key's creation
        mod_revision: Revision of the key's last modification
        version: Number of writes since creation
    """

    key: str
    value: bytes
    revision: int
    create_revision: int = 0
    mod_revision: int = 0
    version: int = 0


@dataclass(frozen=True)
class PutResponse:
    """Result of a put.

    Attributes:
        revision: Store revision after the write
    """

    revision: int


@dataclass(frozen=True)
class DeleteResponse:
    """Result of a delete.

    Attributes:
        revision: Store revision after the delete
        deleted: Number of keys removed
    """

    revision: int
    deleted: int = 1


@runtime_checkable
class KvStore(Protocol):
    """Protocol for key-value store backends.

    Concurrency contract:
        - A single store instance is shared by every query of every SDK
          handle built from the same configuration
        - Implementations must be safe for concurrent coroutines

    Example:
        >>> store = create_store(EtcdConfig(endpoints=["http://127.0.0.1:2379"]))
        >>> resp = await store.put("/apisix/routes/1", b'{"uri":"/a"}')
        >>> kv = await store.get("/apisix/routes/1")
    """

    @abstractmethod
    async def get(self, key: str) -> KeyValue:
        """Read a single key.

        Raises:
            NotFoundError: If the key is absent
            StoreError: For store failures
        """
        ...

    @abstractmethod
    async def put(self, key: str, value: bytes) -> PutResponse:
        """Write a key unconditionally.

        Raises:
            StoreError: For store failures
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> DeleteResponse:
        """Delete a single key.

        Raises:
            NotFoundError: If nothing was deleted
            StoreError: For store failures
        """
        ...

    @abstractmethod
    async def scan(self, prefix: str) -> list[KeyValue]:
        """Return every entry whose key starts with ``prefix``, ordered by key.

        Raises:
            StoreError: For store failures
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the connection and any pooled resources."""
        ...

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """Whether close() has been called."""
        ...


def create_store(config: "EtcdConfig") -> KvStore:
    """Factory function to create a store from configuration.

    Args:
        config: Store configuration

    Returns:
        Appropriate KvStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StoreBackend
    from .etcd import EtcdStore
    from .memory import InMemoryStore

    if config.backend == StoreBackend.ETCD:
        return EtcdStore(config)
    elif config.backend == StoreBackend.MEMORY:
        return InMemoryStore()
    else:
        raise ValueError(f"Unsupported store backend: {config.backend}")
