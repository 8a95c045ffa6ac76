"""
In-memory key-value store implementation for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without a running etcd

Invariants:
    - All data is lost on process exit
    - Revisions behave like etcd: one increment per mutation
    - Safe for concurrent coroutines

How to change safely:
    - Keep interface compatible with the KvStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..errors import NotFoundError, StoreError
from .base import DeleteResponse, KeyValue, PutResponse

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: bytes
    create_revision: int
    mod_revision: int
    version: int


class InMemoryStore:
    """In-memory implementation of KvStore for testing.

    Attributes:
        revision: Current store revision
        close_count: How many times close() was called

    Example:
        >>> store = InMemoryStore()
        >>> store.seed("/apisix/routes/1", '{"id": 1}')
        >>> kv = await store.get("/apisix/routes/1")
    """

    def __init__(self) -> None:
        """Initialize an empty store at revision 1."""
        self._data: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._closed = False
        self.revision = 1
        self.close_count = 0

    @property
    def is_closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    async def close(self) -> None:
        """Close and clear all data."""
        self._closed = True
        self.close_count += 1
        self._data.clear()
        logger.debug("InMemoryStore closed")

    async def get(self, key: str) -> KeyValue:
        """Read a single key."""
        self._ensure_open()
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                raise NotFoundError(key)
            return self._to_kv(key, entry)

    async def put(self, key: str, value: bytes) -> PutResponse:
        """Write a key and bump the revision."""
        self._ensure_open()
        async with self._lock:
            return PutResponse(revision=self._write(key, value))

    async def delete(self, key: str) -> DeleteResponse:
        """Delete a key and bump the revision."""
        self._ensure_open()
        async with self._lock:
            if key not in self._data:
                raise NotFoundError(key)
            del self._data[key]
            self.revision += 1
            return DeleteResponse(revision=self.revision, deleted=1)

    async def scan(self, prefix: str) -> list[KeyValue]:
        """Return entries under ``prefix`` ordered by key."""
        self._ensure_open()
        async with self._lock:
            return [
                self._to_kv(key, self._data[key])
                for key in sorted(self._data)
                if key.startswith(prefix)
            ]

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def seed(self, key: str, value: str | bytes) -> int:
        """Store a raw value without going through the query layer.

        Returns:
            Revision of the write
        """
        if isinstance(value, str):
            value = value.encode("utf-8")
        return self._write(key, value)

    def raw(self, key: str) -> bytes | None:
        """Return the raw stored bytes of ``key`` (None if absent)."""
        entry = self._data.get(key)
        return entry.value if entry else None

    def keys(self) -> list[str]:
        """All stored keys, sorted."""
        return sorted(self._data)

    def _write(self, key: str, value: bytes) -> int:
        self.revision += 1
        entry = self._data.get(key)
        if entry is None:
            self._data[key] = _Entry(value, self.revision, self.revision, 1)
        else:
            entry.value = value
            entry.mod_revision = self.revision
            entry.version += 1
        return self.revision

    def _to_kv(self, key: str, entry: _Entry) -> KeyValue:
        return KeyValue(
            key=key,
            value=entry.value,
            revision=self.revision,
            create_revision=entry.create_revision,
            mod_revision=entry.mod_revision,
            version=entry.version,
        )

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreError("store is closed")
