"""
Process-wide store connection registry.

SDK handles built from equal configurations share one store connection. The
registry maps ``EtcdConfig.cache_key()`` to the shared store plus a reference
count; the last release closes the store.

This is the only global mutable state in the SDK. Every read-modify-write
goes through one lock, so two concurrent acquires cannot both create a
connection and a release cannot close a store another acquire just handed
out.

Example:
    >>> store = acquire(EtcdConfig(endpoints=["http://127.0.0.1:2379"]))
    >>> ...
    >>> await release(store)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from .config import EtcdConfig
from .errors import ConnectionError
from .store.base import KvStore, create_store

logger = logging.getLogger(__name__)


@dataclass
class _ClientEntry:
    store: KvStore
    references: int


# Global registry
_clients: dict[str, _ClientEntry] = {}
_clients_lock = threading.Lock()


def acquire(config: EtcdConfig) -> KvStore:
    """Get the shared store for ``config``, creating it on first use.

    Raises:
        ConnectionError: If the store cannot be created
    """
    cache_key = config.cache_key()
    with _clients_lock:
        entry = _clients.get(cache_key)
        if entry is not None:
            entry.references += 1
            logger.debug(f"Reusing store connection (references={entry.references})")
            return entry.store

        try:
            store = create_store(config)
        except ConnectionError:
            raise
        except ValueError as e:
            raise ConnectionError(
                f"failed to create store client: {e}", endpoints=config.endpoints
            ) from e

        _clients[cache_key] = _ClientEntry(store=store, references=1)
        logger.info(
            "Opened store connection",
            extra={"backend": config.backend.value, "endpoints": config.endpoints},
        )
        return store


async def release(store: KvStore) -> None:
    """Drop one reference to ``store``; close it when none remain.

    Stores the registry does not know are ignored.
    """
    to_close: KvStore | None = None
    with _clients_lock:
        for cache_key, entry in _clients.items():
            if entry.store is store:
                entry.references -= 1
                if entry.references == 0:
                    del _clients[cache_key]
                    to_close = store
                break

    if to_close is not None:
        await to_close.close()
        logger.info("Closed store connection")


def references(config: EtcdConfig) -> int:
    """Current reference count for ``config`` (0 if not connected)."""
    with _clients_lock:
        entry = _clients.get(config.cache_key())
        return entry.references if entry else 0
