"""
SDK handle: owns one reference to a shared store connection.

Example:
    >>> async with EtcdSdk(EtcdConfig(endpoints=["http://127.0.0.1:2379"]), prefix="/apisix") as sdk:
    ...     route = await sdk.new().type(Route).get("1")

Invariants:
    - Each handle holds exactly one registry reference until close()
    - close() is safe to call more than once
    - Queries borrow the connection; they must not outlive the handle
"""

from __future__ import annotations

import logging
from typing import Any

from . import connection
from .config import EtcdConfig
from .hooks import Hook
from .query import Query

logger = logging.getLogger(__name__)


class EtcdSdk:
    """Entry point for typed CRUD queries.

    Handles created with equal configurations share one store connection;
    the connection closes when the last of them is closed.

    Attributes:
        config: Store configuration
        prefix: Root key prefix applied to every query
    """

    def __init__(
        self,
        config: EtcdConfig | None = None,
        hooks: list[Hook] | None = None,
        prefix: str = "",
    ) -> None:
        """Acquire a store connection.

        Args:
            config: Store configuration (defaults to ETCD_* environment)
            hooks: Hooks applied to every query created by this handle
            prefix: Root key prefix, e.g. "/apisix"

        Raises:
            ConnectionError: If the store connection cannot be created
        """
        self.config = config or EtcdConfig()
        self.prefix = prefix
        self._hooks: list[Hook] = list(hooks or [])
        self._store = connection.acquire(self.config)
        self._closed = False

    @property
    def hooks(self) -> list[Hook]:
        """SDK-level hooks, in dispatch order."""
        return list(self._hooks)

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    def new(self) -> Query[Any]:
        """Create a query sharing this handle's connection, prefix and hooks."""
        if self._closed:
            raise RuntimeError("SDK handle is closed")
        return Query(
            self._store,
            prefix=self.prefix,
            hooks=self._hooks,
            default_timeout=self.config.request_timeout,
        )

    async def close(self) -> None:
        """Release this handle's connection reference."""
        if self._closed:
            return
        self._closed = True
        await connection.release(self._store)
        logger.debug(f"SDK handle closed (prefix={self.prefix!r})")

    async def __aenter__(self) -> EtcdSdk:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
