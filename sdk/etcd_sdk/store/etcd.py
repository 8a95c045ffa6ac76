"""
etcd v3 store implementation.

This module talks to etcd through its JSON gRPC gateway
(``/v3/kv/range``, ``/v3/kv/put``, ``/v3/kv/deleterange``), which every etcd
v3.4+ member serves on its client port.

Invariants:
    - Keys and values travel base64-encoded, as the gateway requires
    - Endpoints are tried in configured order; the first one that answers
      becomes sticky until it fails
    - Auth tokens are fetched lazily and refreshed once on 401

How to change safely:
    - Test against a real etcd member before changing request bodies
    - Keep every httpx exception mapped to a StoreError subclass
"""

from __future__ import annotations

import base64
import logging
import ssl
from typing import Any

import httpx

from ..config import EtcdConfig
from ..errors import ConnectionError, NotFoundError, StoreError, StoreTimeoutError
from .base import DeleteResponse, KeyValue, PutResponse

logger = logging.getLogger(__name__)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(data: str | None) -> bytes:
    return base64.b64decode(data) if data else b""


def prefix_range_end(prefix: bytes) -> bytes:
    """Smallest key greater than every key starting with ``prefix``.

    Example:
        >>> prefix_range_end(b"/apisix/routes")
        b'/apisix/routet'
    """
    end = bytearray(prefix)
    for i in range(len(end) - 1, -1, -1):
        if end[i] < 0xFF:
            end[i] += 1
            return bytes(end[: i + 1])
    # every byte is 0xff: scan to the end of the keyspace
    return b"\x00"


class EtcdStore:
    """etcd implementation of the KvStore protocol.

    Uses an httpx AsyncClient with connection pooling; one instance is safe
    to share between concurrent coroutines.

    Attributes:
        config: Store configuration
        endpoint: Endpoint currently in use

    Example:
        >>> store = EtcdStore(EtcdConfig(endpoints=["http://127.0.0.1:2379"]))
        >>> resp = await store.put("/apisix/routes/1", b'{"uri":"/a"}')
        >>> print(resp.revision)
    """

    def __init__(
        self,
        config: EtcdConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the etcd store.

        No network I/O happens here; the first request opens the connection.

        Args:
            config: Store configuration
            transport: Optional httpx transport (used by tests)

        Raises:
            ConnectionError: If the configuration cannot produce a client
        """
        try:
            config.validate_config()
        except ValueError as e:
            raise ConnectionError(str(e), endpoints=config.endpoints) from e

        self.config = config
        self._endpoints = [ep.rstrip("/") for ep in config.endpoints]
        self._current = 0
        self._token: str | None = None
        self._closed = False

        try:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(config.request_timeout, connect=config.dial_timeout),
                verify=self._ssl_context(config),
                transport=transport,
            )
        except (OSError, ssl.SSLError) as e:
            raise ConnectionError(
                f"Failed to create etcd client: {e}", endpoints=config.endpoints
            ) from e

        logger.info(
            "Created etcd client",
            extra={"endpoints": self._endpoints, "auth": bool(config.username)},
        )

    @staticmethod
    def _ssl_context(config: EtcdConfig) -> ssl.SSLContext | bool:
        if not (config.ca_file or config.cert_file):
            return True
        ctx = ssl.create_default_context(cafile=config.ca_file)
        if config.cert_file:
            ctx.load_cert_chain(config.cert_file, config.key_file)
        return ctx

    @property
    def endpoint(self) -> str:
        """Endpoint currently in use."""
        return self._endpoints[self._current]

    @property
    def is_closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    async def close(self) -> None:
        """Close pooled connections."""
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()
        logger.info("etcd client closed", extra={"endpoints": self._endpoints})

    async def get(self, key: str) -> KeyValue:
        """Read a single key."""
        body = await self._call("/v3/kv/range", {"key": _b64(key.encode("utf-8"))})
        kvs = body.get("kvs") or []
        if not kvs:
            raise NotFoundError(key)
        return self._to_kv(kvs[0], self._revision(body))

    async def put(self, key: str, value: bytes) -> PutResponse:
        """Write a key unconditionally."""
        body = await self._call(
            "/v3/kv/put",
            {"key": _b64(key.encode("utf-8")), "value": _b64(value)},
        )
        return PutResponse(revision=self._revision(body))

    async def delete(self, key: str) -> DeleteResponse:
        """Delete a single key."""
        body = await self._call("/v3/kv/deleterange", {"key": _b64(key.encode("utf-8"))})
        deleted = int(body.get("deleted", 0))
        if deleted == 0:
            raise NotFoundError(key)
        return DeleteResponse(revision=self._revision(body), deleted=deleted)

    async def scan(self, prefix: str) -> list[KeyValue]:
        """Return entries under ``prefix`` ordered by key."""
        raw = prefix.encode("utf-8")
        body = await self._call(
            "/v3/kv/range",
            {
                "key": _b64(raw),
                "range_end": _b64(prefix_range_end(raw)),
                "sort_order": "ASCEND",
                "sort_target": "KEY",
            },
        )
        revision = self._revision(body)
        return [self._to_kv(kv, revision) for kv in body.get("kvs") or []]

    # =========================================================================
    # Transport
    # =========================================================================

    async def _call(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to the gateway, authenticating and failing over as needed."""
        if self._closed:
            raise StoreError("store is closed")

        if self.config.username and self._token is None:
            await self._authenticate()

        response = await self._post(path, payload)
        if response.status_code == 401 and self.config.username:
            logger.debug("etcd auth token rejected, re-authenticating")
            await self._authenticate()
            response = await self._post(path, payload)

        return self._decode(response)

    async def _authenticate(self) -> None:
        response = await self._post(
            "/v3/auth/authenticate",
            {"name": self.config.username, "password": self.config.password},
            authenticated=False,
        )
        body = self._decode(response)
        token = body.get("token")
        if not token:
            raise StoreError("etcd authentication returned no token", endpoint=self.endpoint)
        self._token = token

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        authenticated: bool = True,
    ) -> httpx.Response:
        headers = {}
        if authenticated and self._token:
            headers["Authorization"] = self._token

        last_error: Exception | None = None
        for _ in range(len(self._endpoints)):
            endpoint = self.endpoint
            try:
                return await self._client.post(f"{endpoint}{path}", json=payload, headers=headers)
            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                last_error = e
                logger.warning(f"etcd endpoint {endpoint} unreachable: {e}")
                self._current = (self._current + 1) % len(self._endpoints)
            except httpx.TimeoutException as e:
                raise StoreTimeoutError(
                    f"etcd request {path} timed out: {e}", endpoint=endpoint
                ) from e
            except httpx.HTTPError as e:
                raise StoreError(f"etcd request {path} failed: {e}", endpoint=endpoint) from e

        if isinstance(last_error, httpx.ConnectTimeout):
            raise StoreTimeoutError(
                f"all etcd endpoints timed out: {last_error}", endpoint=self.endpoint
            ) from last_error
        raise StoreError(
            f"all etcd endpoints unreachable: {last_error}", endpoint=self.endpoint
        ) from last_error

    def _decode(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_error:
            message = body.get("message") or body.get("error") or response.text
            raise StoreError(
                f"etcd returned {response.status_code}: {message}",
                endpoint=self.endpoint,
            )
        return body

    @staticmethod
    def _revision(body: dict[str, Any]) -> int:
        return int((body.get("header") or {}).get("revision", 0))

    @staticmethod
    def _to_kv(kv: dict[str, Any], revision: int) -> KeyValue:
        return KeyValue(
            key=_unb64(kv.get("key")).decode("utf-8"),
            value=_unb64(kv.get("value")),
            revision=revision,
            create_revision=int(kv.get("create_revision", 0)),
            mod_revision=int(kv.get("mod_revision", 0)),
            version=int(kv.get("version", 0)),
        )
