"""
Unit tests for the etcd gateway store.

A fake gateway built on httpx.MockTransport stands in for etcd.

Tests cover:
- Request encoding (base64 keys, prefix range_end)
- Response decoding (revisions, missing fields)
- Auth token handling
- Endpoint failover and error mapping
"""

import base64
import json

import httpx
import pytest

from etcd_sdk.config import EtcdConfig
from etcd_sdk.errors import ConnectionError, NotFoundError, StoreError, StoreTimeoutError
from etcd_sdk.store.etcd import EtcdStore, prefix_range_end


def b64(value: bytes) -> str:
    return base64.b64encode(value).decode()


def unb64(value: str) -> bytes:
    return base64.b64decode(value)


class FakeGateway:
    """Minimal etcd v3 JSON gateway."""

    def __init__(self, token: str | None = None) -> None:
        self.data: dict[bytes, bytes] = {}
        self.revision = 1
        self.token = token
        self.requests: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        path = request.url.path
        self.requests.append((path, body))

        if path == "/v3/auth/authenticate":
            if body.get("name") == "root" and body.get("password") == "secret":
                return httpx.Response(200, json={"header": {}, "token": self.token})
            return httpx.Response(400, json={"error": "authentication failed", "code": 3})

        if self.token and request.headers.get("Authorization") != self.token:
            return httpx.Response(401, json={"error": "invalid auth token", "code": 16})

        key = unb64(body["key"])
        header = {"revision": str(self.revision)}
        if path == "/v3/kv/put":
            self.revision += 1
            self.data[key] = unb64(body.get("value", ""))
            return httpx.Response(200, json={"header": {"revision": str(self.revision)}})
        if path == "/v3/kv/range":
            if "range_end" in body:
                end = unb64(body["range_end"])
                keys = sorted(k for k in self.data if key <= k < end)
            else:
                keys = [key] if key in self.data else []
            kvs = [
                {
                    "key": b64(k),
                    "value": b64(self.data[k]),
                    "create_revision": "2",
                    "mod_revision": "3",
                    "version": "1",
                }
                for k in keys
            ]
            resp = {"header": header}
            if kvs:
                resp["kvs"] = kvs
                resp["count"] = str(len(kvs))
            return httpx.Response(200, json=resp)
        if path == "/v3/kv/deleterange":
            if key not in self.data:
                return httpx.Response(200, json={"header": header})
            del self.data[key]
            self.revision += 1
            return httpx.Response(
                200, json={"header": {"revision": str(self.revision)}, "deleted": "1"}
            )
        return httpx.Response(404, json={"error": "not found"})


def make_store(gateway, **config) -> EtcdStore:
    config.setdefault("endpoints", ["http://etcd-1:2379"])
    return EtcdStore(EtcdConfig(**config), transport=httpx.MockTransport(gateway))


class TestPrefixRangeEnd:
    """Tests for prefix_range_end."""

    def test_increment_last_byte(self):
        assert prefix_range_end(b"/a/") == b"/a0"

    def test_skips_ff_bytes(self):
        assert prefix_range_end(b"a\xff") == b"b"

    def test_all_ff(self):
        assert prefix_range_end(b"\xff\xff") == b"\x00"


class TestEtcdStore:
    """Tests for EtcdStore against a fake gateway."""

    @pytest.fixture
    def gateway(self):
        return FakeGateway()

    @pytest.mark.asyncio
    async def test_put_get(self, gateway):
        """Values round trip through base64 and carry revisions."""
        store = make_store(gateway)

        resp = await store.put("/apisix/routes/1", b'{"uri":"/a"}')
        kv = await store.get("/apisix/routes/1")

        assert resp.revision == 2
        assert kv.key == "/apisix/routes/1"
        assert kv.value == b'{"uri":"/a"}'
        assert kv.revision == 2
        assert kv.mod_revision == 3
        assert gateway.requests[0][1]["key"] == b64(b"/apisix/routes/1")
        await store.close()

    @pytest.mark.asyncio
    async def test_get_missing(self, gateway):
        """A range without kvs is NotFoundError."""
        store = make_store(gateway)

        with pytest.raises(NotFoundError):
            await store.get("/missing")
        await store.close()

    @pytest.mark.asyncio
    async def test_delete(self, gateway):
        """Delete returns the new revision; a second delete is NotFoundError."""
        store = make_store(gateway)
        await store.put("/k", b"v")

        resp = await store.delete("/k")

        assert resp.deleted == 1
        assert resp.revision == 3
        with pytest.raises(NotFoundError):
            await store.delete("/k")
        await store.close()

    @pytest.mark.asyncio
    async def test_scan_uses_range_end(self, gateway):
        """Prefix scans send range_end and return sorted entries."""
        store = make_store(gateway)
        gateway.data = {b"/a/2": b"2", b"/a/1": b"1", b"/b/1": b"x"}

        kvs = await store.scan("/a/")

        assert [kv.key for kv in kvs] == ["/a/1", "/a/2"]
        assert gateway.requests[-1][1]["range_end"] == b64(b"/a0")
        await store.close()

    @pytest.mark.asyncio
    async def test_empty_value(self, gateway):
        """Omitted value fields decode to empty bytes."""
        store = make_store(gateway)
        gateway.data = {b"/k": b""}

        kv = await store.get("/k")

        assert kv.value == b""
        await store.close()

    @pytest.mark.asyncio
    async def test_authenticates_lazily(self):
        """The first call fetches a token that later calls reuse."""
        gateway = FakeGateway(token="tok-1")
        store = make_store(gateway, username="root", password="secret")

        await store.put("/k", b"v")
        await store.get("/k")

        paths = [path for path, _ in gateway.requests]
        assert paths == ["/v3/auth/authenticate", "/v3/kv/put", "/v3/kv/range"]
        await store.close()

    @pytest.mark.asyncio
    async def test_reauthenticates_on_401(self):
        """A rejected token is refreshed once."""
        gateway = FakeGateway(token="tok-1")
        store = make_store(gateway, username="root", password="secret")
        await store.put("/k", b"v")

        gateway.token = "tok-2"
        kv = await store.get("/k")

        assert kv.value == b"v"
        assert store._token == "tok-2"
        await store.close()

    @pytest.mark.asyncio
    async def test_auth_failure(self):
        """Bad credentials surface as StoreError."""
        gateway = FakeGateway(token="tok-1")
        store = make_store(gateway, username="root", password="wrong")

        with pytest.raises(StoreError, match="authentication failed"):
            await store.get("/k")
        await store.close()

    @pytest.mark.asyncio
    async def test_failover_to_next_endpoint(self, gateway):
        """Unreachable endpoints are skipped."""

        def handler(request):
            if request.url.host == "etcd-1":
                raise httpx.ConnectError("connection refused", request=request)
            return gateway(request)

        store = EtcdStore(
            EtcdConfig(endpoints=["http://etcd-1:2379", "http://etcd-2:2379"]),
            transport=httpx.MockTransport(handler),
        )

        await store.put("/k", b"v")

        assert store.endpoint == "http://etcd-2:2379"
        await store.close()

    @pytest.mark.asyncio
    async def test_all_endpoints_down(self):
        """When every endpoint fails the call raises StoreError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = make_store(handler)

        with pytest.raises(StoreError, match="unreachable"):
            await store.get("/k")
        await store.close()

    @pytest.mark.asyncio
    async def test_read_timeout(self):
        """httpx timeouts map to StoreTimeoutError."""

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        store = make_store(handler)

        with pytest.raises(StoreTimeoutError):
            await store.get("/k")
        await store.close()

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Gateway errors map to StoreError with the server message."""

        def handler(request):
            return httpx.Response(503, json={"error": "etcdserver: no leader", "code": 14})

        store = make_store(handler)

        with pytest.raises(StoreError, match="no leader"):
            await store.put("/k", b"v")
        await store.close()

    @pytest.mark.asyncio
    async def test_closed_store(self, gateway):
        """Closed stores reject calls; close is idempotent."""
        store = make_store(gateway)
        await store.close()
        await store.close()

        assert store.is_closed
        with pytest.raises(StoreError, match="closed"):
            await store.get("/k")

    def test_invalid_config(self):
        """A config without endpoints cannot build a store."""
        with pytest.raises(ConnectionError):
            EtcdStore(EtcdConfig(endpoints=[]))
