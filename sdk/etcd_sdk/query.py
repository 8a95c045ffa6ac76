"""
Query engine: typed CRUD and List over the key-value store.

A Query is a mutable, fluent builder bound to one model type (one "table" of
records). Builder methods return the same Query; terminal coroutines talk to
the store, post-process and fire hooks.

Example:
    >>> q = sdk.new().type(Route).filter(lambda key, r: r.uri.startswith("/api"))
    >>> await q.create("1", Route(id="1", uri="/api/v1"))
    >>> out = await q.page(1).page_size(10).list()

Invariants:
    - Hooks run only after the operation succeeded
    - create() and update() check existence in a separate round trip from the
      write; concurrent writers can race (last write wins)
    - One malformed record fails the whole list()
    - Every store round trip of one call shares a single deadline
"""

from __future__ import annotations

import asyncio
import builtins
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar, cast

from pydantic import BaseModel

from . import keys
from .codec import decode_record, encode_patch, encode_record, merge_patch
from .errors import (
    AlreadyExistsError,
    DecodeError,
    EtcdSdkError,
    NotFoundError,
    PatchError,
    StoreError,
    StoreTimeoutError,
)
from .hooks import Hook, HookMethod, HookParams, run_hooks
from .models import ListOutput, default_sort_key
from .store.base import DeleteResponse, KvStore, PutResponse
from .utils import paginate

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)
M = TypeVar("M", bound=BaseModel)

FilterFunc = Callable[[str, Any], bool]
FormatFunc = Callable[[str, Any], Any]
SortKey = Callable[[Any], Any]

_BIND_STAGE = "failed to bind string to struct object"


class Query(Generic[T]):
    """Fluent CRUD/List builder for a single model type.

    Queries are created by ``EtcdSdk.new()`` and borrow the SDK's store
    connection. They are cheap; build a new one per logical call site.
    """

    def __init__(
        self,
        store: KvStore,
        prefix: str = "",
        hooks: list[Hook] | None = None,
        default_timeout: float | None = None,
    ) -> None:
        """Initialize a query.

        Args:
            store: Shared store connection
            prefix: Root key prefix, e.g. "/apisix"
            hooks: SDK-level hooks (copied; query hooks are appended after them)
            default_timeout: Deadline in seconds used when a call passes none
        """
        self._store = store
        self._root_prefix = prefix
        self._hooks: list[Hook] = list(hooks or [])
        self._default_timeout = default_timeout

        self._model_type: builtins.type[T] | None = None
        self._resource_prefix = ""
        self._format_func: FormatFunc | None = None
        self._filter_func: FilterFunc | None = None
        self._sort_key: SortKey | None = None
        self._sort_reverse = False
        self._page = 0
        self._page_size = 0

    # =========================================================================
    # Builder
    # =========================================================================

    def type(self, model_type: builtins.type[M]) -> Query[M]:
        """Set the model type records are decoded into.

        Raises:
            TypeError: If ``model_type`` is not a pydantic model class
        """
        if not (isinstance(model_type, builtins.type) and issubclass(model_type, BaseModel)):
            raise TypeError(f"model type must be a pydantic BaseModel subclass, got {model_type!r}")
        self._model_type = cast(Any, model_type)
        return cast("Query[M]", self)

    def prefix(self, prefix: str) -> Query[T]:
        """Override the resource prefix derived from the model type."""
        self._resource_prefix = prefix
        return self

    def format(self, format_func: FormatFunc) -> Query[T]:
        """Set a ``(key, record) -> record`` transform applied on reads."""
        self._format_func = format_func
        return self

    def filter(self, filter_func: FilterFunc) -> Query[T]:
        """Set a ``(key, record) -> bool`` predicate applied by list()."""
        self._filter_func = filter_func
        return self

    def sort(self, key: SortKey, reverse: bool = False) -> Query[T]:
        """Set the list() ordering, as for ``sorted(key=..., reverse=...)``."""
        self._sort_key = key
        self._sort_reverse = reverse
        return self

    def page(self, page: int) -> Query[T]:
        """Set the 1-based page returned by list()."""
        self._page = page
        return self

    def page_size(self, page_size: int) -> Query[T]:
        """Set the list() page size; non-positive disables pagination."""
        self._page_size = page_size
        return self

    def hook(self, hook: Hook) -> Query[T]:
        """Register a hook for this query only."""
        self._hooks.append(hook)
        return self

    @property
    def model_type(self) -> builtins.type[T] | None:
        """Model type set by type()."""
        return self._model_type

    @property
    def hooks(self) -> list[Hook]:
        """Hooks that run for this query, in dispatch order."""
        return list(self._hooks)

    def resource_prefix(self) -> str:
        """Resource prefix of this query's records."""
        return keys.resource_prefix(self._require_type(), self._resource_prefix)

    # =========================================================================
    # Operations
    # =========================================================================

    async def get(self, key: str, *, timeout: float | None = None) -> T:
        """Return the record stored under ``key``.

        Raises:
            NotFoundError: If the key is absent
            DecodeError: If the stored value does not fit the model type
            StoreError: For store failures
        """
        real_key = self._real_key(key)
        async with self._within(self._deadline_for(timeout)):
            kv = await self._store.get(real_key)

        val: Any = self._decode(kv.value, real_key)
        if self._format_func is not None:
            val = self._format_func(real_key, val)

        await self._run_hooks(HookParams(method=HookMethod.GET, key=key, result=val))
        return val

    async def list(self, *, timeout: float | None = None) -> ListOutput:
        """Return every record of the model type, filtered, sorted and paged.

        Raises:
            DecodeError: If any stored value does not fit the model type
            StoreError: For store failures
        """
        prefix = self._list_prefix()
        async with self._within(self._deadline_for(timeout)):
            kvs = await self._store.scan(prefix)

        rows: builtins.list[Any] = []
        for kv in kvs:
            val: Any = self._decode(kv.value, kv.key)
            if self._filter_func is not None and not self._filter_func(kv.key, val):
                continue
            if self._format_func is not None:
                val = self._format_func(kv.key, val)
            rows.append(val)

        total_size = len(rows)
        if self._sort_key is None:
            rows.sort(key=default_sort_key)
        else:
            rows.sort(key=self._sort_key, reverse=self._sort_reverse)

        output = ListOutput(
            rows=paginate(rows, self._page_size, self._page),
            total_size=total_size,
        )
        logger.debug(f"list {prefix} returned {len(output.rows)}/{total_size} rows")

        await self._run_hooks(HookParams(method=HookMethod.LIST, result=output))
        return output

    async def create(self, key: str, obj: Any, *, timeout: float | None = None) -> PutResponse:
        """Store ``obj`` under ``key`` if nothing is stored there yet.

        Raises:
            AlreadyExistsError: If the key already holds a record
            EncodeError: If ``obj`` cannot be serialized
            StoreError: For store failures
        """
        real_key = self._real_key(key)
        return await self._create(key, real_key, obj, self._deadline_for(timeout))

    async def update(
        self,
        key: str,
        obj: Any,
        create_if_not_exist: bool = False,
        *,
        timeout: float | None = None,
    ) -> PutResponse:
        """Overwrite the record under ``key``.

        With ``create_if_not_exist`` an absent key is created instead; the
        call then counts as a create (only create hooks run).

        Raises:
            NotFoundError: If the key is absent and create_if_not_exist is false
            DecodeError: If the stored value does not fit the model type
            StoreError: For store failures
        """
        real_key = self._real_key(key)
        deadline = self._deadline_for(timeout)

        async with self._within(deadline):
            try:
                kv = await self._store.get(real_key)
                self._decode(kv.value, real_key)
            except NotFoundError as e:
                if not create_if_not_exist:
                    raise e.with_stage("failed to get data") from e
                exists = False
            except EtcdSdkError as e:
                raise e.with_stage("failed to get data") from e
            else:
                exists = True

        if not exists:
            logger.debug(f"update {real_key}: absent, creating")
            return await self._create(key, real_key, obj, deadline)

        data = encode_record(obj)
        async with self._within(deadline):
            try:
                resp = await self._store.put(real_key, data)
            except StoreError as e:
                raise e.with_stage("failed to update") from e

        logger.debug(f"update {real_key} revision={resp.revision}")
        await self._run_hooks(
            HookParams(
                method=HookMethod.UPDATE,
                key=key,
                val=obj,
                revision=resp.revision,
                result=obj,
            )
        )
        return resp

    async def delete(self, key: str, *, timeout: float | None = None) -> DeleteResponse:
        """Delete the record under ``key``.

        Raises:
            NotFoundError: If the key is absent
            StoreError: For store failures
        """
        model_type = self._require_type()
        real_key = self._real_key(key)
        async with self._within(self._deadline_for(timeout)):
            kv = await self._store.get(real_key)
            try:
                resp = await self._store.delete(real_key)
            except StoreError as e:
                raise e.with_stage("failed to delete") from e

        try:
            val: Any = decode_record(kv.value, model_type, real_key)
        except DecodeError as e:
            logger.warning(f"delete {real_key}: previous value not decodable: {e}")
            val = None

        logger.debug(f"delete {real_key} revision={resp.revision}")
        await self._run_hooks(
            HookParams(method=HookMethod.DELETE, key=key, val=val, revision=resp.revision)
        )
        return resp

    async def patch(self, key: str, obj: Any, *, timeout: float | None = None) -> PutResponse:
        """Apply ``obj`` as a JSON merge patch to the record under ``key``.

        Models contribute only explicitly set fields; ``None`` removes a field.

        Raises:
            NotFoundError: If the key is absent
            DecodeError: If the stored or merged value does not fit the model type
            PatchError: If ``obj`` is not a JSON object
            StoreError: For store failures
        """
        real_key = self._real_key(key)
        async with self._within(self._deadline_for(timeout)):
            kv = await self._store.get(real_key)
            self._decode(kv.value, real_key)

            try:
                merged = merge_patch(kv.value, encode_patch(obj))
            except PatchError as e:
                raise e.with_stage("failed to apply patch") from e
            val = self._decode(merged, real_key)

            try:
                resp = await self._store.put(real_key, merged)
            except StoreError as e:
                raise e.with_stage("failed to update") from e

        logger.debug(f"patch {real_key} revision={resp.revision}")
        await self._run_hooks(
            HookParams(
                method=HookMethod.PATCH,
                key=key,
                val=val,
                revision=kv.revision,
                result=val,
            )
        )
        return resp

    # =========================================================================
    # Internals
    # =========================================================================

    async def _create(
        self,
        key: str,
        real_key: str,
        obj: Any,
        deadline: float | None,
    ) -> PutResponse:
        data = encode_record(obj)
        async with self._within(deadline):
            try:
                await self._store.get(real_key)
            except NotFoundError:
                pass
            except StoreError as e:
                raise e.with_stage("failed to check existence") from e
            else:
                raise AlreadyExistsError(real_key)

            try:
                resp = await self._store.put(real_key, data)
            except StoreError as e:
                raise e.with_stage("failed to create") from e

        logger.debug(f"create {real_key} revision={resp.revision}")
        await self._run_hooks(
            HookParams(
                method=HookMethod.CREATE,
                key=key,
                val=obj,
                revision=resp.revision,
                result=obj,
            )
        )
        return resp

    def _require_type(self) -> builtins.type[T]:
        if self._model_type is None:
            raise TypeError("model type is not set, call Query.type() first")
        return self._model_type

    def _real_key(self, key: str) -> str:
        return keys.resolve_key(
            self._root_prefix, self._resource_prefix, self._require_type(), key
        )

    def _list_prefix(self) -> str:
        prefix = keys.list_prefix(self._root_prefix, self._resource_prefix, self._require_type())
        # scan children only, so "/routes" does not pick up "/routes_v2/..."
        return prefix if prefix.endswith("/") else prefix + "/"

    def _decode(self, data: bytes, real_key: str) -> T:
        try:
            return decode_record(data, self._require_type(), real_key)
        except DecodeError as e:
            raise e.with_stage(_BIND_STAGE) from e

    def _deadline_for(self, timeout: float | None) -> float | None:
        seconds = timeout if timeout is not None else self._default_timeout
        if seconds is None:
            return None
        return asyncio.get_running_loop().time() + seconds

    @asynccontextmanager
    async def _within(self, deadline: float | None) -> AsyncIterator[None]:
        try:
            async with asyncio.timeout_at(deadline):
                yield
        except TimeoutError as e:
            raise StoreTimeoutError("operation deadline exceeded") from e

    async def _run_hooks(self, params: HookParams) -> None:
        await run_hooks(self, self._hooks, params)
