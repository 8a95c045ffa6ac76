"""
etcd SDK - typed CRUD facade over etcd.

This SDK maps pydantic models to JSON records stored under deterministic keys:
- EtcdSdk: shared, reference-counted store connection
- Query: fluent CRUD/List builder with filter, sort, pagination and merge patch
- Hook: observers that run after successful operations

Example:
    >>> from etcd_sdk import BaseInfo, EtcdConfig, EtcdSdk
    >>>
    >>> class Route(BaseInfo):
    ...     uri: str = ""
    >>>
    >>> async with EtcdSdk(EtcdConfig(), prefix="/apisix") as sdk:
    ...     q = sdk.new().type(Route)
    ...     await q.create("1", Route(id="1", uri="/hello"))
    ...     out = await q.list()

Invariants:
    - Records live at <prefix>/<resource prefix>/<key>
    - Consistency is exactly what etcd provides for a single key
    - No multi-key transactions, no caching

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import EtcdConfig, StoreBackend
from .errors import (
    AlreadyExistsError,
    ConnectionError,
    DecodeError,
    EncodeError,
    EtcdSdkError,
    NotFoundError,
    PatchError,
    StoreError,
    StoreTimeoutError,
)
from .hooks import Hook, HookMethod, HookParams
from .models import BaseInfo, HasBaseInfo, ListOutput, Prefixer, default_sort_key
from .query import Query
from .sdk import EtcdSdk
from .store import DeleteResponse, KeyValue, KvStore, PutResponse

__all__ = [
    # Version
    "__version__",
    # Handle and queries
    "EtcdSdk",
    "Query",
    "EtcdConfig",
    "StoreBackend",
    # Models
    "BaseInfo",
    "ListOutput",
    "Prefixer",
    "HasBaseInfo",
    "default_sort_key",
    # Hooks
    "Hook",
    "HookMethod",
    "HookParams",
    # Store
    "KvStore",
    "KeyValue",
    "PutResponse",
    "DeleteResponse",
    # Errors
    "EtcdSdkError",
    "NotFoundError",
    "AlreadyExistsError",
    "EncodeError",
    "DecodeError",
    "PatchError",
    "StoreError",
    "StoreTimeoutError",
    "ConnectionError",
]
