"""
Storage key derivation.

Pure functions with no I/O. A record lives at
``<root prefix>/<resource prefix>/<record key>``, where the resource prefix is
chosen in this order:

1. an explicit per-query override
2. the model type's ``key_prefix()`` (see models.Prefixer)
3. the model type's class name, lower-cased
"""

from __future__ import annotations

import inspect
import posixpath

from .models import Prefixer


def join_key(*parts: str) -> str:
    """Join key segments like a slash path.

    Empty segments are ignored, repeated and trailing separators collapse and
    ``.``/``..`` are resolved. Returns ``""`` when every segment is empty.

    Example:
        >>> join_key("/apisix", "/routes/", "1")
        '/apisix/routes/1'
    """
    joined = "/".join(part for part in parts if part)
    if not joined:
        return ""
    cleaned = posixpath.normpath(joined)
    # normpath keeps a leading "//"
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def resource_prefix(model_type: type, override: str = "") -> str:
    """Resolve the resource prefix for a model type.

    Raises:
        TypeError: If ``key_prefix`` is defined as a plain instance method
    """
    if override:
        return override
    if isinstance(model_type, Prefixer):
        attr = inspect.getattr_static(model_type, "key_prefix")
        if not isinstance(attr, (classmethod, staticmethod)):
            raise TypeError(
                f"{model_type.__name__}.key_prefix must be a classmethod or staticmethod"
            )
        return model_type.key_prefix()
    return model_type.__name__.lower()


def list_prefix(root: str, override: str, model_type: type) -> str:
    """Key prefix scanned by Query.list()."""
    return join_key(root, resource_prefix(model_type, override))


def resolve_key(root: str, override: str, model_type: type, key: str) -> str:
    """Full storage key of a record.

    Raises:
        ValueError: If ``key`` is empty or resolves to the collection key or above it
    """
    if not key:
        raise ValueError("record key must not be empty")
    prefix = resource_prefix(model_type, override)
    real_key = join_key(root, prefix, key)
    # ".", "/" or ".." would land on or above the collection key
    parent = join_key(root, prefix).rstrip("/") + "/"
    if not real_key.startswith(parent):
        raise ValueError(f"record key {key!r} does not name a record under {parent!r}")
    return real_key
