"""
Record model building blocks.

This module provides:
- BaseInfo: identity block embedded by most records (id, create/update time)
- Prefixer / HasBaseInfo: optional capabilities probed by the query engine
- ListOutput: result of Query.list()
- default_sort_key: ordering used by list() when no sort is configured

Example:
    >>> class Route(BaseInfo):
    ...     uri: str = ""
    ...
    ...     @classmethod
    ...     def key_prefix(cls) -> str:
    ...         return "routes"
    >>>
    >>> Route.model_validate_json('{"id": 12, "uri": "/a"}').id
    '12'

Invariants:
    - BaseInfo.id is always a string; JSON numbers are canonicalized to decimal
    - create_time/update_time are never set by the SDK
"""

from __future__ import annotations

import math
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator


@runtime_checkable
class Prefixer(Protocol):
    """Model types that choose their own resource prefix.

    ``key_prefix`` is looked up on the model class, so implement it as a
    classmethod or staticmethod.
    """

    def key_prefix(self) -> str: ...


@runtime_checkable
class HasBaseInfo(Protocol):
    """Records exposing an identity block for the default list ordering."""

    def get_base_info(self) -> BaseInfo: ...


class BaseInfo(BaseModel):
    """Base info for most models.

    Attributes:
        id: Record ID, canonical decimal string for numeric input
        create_time: Caller-controlled creation timestamp
        update_time: Caller-controlled update timestamp
    """

    id: str = ""
    create_time: int = 0
    update_time: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _canonical_id(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        # bool is a subclass of int
        if isinstance(value, bool):
            raise ValueError("id must be a string or a number")
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError(f"id must be finite, got {value}")
            return str(int(value))
        raise ValueError(f"id must be a string or a number, got {type(value).__name__}")

    def get_base_info(self) -> BaseInfo:
        """Return the identity block of the record."""
        return self


class ListOutput(BaseModel):
    """Output of Query.list().

    Attributes:
        rows: Decoded records after filter, format, sort and pagination
        total_size: Record count after filtering, before pagination
    """

    rows: list[Any] = Field(default_factory=list)
    total_size: int = 0


_EMPTY_BASE_INFO = BaseInfo()


def default_sort_key(obj: Any) -> tuple[int, int, str]:
    """Sort key for update_time desc, create_time desc, id asc.

    Records without base info sort as if every field were empty.
    """
    info = obj.get_base_info() if isinstance(obj, HasBaseInfo) else _EMPTY_BASE_INFO
    return (-info.update_time, -info.create_time, info.id)
