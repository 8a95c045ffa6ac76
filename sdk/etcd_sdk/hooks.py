"""
Hook pipeline for query operations.

A hook is a named observer that runs after a CRUD/List operation succeeds.
Hooks are attached either to the SDK handle (they apply to every query it
creates) or to a single query via ``Query.hook()``.

Ordering:
    SDK-level hooks run first, then query-level hooks, each level in
    registration order.

Invariants:
    - Hooks never run for a failed operation
    - Handlers run before the triggering call returns; their exceptions
      propagate to the caller
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .query import Query

logger = logging.getLogger(__name__)


class HookMethod(str, Enum):
    """Operations a hook can subscribe to."""

    ALL = "all"
    GET = "get"
    LIST = "list"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PATCH = "patch"


@dataclass(frozen=True)
class HookParams:
    """Snapshot handed to hook handlers.

    Attributes:
        method: Operation that ran
        key: Record key as given by the caller (empty for list)
        val: Value supplied to (or removed by) the operation
        revision: Store revision produced or observed by the operation
        result: Operation result
    """

    method: HookMethod
    key: str = ""
    val: Any = None
    revision: int = 0
    result: Any = None


HookHandler = Callable[["Query[Any]", HookParams], "Awaitable[None] | None"]


@dataclass
class Hook:
    """A named, method-filtered observer.

    Example:
        >>> audit = Hook(
        ...     name="audit",
        ...     methods=[HookMethod.CREATE, HookMethod.UPDATE],
        ...     handler=lambda query, params: print(params.method, params.key),
        ... )
    """

    name: str
    methods: Sequence[HookMethod]
    handler: HookHandler

    def matches(self, method: HookMethod) -> bool:
        """Whether the hook subscribes to ``method``."""
        methods = self.methods or ()
        return HookMethod.ALL in methods or method in methods


async def run_hooks(query: Query[Any], hooks: Iterable[Hook], params: HookParams) -> None:
    """Invoke every matching hook in order.

    Coroutine handlers are awaited before the next hook runs.
    """
    for hook in hooks:
        if not hook.matches(params.method):
            continue
        logger.debug(f"Running hook {hook.name!r} for {params.method.value} {params.key!r}")
        outcome = hook.handler(query, params)
        if inspect.isawaitable(outcome):
            await outcome
