"""
Small helpers shared by the query engine.
"""

from __future__ import annotations

from typing import TypeVar

T = TypeVar("T")


def paginate(rows: list[T], page_size: int, page: int) -> list[T]:
    """Return one page of ``rows``.

    Pages are 1-based. A non-positive ``page`` or ``page_size`` disables
    pagination and returns every row; a page past the end is empty.

    Example:
        >>> paginate([1, 2, 3], page_size=2, page=2)
        [3]
    """
    if page_size <= 0 or page <= 0:
        return rows
    skip = (page - 1) * page_size
    return rows[skip:skip + page_size]
