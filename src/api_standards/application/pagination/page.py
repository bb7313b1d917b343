"""Application pagination – PagedResult."""
from __future__ import annotations

import dataclasses
import math
from collections.abc import Sequence
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class PagedResult(Generic[T]):
    """One page of items plus navigation metadata (``page_number`` is 1-based)."""

    items: tuple[T, ...] = ()
    page_number: int = 1
    page_size: int = 10
    total_count: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_previous_page(self) -> bool:
        return self.page_number > 1

    @property
    def has_next_page(self) -> bool:
        return self.page_number < self.total_pages

    @classmethod
    def create(
        cls,
        items: Sequence[T],
        page_number: int,
        page_size: int,
        total_count: int,
    ) -> "PagedResult[T]":
        return cls(
            items=tuple(items),
            page_number=page_number,
            page_size=page_size,
            total_count=total_count,
        )

    @classmethod
    def empty(cls, page_number: int = 1, page_size: int = 10) -> "PagedResult[T]":
        return cls(items=(), page_number=page_number, page_size=page_size, total_count=0)

    def map(self, fn: Callable[[T], Any]) -> "PagedResult[Any]":
        """Return a new page with each item transformed by *fn*."""
        return dataclasses.replace(self, items=tuple(fn(item) for item in self.items))

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": list(self.items),
            "pageNumber": self.page_number,
            "pageSize": self.page_size,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "hasPreviousPage": self.has_previous_page,
            "hasNextPage": self.has_next_page,
        }


__all__ = ["PagedResult"]
