"""Application CQRS – Query, QueryHandler."""
from __future__ import annotations

import abc
from typing import Any, Generic, TypeVar

from api_standards.application.cqrs.cancellation import CancellationToken

Q = TypeVar("Q", bound="Query[Any]")
R = TypeVar("R")


class Query(Generic[R]):
    """Marker base for queries (read-only intent) returning ``R``."""


class QueryHandler(abc.ABC, Generic[Q, R]):
    """Handle a single query type and return a result."""

    @abc.abstractmethod
    async def handle(self, query: Q, cancellation: CancellationToken) -> R: ...


__all__ = ["Query", "QueryHandler"]
