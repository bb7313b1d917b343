"""Application CQRS – EventHandler."""

from __future__ import annotations

import abc
from typing import Generic, TypeVar

from api_standards.application.cqrs.cancellation import CancellationToken
from api_standards.kernel.ddd.domain_event import DomainEvent

E = TypeVar("E", bound=DomainEvent)


class EventHandler(abc.ABC, Generic[E]):
    """React to one domain event type.

    Any number of handlers may subscribe to the same event type.  A handler
    that raises is logged and skipped; it never affects its siblings.
    """

    @abc.abstractmethod
    async def handle(self, event: E, cancellation: CancellationToken) -> None: ...


__all__ = ["EventHandler"]
