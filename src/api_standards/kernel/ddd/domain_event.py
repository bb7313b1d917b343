"""Domain events."""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime
from uuid import uuid4


@dataclasses.dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for domain events: an immutable fact about a past change.

    Events are dispatched only after the change they describe has been
    persisted; the caller owns that ordering.

    Subclasses add their own payload fields::

        @dataclasses.dataclass(frozen=True, kw_only=True)
        class UserCreated(DomainEvent):
            user_id: int
            email: str
    """

    event_id: str = dataclasses.field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = dataclasses.field(default_factory=lambda: datetime.now(UTC))

    @property
    def event_type(self) -> str:
        return type(self).__name__


__all__ = ["DomainEvent"]
