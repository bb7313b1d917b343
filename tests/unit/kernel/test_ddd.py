"""Unit tests for DomainEvent."""

from __future__ import annotations

import dataclasses
from datetime import datetime

import pytest

from api_standards.kernel.ddd import DomainEvent


@dataclasses.dataclass(frozen=True, kw_only=True)
class OrderShipped(DomainEvent):
    order_id: int


class TestDomainEvent:
    def test_identity_and_timestamp(self):
        a = OrderShipped(order_id=1)
        b = OrderShipped(order_id=1)
        assert a.event_id != b.event_id
        assert isinstance(a.occurred_at, datetime)
        assert a.occurred_at.tzinfo is not None

    def test_event_type(self):
        assert OrderShipped(order_id=1).event_type == "OrderShipped"

    def test_is_immutable(self):
        event = OrderShipped(order_id=1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.order_id = 2  # type: ignore[misc]
