"""Application CQRS – DomainEventDispatcher (post-commit fan-out)."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from api_standards.application.cqrs.cancellation import CancellationToken
from api_standards.application.cqrs.container import ServiceDescriptor, ServiceProvider
from api_standards.application.cqrs.events import EventHandler
from api_standards.application.cqrs.registry import HandlerKey
from api_standards.kernel.ddd.domain_event import DomainEvent

_default_logger = logging.getLogger(__name__)


class DomainEventDispatcher:
    """Deliver domain events to every handler registered for their runtime type.

    Call only after the state change the events describe has been committed.

    * Events are processed in input order; handlers of one event run
      sequentially in registration order.
    * An event without handlers is logged and skipped.
    * A handler that cannot be built or that fails is logged with handler
      and event identity; the remaining handlers and events are still
      delivered and nothing is raised to the caller.
      ``asyncio.CancelledError`` is not caught.

    Delivery is at-most-once and in-process; there are no retries.
    """

    def __init__(self, provider: ServiceProvider, logger: logging.Logger | None = None) -> None:
        self._provider = provider
        self._logger = logger or _default_logger

    async def dispatch_events(
        self,
        events: Iterable[DomainEvent],
        cancellation: CancellationToken | None = None,
    ) -> None:
        batch = list(events)
        if not batch:
            return

        token = cancellation or CancellationToken.none()
        log = self._logger
        log.info("domain_events.dispatching count=%d", len(batch))

        for event in batch:
            event_type = type(event)
            log.debug("domain_events.event type=%s id=%s", event_type.__name__, _event_id(event))

            registrations = self._provider.registrations(HandlerKey(EventHandler, event_type))
            if not registrations:
                log.warning("domain_events.no_handlers type=%s", event_type.__name__)
                continue
            log.debug(
                "domain_events.handlers type=%s count=%d", event_type.__name__, len(registrations)
            )

            for descriptor in registrations:
                await self._invoke(descriptor, event, token)

        log.info("domain_events.dispatched count=%d", len(batch))

    async def _invoke(
        self,
        descriptor: ServiceDescriptor,
        event: DomainEvent,
        token: CancellationToken,
    ) -> None:
        event_name = type(event).__name__
        handler_name = _handler_name(descriptor)
        try:
            handler: EventHandler[DomainEvent] | None = self._provider.instantiate(descriptor)
            if handler is None:
                self._logger.warning("domain_events.null_handler type=%s", event_name)
                return
            handler_name = type(handler).__name__
            await handler.handle(event, token)
        except Exception:
            self._logger.exception(
                "domain_events.handler_failed handler=%s type=%s id=%s",
                handler_name,
                event_name,
                _event_id(event),
            )
            return
        self._logger.debug(
            "domain_events.handler_succeeded handler=%s type=%s", handler_name, event_name
        )


def _handler_name(descriptor: ServiceDescriptor) -> str:
    if descriptor.implementation_type is not None:
        return descriptor.implementation_type.__name__
    return getattr(descriptor.factory, "__qualname__", repr(descriptor.factory))


def _event_id(event: DomainEvent) -> str:
    return str(getattr(event, "event_id", "-"))


__all__ = ["DomainEventDispatcher"]
