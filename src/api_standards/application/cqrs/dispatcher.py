"""Application CQRS – CommandQueryDispatcher.

Routes a single command or query to the one handler registered for its
*runtime* type and returns the handler's result unchanged.  Input is assumed
to be validated already (see the endpoint filters in the API adapter).

Usage::

    async with provider.create_scope() as scope:
        dispatcher = scope.require(CommandQueryDispatcher)
        user_id = await dispatcher.dispatch_command(CreateUser(name="Ann"))
        user = await dispatcher.dispatch_query(GetUser(user_id))
"""
from __future__ import annotations

import logging
from typing import Any, TypeVar

from api_standards.application.cqrs.cancellation import CancellationToken
from api_standards.application.cqrs.commands import Command, CommandHandler
from api_standards.application.cqrs.container import ServiceProvider
from api_standards.application.cqrs.queries import Query, QueryHandler
from api_standards.application.cqrs.registry import HandlerKey
from api_standards.kernel.errors import HandlerNotRegisteredError

R = TypeVar("R")
logger = logging.getLogger(__name__)


class CommandQueryDispatcher:
    """Stateless router from a request to its single handler.

    One instance per unit of work (registered scoped); handlers come from
    the same :class:`ServiceProvider` scope.  A missing registration raises
    :class:`HandlerNotRegisteredError`; handler exceptions propagate as-is.
    """

    def __init__(self, provider: ServiceProvider) -> None:
        self._provider = provider

    async def dispatch_command(
        self,
        command: Command[R],
        cancellation: CancellationToken | None = None,
    ) -> R:
        handler = self._resolve(command, Command, CommandHandler)
        return await handler.handle(command, cancellation or CancellationToken.none())

    async def dispatch_query(
        self,
        query: Query[R],
        cancellation: CancellationToken | None = None,
    ) -> R:
        handler = self._resolve(query, Query, QueryHandler)
        return await handler.handle(query, cancellation or CancellationToken.none())

    def _resolve(self, request: Any, kind: type, capability: type) -> Any:
        if request is None:
            raise TypeError(f"{kind.__name__} must not be None")
        if not isinstance(request, kind):
            raise TypeError(f"Expected a {kind.__name__}, got {type(request).__name__}")

        request_type = type(request)
        handler = self._provider.resolve(HandlerKey(capability, request_type))
        if handler is None:
            raise HandlerNotRegisteredError(request_type, capability)
        logger.debug(
            "cqrs.dispatch request=%s handler=%s",
            request_type.__name__,
            type(handler).__name__,
        )
        return handler


__all__ = ["CommandQueryDispatcher"]
