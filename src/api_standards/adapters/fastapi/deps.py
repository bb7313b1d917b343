"""FastAPI adapter – reusable dependency functions.

The service provider and settings live on ``app.state`` (see
:func:`~api_standards.adapters.fastapi.setup.add_default_api`).  FastAPI
caches dependencies per request, so every dependency below shares one
service scope per request.
"""
from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request

from api_standards.application.cqrs import (
    CommandQueryDispatcher,
    DomainEventDispatcher,
    ServiceProvider,
)
from api_standards.config.settings import ApiStandardsSettings
from api_standards.kernel.errors import ServiceResolutionError
from api_standards.kernel.security import Principal, SecurityContext
from api_standards.observability.correlation import CorrelationContext, RequestContext

ROUTE_VALUE_PREFIX = "route_"


def get_settings(request: Request) -> ApiStandardsSettings:
    return getattr(request.app.state, "api_settings", None) or ApiStandardsSettings()


async def get_service_scope(request: Request) -> AsyncIterator[ServiceProvider]:
    """Yield a service scope that lives exactly as long as the request."""
    provider: ServiceProvider | None = getattr(request.app.state, "service_provider", None)
    if provider is None:
        raise ServiceResolutionError(
            "No service provider configured; call add_default_api(app, provider=...) first"
        )
    async with provider.create_scope() as scope:
        request.state.service_scope = scope
        yield scope


def get_dispatcher(scope: ServiceProvider = Depends(get_service_scope)) -> CommandQueryDispatcher:
    return scope.resolve(CommandQueryDispatcher) or CommandQueryDispatcher(scope)


def get_event_dispatcher(scope: ServiceProvider = Depends(get_service_scope)) -> DomainEventDispatcher:
    return scope.resolve(DomainEventDispatcher) or DomainEventDispatcher(scope)


async def get_request_context(request: Request) -> RequestContext:
    """Hand the request's context to the endpoint.

    Route parameters are known only after routing, so they are added here as
    ``route_<name>`` values.
    """
    ctx = getattr(request.state, "request_context", None) or CorrelationContext.get_or_new()
    for name, value in request.path_params.items():
        if value is not None:
            ctx = ctx.with_value(f"{ROUTE_VALUE_PREFIX}{name}", str(value))
    request.state.request_context = ctx
    CorrelationContext.set(ctx)
    return ctx


def get_principal(request: Request) -> Principal | None:
    return getattr(request.state, "principal", None) or SecurityContext.get_current()


__all__ = [
    "ROUTE_VALUE_PREFIX",
    "get_dispatcher",
    "get_event_dispatcher",
    "get_principal",
    "get_request_context",
    "get_service_scope",
    "get_settings",
]
