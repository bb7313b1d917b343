"""Application CQRS – handler discovery and registration.

Handlers are discovered by scanning a well-defined set of sources (modules,
packages, classes) for concrete subclasses of :class:`CommandHandler`,
:class:`QueryHandler` or :class:`EventHandler`.  The request type is read
from the parametrised generic base, so no per-handler registration code is
needed::

    class CreateUserHandler(CommandHandler[CreateUser, int]):
        async def handle(self, command: CreateUser, cancellation: CancellationToken) -> int:
            ...

    services = ServiceCollection()
    add_application_dispatchers(services)
    add_application_handlers(services, my_app.handlers)
    provider = services.build_provider()

Each pairing is stored in the service collection under
``HandlerKey(capability, request_type)`` with a scoped lifetime.  Handler
shape is checked here, at registration time, so a malformed handler fails
at startup rather than on first dispatch.
"""
from __future__ import annotations

import dataclasses
import importlib
import inspect
import logging
import pkgutil
import types
import typing
from collections.abc import Iterable, Iterator
from typing import Any, NamedTuple, TypeVar

from api_standards.application.cqrs.commands import Command, CommandHandler, VoidCommandHandler
from api_standards.application.cqrs.container import Lifetime, ServiceCollection
from api_standards.application.cqrs.events import EventHandler
from api_standards.application.cqrs.queries import Query, QueryHandler
from api_standards.kernel.ddd.domain_event import DomainEvent
from api_standards.kernel.errors import DuplicateHandlerError, InvalidHandlerError

logger = logging.getLogger(__name__)

CAPABILITIES: tuple[type, ...] = (CommandHandler, QueryHandler, EventHandler)

# capability -> request base class its type argument must derive from
_REQUEST_KINDS: dict[type, type] = {
    CommandHandler: Command,
    QueryHandler: Query,
    EventHandler: DomainEvent,
}

# capabilities that allow exactly one handler per request type
_SINGLE_HANDLER: frozenset[type] = frozenset({CommandHandler, QueryHandler})

_FRAMEWORK_TYPES: frozenset[type] = frozenset(CAPABILITIES) | {VoidCommandHandler}


class HandlerKey(NamedTuple):
    """Capability identity: "handler of *request_type*" for one capability."""

    capability: type
    request_type: type

    def __repr__(self) -> str:
        return f"{self.capability.__name__}[{self.request_type.__name__}]"


@dataclasses.dataclass(frozen=True)
class HandlerRegistration:
    capability: type
    request_type: type
    handler_type: type

    @property
    def key(self) -> HandlerKey:
        return HandlerKey(self.capability, self.request_type)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def iter_candidate_types(*sources: Any) -> Iterator[type]:
    """Yield every class found in *sources*, each at most once.

    A source is a module (packages are walked recursively), a class, or an
    iterable of sources.  Module members are yielded in definition order
    and only when defined in that module, so re-exports are not counted twice.
    """
    seen: set[type] = set()
    for candidate in _iter_sources(sources):
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _iter_sources(sources: Iterable[Any]) -> Iterator[type]:
    for source in sources:
        if isinstance(source, types.ModuleType):
            yield from _module_types(source)
        elif isinstance(source, type):
            yield source
        elif isinstance(source, Iterable) and not isinstance(source, (str, bytes)):
            yield from _iter_sources(source)
        else:
            raise TypeError(f"Cannot scan {source!r}: expected a module, a class or an iterable")


def _module_types(module: types.ModuleType) -> Iterator[type]:
    modules = [module]
    if hasattr(module, "__path__"):
        for info in pkgutil.walk_packages(module.__path__, prefix=f"{module.__name__}."):
            modules.append(importlib.import_module(info.name))
    for mod in modules:
        for member in list(vars(mod).values()):
            if isinstance(member, type) and member.__module__ == mod.__name__:
                yield member


def find_capabilities(handler_type: type) -> list[tuple[type, type]]:
    """Return ``(capability, request_type)`` pairs implemented by *handler_type*.

    Type arguments are followed through intermediate generic subclasses
    (``VoidCommandHandler[C]`` resolves to ``CommandHandler[C, Unit]``).
    A union argument yields one pair per member; unbound type variables
    yield nothing.
    """
    found: list[tuple[type, type]] = []
    _collect(handler_type, {}, found)
    unique: list[tuple[type, type]] = []
    for pair in found:
        if pair not in unique:
            unique.append(pair)
    return unique


def _collect(cls: type, substitutions: dict[Any, Any], found: list[tuple[type, type]]) -> None:
    bases = cls.__dict__.get("__orig_bases__", cls.__bases__)
    for base in bases:
        origin = typing.get_origin(base) or base
        if not isinstance(origin, type) or not issubclass(origin, CAPABILITIES):
            continue
        args = tuple(
            substitutions.get(arg, arg) if isinstance(arg, TypeVar) else arg
            for arg in typing.get_args(base)
        )
        if origin in CAPABILITIES:
            if args:
                found.extend((origin, request_type) for request_type in _request_types(args[0]))
            continue
        parameters = getattr(origin, "__parameters__", ())
        _collect(origin, dict(zip(parameters, args)), found)


def _request_types(argument: Any) -> list[type]:
    if typing.get_origin(argument) in (typing.Union, types.UnionType):
        return [a for a in typing.get_args(argument) if isinstance(a, type)]
    if isinstance(argument, type):
        return [argument]
    return []


def _validate(handler_type: type, capability: type, request_type: type) -> None:
    kind = _REQUEST_KINDS[capability]
    if not issubclass(request_type, kind):
        raise InvalidHandlerError(
            handler_type,
            f"{capability.__name__} type argument {request_type.__name__} "
            f"is not a {kind.__name__}",
        )
    handle = getattr(handler_type, "handle", None)
    if handle is None or not inspect.iscoroutinefunction(handle):
        raise InvalidHandlerError(handler_type, "'handle' must be an async method")
    try:
        inspect.signature(handle).bind(handler_type, request_type, None)
    except TypeError:
        raise InvalidHandlerError(
            handler_type, "'handle' must accept (request, cancellation)"
        ) from None


def discover_handlers(
    *sources: Any,
    capabilities: Iterable[type] = CAPABILITIES,
) -> list[HandlerRegistration]:
    """Scan *sources* and classify every concrete handler class."""
    wanted = tuple(capabilities)
    registrations: list[HandlerRegistration] = []
    for candidate in iter_candidate_types(*sources):
        if candidate in _FRAMEWORK_TYPES or inspect.isabstract(candidate):
            continue
        if not issubclass(candidate, CAPABILITIES):
            continue
        for capability, request_type in find_capabilities(candidate):
            if capability not in wanted:
                continue
            _validate(candidate, capability, request_type)
            registrations.append(HandlerRegistration(capability, request_type, candidate))
    return registrations


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_handler(
    services: ServiceCollection,
    handler_type: type,
    *,
    lifetime: Lifetime = Lifetime.SCOPED,
) -> ServiceCollection:
    """Register *handler_type* once per capability it implements.

    Registering the same class twice for the same request type is a no-op.
    A different class claiming an already-handled command or query type
    raises :class:`DuplicateHandlerError`.
    """
    if inspect.isabstract(handler_type):
        raise InvalidHandlerError(handler_type, "abstract classes cannot be registered")
    pairs = find_capabilities(handler_type)
    if not pairs:
        raise InvalidHandlerError(handler_type, "no concrete handler capability found")
    for capability, request_type in pairs:
        _validate(handler_type, capability, request_type)
        _add(services, HandlerRegistration(capability, request_type, handler_type), lifetime)
    return services


def _add(services: ServiceCollection, registration: HandlerRegistration, lifetime: Lifetime) -> None:
    key = registration.key
    existing = services.descriptors(key)
    if any(d.implementation_type is registration.handler_type for d in existing):
        return
    if registration.capability in _SINGLE_HANDLER and existing:
        raise DuplicateHandlerError(
            registration.request_type,
            existing[0].implementation_type or object,
            registration.handler_type,
        )
    services.add(key, registration.handler_type, lifetime)
    logger.debug(
        "cqrs.handler_registered capability=%s request=%s handler=%s",
        registration.capability.__name__,
        registration.request_type.__name__,
        registration.handler_type.__name__,
    )


def _add_discovered(
    services: ServiceCollection,
    capability: type,
    sources: tuple[Any, ...],
    lifetime: Lifetime,
) -> ServiceCollection:
    for registration in discover_handlers(*sources, capabilities=(capability,)):
        _add(services, registration, lifetime)
    return services


def add_command_handlers(
    services: ServiceCollection, *sources: Any, lifetime: Lifetime = Lifetime.SCOPED
) -> ServiceCollection:
    """Register every command handler found in *sources*."""
    return _add_discovered(services, CommandHandler, sources, lifetime)


def add_query_handlers(
    services: ServiceCollection, *sources: Any, lifetime: Lifetime = Lifetime.SCOPED
) -> ServiceCollection:
    """Register every query handler found in *sources*."""
    return _add_discovered(services, QueryHandler, sources, lifetime)


def add_event_handlers(
    services: ServiceCollection, *sources: Any, lifetime: Lifetime = Lifetime.SCOPED
) -> ServiceCollection:
    """Register every domain event handler found in *sources*."""
    return _add_discovered(services, EventHandler, sources, lifetime)


def add_application_handlers(
    services: ServiceCollection, *sources: Any, lifetime: Lifetime = Lifetime.SCOPED
) -> ServiceCollection:
    """Register command, query and event handlers found in *sources*."""
    add_command_handlers(services, *sources, lifetime=lifetime)
    add_query_handlers(services, *sources, lifetime=lifetime)
    add_event_handlers(services, *sources, lifetime=lifetime)
    return services


def add_application_dispatchers(services: ServiceCollection) -> ServiceCollection:
    """Register :class:`CommandQueryDispatcher` and :class:`DomainEventDispatcher` as scoped."""
    from api_standards.application.cqrs.dispatcher import CommandQueryDispatcher
    from api_standards.application.cqrs.event_dispatcher import DomainEventDispatcher

    services.add_scoped(CommandQueryDispatcher)
    services.add_scoped(DomainEventDispatcher)
    return services


__all__ = [
    "CAPABILITIES",
    "HandlerKey",
    "HandlerRegistration",
    "add_application_dispatchers",
    "add_application_handlers",
    "add_command_handlers",
    "add_event_handlers",
    "add_query_handlers",
    "discover_handlers",
    "find_capabilities",
    "iter_candidate_types",
    "register_handler",
]
