"""Application CQRS – Commands, Queries, Events, dispatchers and handler registry."""
from api_standards.application.cqrs.cancellation import CancellationToken
from api_standards.application.cqrs.commands import (
    UNIT,
    Command,
    CommandHandler,
    Unit,
    VoidCommandHandler,
)
from api_standards.application.cqrs.container import (
    Lifetime,
    ServiceCollection,
    ServiceDescriptor,
    ServiceProvider,
)
from api_standards.application.cqrs.dispatcher import CommandQueryDispatcher
from api_standards.application.cqrs.event_dispatcher import DomainEventDispatcher
from api_standards.application.cqrs.events import EventHandler
from api_standards.application.cqrs.queries import Query, QueryHandler
from api_standards.application.cqrs.registry import (
    HandlerKey,
    HandlerRegistration,
    add_application_dispatchers,
    add_application_handlers,
    add_command_handlers,
    add_event_handlers,
    add_query_handlers,
    discover_handlers,
    find_capabilities,
    register_handler,
)

__all__ = [
    "UNIT",
    "CancellationToken",
    "Command",
    "CommandHandler",
    "CommandQueryDispatcher",
    "DomainEventDispatcher",
    "EventHandler",
    "HandlerKey",
    "HandlerRegistration",
    "Lifetime",
    "Query",
    "QueryHandler",
    "ServiceCollection",
    "ServiceDescriptor",
    "ServiceProvider",
    "Unit",
    "VoidCommandHandler",
    "add_application_dispatchers",
    "add_application_handlers",
    "add_command_handlers",
    "add_event_handlers",
    "add_query_handlers",
    "discover_handlers",
    "find_capabilities",
    "register_handler",
]
