"""Application-layer errors: wiring defects and cancellation."""

from __future__ import annotations

from typing import Any

from api_standards.kernel.errors.base import BaseError
from api_standards.kernel.errors.codes import ErrorCode


class ApplicationError(BaseError):
    """Cross-cutting application-layer concern."""

    default_code = "application_error"
    error_code = ErrorCode.INTERNAL_ERROR


class ConfigurationError(ApplicationError):
    """The process is wired incorrectly (missing or conflicting registrations).

    Signals a deployment defect, never a user error: callers must not retry.
    """

    default_code = "configuration_error"


class HandlerNotRegisteredError(ConfigurationError):
    """No handler is registered for a command/query's concrete type."""

    default_code = "handler_not_registered"

    def __init__(self, request_type: type, capability: type, **kwargs: Any) -> None:
        super().__init__(
            f"No handler registered for {request_type.__name__}. "
            f"Ensure a {capability.__name__} for it is registered in the service collection.",
            **kwargs,
        )
        self.request_type = request_type
        self.capability = capability


class DuplicateHandlerError(ConfigurationError):
    """A second handler claimed a command/query type that already has one."""

    default_code = "duplicate_handler"

    def __init__(
        self,
        request_type: type,
        existing: type,
        duplicate: type,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"{request_type.__name__} is already handled by {existing.__name__}; "
            f"cannot also register {duplicate.__name__}",
            **kwargs,
        )
        self.request_type = request_type
        self.existing = existing
        self.duplicate = duplicate


class InvalidHandlerError(ConfigurationError):
    """A handler class does not expose a usable ``handle`` coroutine."""

    default_code = "invalid_handler"

    def __init__(self, handler_type: type, reason: str, **kwargs: Any) -> None:
        super().__init__(f"Handler {handler_type.__name__} is invalid: {reason}", **kwargs)
        self.handler_type = handler_type
        self.reason = reason


class ServiceResolutionError(ConfigurationError):
    """A registered service could not be constructed."""

    default_code = "service_resolution_error"


class OperationCancelledError(ApplicationError):
    """A cooperative cancellation signal was observed."""

    default_code = "operation_cancelled"

    def __init__(self, message: str = "The operation was cancelled.", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


__all__ = [
    "ApplicationError",
    "ConfigurationError",
    "DuplicateHandlerError",
    "HandlerNotRegisteredError",
    "InvalidHandlerError",
    "OperationCancelledError",
    "ServiceResolutionError",
]
