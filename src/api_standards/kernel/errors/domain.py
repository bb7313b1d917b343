"""Domain errors: business rule violations and invalid requests."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from api_standards.kernel.errors.base import BaseError
from api_standards.kernel.errors.codes import ErrorCode


class DomainError(BaseError):
    """Raised when a domain rule / invariant is violated."""

    default_code = "domain_error"
    error_code = ErrorCode.UNPROCESSABLE_ENTITY


class BadRequestError(DomainError):
    """A business rule rejected the request.

    ``rule_name`` identifies the violated rule when known.
    """

    default_code = "bad_request"
    error_code = ErrorCode.BAD_REQUEST

    def __init__(self, message: str, rule_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.rule_name = rule_name
        if rule_name is not None:
            self.add_error_detail("ruleName", rule_name)


class ValidationError(DomainError):
    """Input data does not meet validation rules.

    Accepts either a list of error messages (generic message) or a single
    message, optionally with an explicit list of errors::

        ValidationError(["name is required", "email is invalid"])
        ValidationError("name is required")
        ValidationError("Validation failed", errors=["name is required"])
    """

    default_code = "validation_error"
    error_code = ErrorCode.BAD_REQUEST

    def __init__(
        self,
        message_or_errors: str | Iterable[str],
        *,
        errors: Iterable[str] | None = None,
        **kwargs: Any,
    ) -> None:
        if isinstance(message_or_errors, str):
            message = message_or_errors
            collected = list(errors) if errors is not None else [message_or_errors]
        else:
            message = "One or more validation errors occurred."
            collected = list(message_or_errors)
        super().__init__(message, **kwargs)
        self.errors: tuple[str, ...] = tuple(collected)
        self.add_error_detail("errors", list(self.errors))

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base["errors"] = list(self.errors)
        return base


class NotFoundError(DomainError):
    """The requested resource does not exist."""

    default_code = "not_found"
    error_code = ErrorCode.NOT_FOUND

    def __init__(
        self,
        resource_type: str,
        resource_id: Any = None,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        if resource_id is None and message is None:
            # single-argument form carries a free-text message
            super().__init__(resource_type, **kwargs)
            self.resource_type = "Resource"
            self.resource_id: Any = "Unknown"
            return
        super().__init__(
            message or f"{resource_type} with ID '{resource_id}' was not found.", **kwargs
        )
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.add_error_detail("resourceType", resource_type)
        self.add_error_detail("resourceId", resource_id)


class ConflictError(DomainError):
    """The operation conflicts with existing state (duplicate, stale version, ...)."""

    default_code = "conflict"
    error_code = ErrorCode.CONFLICT

    def __init__(
        self,
        property_name: str,
        property_value: Any = None,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        if property_value is None and message is None:
            super().__init__(property_name, **kwargs)
            self.property_name = "Unknown"
            self.property_value: Any = "Unknown"
            return
        super().__init__(
            message or f"A resource with {property_name} '{property_value}' already exists.",
            **kwargs,
        )
        self.property_name = property_name
        self.property_value = property_value
        self.add_error_detail("propertyName", property_name)
        self.add_error_detail("propertyValue", property_value)


class ForbiddenError(DomainError):
    """Authenticated principal may not access the resource."""

    default_code = "forbidden"
    error_code = ErrorCode.FORBIDDEN

    def __init__(
        self,
        message: str = "You do not have permission to access this resource.",
        reason: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason
        if reason is not None:
            self.add_error_detail("reason", reason)


class UnauthorizedError(DomainError):
    """Missing or invalid credentials."""

    default_code = "unauthorized"
    error_code = ErrorCode.UNAUTHORIZED

    def __init__(
        self,
        message: str = "Authentication is required to access this resource.",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)


__all__ = [
    "BadRequestError",
    "ConflictError",
    "DomainError",
    "ForbiddenError",
    "NotFoundError",
    "UnauthorizedError",
    "ValidationError",
]
