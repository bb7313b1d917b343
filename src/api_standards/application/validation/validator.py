"""Application validation – request validators resolved from the container."""
from __future__ import annotations

import abc
import dataclasses
import inspect
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from api_standards.application.cqrs.container import Lifetime, ServiceCollection, ServiceProvider
from api_standards.application.cqrs.registry import HandlerKey
from api_standards.kernel.errors import ValidationError

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class ValidationFailure:
    property_name: str
    message: str


class Validator(abc.ABC, Generic[T]):
    """Checks one request type.  ``validate`` may be sync or a coroutine."""

    @abc.abstractmethod
    def validate(self, instance: T) -> Iterable[ValidationFailure]: ...


def validator_key(request_type: type) -> HandlerKey:
    return HandlerKey(Validator, request_type)


def add_validator(
    services: ServiceCollection,
    request_type: type,
    validator: Any,
    *,
    lifetime: Lifetime = Lifetime.SCOPED,
) -> ServiceCollection:
    """Register *validator* (class, factory or instance) for *request_type*."""
    if isinstance(validator, Validator):
        return services.add_instance(validator_key(request_type), validator)
    return services.add(validator_key(request_type), validator, lifetime)


async def collect_failures(provider: ServiceProvider, instance: Any) -> list[ValidationFailure]:
    """Run every validator registered for ``type(instance)``, in registration order."""
    failures: list[ValidationFailure] = []
    for validator in provider.resolve_all(validator_key(type(instance))):
        result = validator.validate(instance)
        if inspect.isawaitable(result):
            result = await result
        failures.extend(result or ())
    return failures


async def validate_request(provider: ServiceProvider, instance: Any) -> None:
    """Raise :class:`ValidationError` when any registered validator fails."""
    failures = await collect_failures(provider, instance)
    if failures:
        raise ValidationError("Validation failed", errors=[f.message for f in failures])


def group_by_property(failures: Iterable[ValidationFailure]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for failure in failures:
        grouped.setdefault(failure.property_name, []).append(failure.message)
    return grouped


__all__ = [
    "ValidationFailure",
    "Validator",
    "add_validator",
    "collect_failures",
    "group_by_property",
    "validate_request",
    "validator_key",
]
