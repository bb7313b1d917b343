"""Application CQRS – ServiceCollection / ServiceProvider (dependency injection).

Usage::

    services = ServiceCollection()
    services.add_singleton(Clock, SystemClock)
    services.add_scoped(UserRepository, SqlUserRepository)
    provider = services.build_provider()

    with provider.create_scope() as scope:
        repo = scope.require(UserRepository)

Registrations are snapshotted by :meth:`ServiceCollection.build_provider`;
the provider never changes afterwards, so concurrent reads need no locking.
Only the singleton cache is shared between scopes and it is guarded.
"""
from __future__ import annotations

import dataclasses
import enum
import inspect
import threading
import typing
from collections.abc import Callable, Hashable, Mapping
from types import MappingProxyType, TracebackType
from typing import Any, TypeVar

from api_standards.kernel.errors import ServiceResolutionError

T = TypeVar("T")


class Lifetime(enum.Enum):
    SINGLETON = "singleton"
    SCOPED = "scoped"
    TRANSIENT = "transient"


@dataclasses.dataclass(frozen=True, eq=False)
class ServiceDescriptor:
    """One registration: how to build the service stored under ``key``."""

    key: Hashable
    factory: Callable[["ServiceProvider"], Any]
    lifetime: Lifetime
    implementation_type: type | None = None


class ServiceCollection:
    """Mutable registration table used at startup."""

    def __init__(self) -> None:
        self._descriptors: dict[Hashable, list[ServiceDescriptor]] = {}

    def add(
        self,
        key: Hashable,
        implementation: type | Callable[["ServiceProvider"], Any] | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> "ServiceCollection":
        """Register *implementation* under *key*.

        *implementation* is either a class (constructor-injected) or a
        factory ``(provider) -> instance``.  When omitted, *key* must be a
        class and registers itself.
        """
        if implementation is None:
            if not isinstance(key, type):
                raise TypeError(f"An implementation is required for key {key!r}")
            implementation = key

        if isinstance(implementation, type):
            cls = implementation
            descriptor = ServiceDescriptor(
                key=key,
                factory=lambda provider: provider.construct(cls),
                lifetime=lifetime,
                implementation_type=cls,
            )
        else:
            descriptor = ServiceDescriptor(key=key, factory=implementation, lifetime=lifetime)
        self._descriptors.setdefault(key, []).append(descriptor)
        return self

    def add_singleton(self, key: Hashable, implementation: Any = None) -> "ServiceCollection":
        return self.add(key, implementation, Lifetime.SINGLETON)

    def add_scoped(self, key: Hashable, implementation: Any = None) -> "ServiceCollection":
        return self.add(key, implementation, Lifetime.SCOPED)

    def add_transient(self, key: Hashable, implementation: Any = None) -> "ServiceCollection":
        return self.add(key, implementation, Lifetime.TRANSIENT)

    def add_instance(self, key: Hashable, instance: Any) -> "ServiceCollection":
        """Register an already-built object as a singleton."""
        self._descriptors.setdefault(key, []).append(
            ServiceDescriptor(
                key=key,
                factory=lambda _provider: instance,
                lifetime=Lifetime.SINGLETON,
                implementation_type=type(instance),
            )
        )
        return self

    def descriptors(self, key: Hashable) -> tuple[ServiceDescriptor, ...]:
        return tuple(self._descriptors.get(key, ()))

    def keys(self) -> list[Hashable]:
        return list(self._descriptors)

    def __contains__(self, key: object) -> bool:
        return bool(self._descriptors.get(key))  # type: ignore[call-overload]

    def __len__(self) -> int:
        return sum(len(d) for d in self._descriptors.values())

    def build_provider(self) -> "ServiceProvider":
        """Freeze the current registrations into a root :class:`ServiceProvider`."""
        snapshot = {key: tuple(items) for key, items in self._descriptors.items()}
        return ServiceProvider(MappingProxyType(snapshot))


class ServiceProvider:
    """Resolve services from a frozen registration table.

    The root provider owns singletons; each :meth:`create_scope` call returns
    a child provider with its own scoped instances (one per unit of work).
    The root never caches scoped services: resolving one there builds a
    fresh instance each time, so nothing scoped outlives its unit of work.
    """

    def __init__(
        self,
        descriptors: Mapping[Hashable, tuple[ServiceDescriptor, ...]],
        *,
        root: "ServiceProvider | None" = None,
    ) -> None:
        self._descriptors = descriptors
        self._root = root or self
        self._scoped: dict[ServiceDescriptor, Any] = {}
        if root is None:
            self._singletons: dict[ServiceDescriptor, Any] = {}
            self._singleton_lock = threading.RLock()

    @property
    def is_root(self) -> bool:
        return self._root is self

    def create_scope(self) -> "ServiceProvider":
        return ServiceProvider(self._descriptors, root=self._root)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, key: Hashable) -> Any | None:
        """Return the last service registered under *key*, or ``None``."""
        descriptors = self._descriptors.get(key)
        if not descriptors:
            return None
        return self._instantiate(descriptors[-1])

    def resolve_all(self, key: Hashable) -> list[Any]:
        """Return every service registered under *key*, in registration order."""
        return [self._instantiate(d) for d in self._descriptors.get(key, ())]

    def registrations(self, key: Hashable) -> tuple[ServiceDescriptor, ...]:
        """Return the descriptors registered under *key* without building them."""
        return tuple(self._descriptors.get(key, ()))

    def instantiate(self, descriptor: ServiceDescriptor) -> Any:
        """Build (or fetch the cached) service described by *descriptor*."""
        return self._instantiate(descriptor)

    def require(self, key: Hashable) -> Any:
        service = self.resolve(key)
        if service is None:
            raise ServiceResolutionError(f"No service registered for {_describe(key)}")
        return service

    def is_registered(self, key: Hashable) -> bool:
        return bool(self._descriptors.get(key))

    def _instantiate(self, descriptor: ServiceDescriptor) -> Any:
        if descriptor.lifetime is Lifetime.TRANSIENT:
            return descriptor.factory(self)
        if descriptor.lifetime is Lifetime.SCOPED:
            if self.is_root:
                return descriptor.factory(self)
            if descriptor not in self._scoped:
                self._scoped[descriptor] = descriptor.factory(self)
            return self._scoped[descriptor]
        root = self._root
        with root._singleton_lock:
            if descriptor not in root._singletons:
                root._singletons[descriptor] = descriptor.factory(root)
            return root._singletons[descriptor]

    def construct(self, cls: type[T]) -> T:
        """Instantiate *cls*, resolving its annotated ``__init__`` parameters.

        A parameter annotated ``ServiceProvider`` receives this provider.
        Unresolvable parameters fall back to their default, if any.
        """
        try:
            hints = typing.get_type_hints(cls.__init__)
        except (NameError, TypeError):
            hints = {}
        try:
            parameters = inspect.signature(cls).parameters
        except (TypeError, ValueError):
            parameters = MappingProxyType({})

        kwargs: dict[str, Any] = {}
        for name, parameter in parameters.items():
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                continue
            annotation = hints.get(name)
            if annotation is ServiceProvider:
                kwargs[name] = self
                continue
            value = self.resolve(annotation) if _is_hashable(annotation) else None
            if value is not None:
                kwargs[name] = value
            elif parameter.default is parameter.empty:
                raise ServiceResolutionError(
                    f"Cannot construct {cls.__name__}: no service registered for "
                    f"parameter {name!r} ({_describe(annotation)})"
                )
        try:
            return cls(**kwargs)
        except ServiceResolutionError:
            raise
        except Exception as exc:
            raise ServiceResolutionError(
                f"Failed to construct {cls.__name__}: {exc}", cause=exc
            ) from exc

    # ------------------------------------------------------------------
    # Scope lifecycle
    # ------------------------------------------------------------------

    def dispose(self) -> None:
        """Forget scoped instances; singletons live as long as the root."""
        self._scoped.clear()

    def __enter__(self) -> "ServiceProvider":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    async def __aenter__(self) -> "ServiceProvider":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()


def _is_hashable(value: Any) -> bool:
    if value is None:
        return False
    try:
        hash(value)
    except TypeError:
        return False
    return True


def _describe(key: Any) -> str:
    return getattr(key, "__name__", None) or repr(key)


__all__ = ["Lifetime", "ServiceCollection", "ServiceDescriptor", "ServiceProvider"]
