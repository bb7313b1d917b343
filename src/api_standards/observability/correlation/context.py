"""Observability – RequestContext, CorrelationContext."""
from __future__ import annotations

import contextlib
import dataclasses
from collections.abc import Iterator
from contextvars import ContextVar, Token
from types import MappingProxyType
from typing import Any, Mapping
from uuid import uuid4


@dataclasses.dataclass(frozen=True)
class RequestContext:
    """Per-request metadata shared by middleware, handlers and log records.

    ``values`` carries custom entries such as route parameters
    (``route_<name>``).  Instances are immutable; use :meth:`with_value`.
    """

    correlation_id: str
    tenant_id: str | None = None
    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    values: Mapping[str, Any] = dataclasses.field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @classmethod
    def new(cls, **kwargs: Any) -> "RequestContext":
        return cls(correlation_id=str(uuid4()), **kwargs)

    def with_value(self, key: str, value: Any) -> "RequestContext":
        """Return a copy with *key* set; a ``None`` value removes the key."""
        values = dict(self.values)
        if value is None:
            values.pop(key, None)
        else:
            values[key] = value
        return dataclasses.replace(self, values=MappingProxyType(values))

    def get_value(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def log_fields(self) -> dict[str, str]:
        """Non-empty identity fields, for binding onto log records."""
        fields = {
            "correlation_id": self.correlation_id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
        }
        return {k: v for k, v in fields.items() if v}


_CTX_VAR: ContextVar[RequestContext | None] = ContextVar("_api_request_ctx", default=None)


class CorrelationContext:
    """Ambient request context stored in a ``ContextVar``.

    Each asyncio task sees its own copy, so concurrent requests never observe
    each other's context.
    """

    @staticmethod
    def set(ctx: RequestContext) -> Token[RequestContext | None]:
        return _CTX_VAR.set(ctx)

    @staticmethod
    def get() -> RequestContext | None:
        return _CTX_VAR.get()

    @staticmethod
    def require() -> RequestContext:
        ctx = _CTX_VAR.get()
        if ctx is None:
            raise RuntimeError("No RequestContext in current context")
        return ctx

    @staticmethod
    def get_or_new() -> RequestContext:
        ctx = _CTX_VAR.get()
        if ctx is None:
            ctx = RequestContext.new()
            _CTX_VAR.set(ctx)
        return ctx

    @staticmethod
    def clear() -> None:
        _CTX_VAR.set(None)

    @staticmethod
    def reset(token: Token[RequestContext | None]) -> None:
        _CTX_VAR.reset(token)

    @staticmethod
    @contextlib.contextmanager
    def scoped(ctx: RequestContext) -> Iterator[RequestContext]:
        """Install *ctx* for the duration of a ``with`` block."""
        token = _CTX_VAR.set(ctx)
        try:
            yield ctx
        finally:
            _CTX_VAR.reset(token)


__all__ = ["CorrelationContext", "RequestContext"]
