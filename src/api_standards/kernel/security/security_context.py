"""Kernel security – ambient Principal for the current request."""
from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextvars import ContextVar, Token

from api_standards.kernel.errors import ForbiddenError, UnauthorizedError
from api_standards.kernel.security.principal import Principal

_PRINCIPAL: ContextVar[Principal | None] = ContextVar("_api_principal", default=None)


class SecurityContext:
    """Holds the authenticated :class:`Principal` of the running task.

    Set by the authentication middleware and reset when the request ends.
    Code that already has the request should prefer ``request.state.principal``.
    """

    @staticmethod
    def get_current() -> Principal | None:
        return _PRINCIPAL.get()

    @staticmethod
    def set_current(principal: Principal) -> Token[Principal | None]:
        return _PRINCIPAL.set(principal)

    @staticmethod
    def reset(token: Token[Principal | None]) -> None:
        _PRINCIPAL.reset(token)

    @staticmethod
    def clear() -> None:
        _PRINCIPAL.set(None)

    @staticmethod
    def require() -> Principal:
        """Return the principal or raise :class:`UnauthorizedError`."""
        principal = _PRINCIPAL.get()
        if principal is None:
            raise UnauthorizedError()
        return principal

    @staticmethod
    def require_role(role: str) -> Principal:
        """Return the principal when it holds *role*, else raise :class:`ForbiddenError`."""
        principal = SecurityContext.require()
        if not principal.has_role(role):
            raise ForbiddenError(reason=f"missing role '{role}'")
        return principal

    @staticmethod
    @contextlib.contextmanager
    def scoped(principal: Principal) -> Iterator[Principal]:
        token = _PRINCIPAL.set(principal)
        try:
            yield principal
        finally:
            _PRINCIPAL.reset(token)


__all__ = ["SecurityContext"]
