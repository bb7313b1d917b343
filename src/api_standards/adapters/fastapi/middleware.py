"""FastAPI adapter – ASGI middleware implementations.

Pure ASGI classes (no ``BaseHTTPMiddleware``) so context variables set here
stay visible to the endpoint running in the same task.

The request context is shared two ways: the ambient
:class:`~api_standards.observability.correlation.CorrelationContext` and
``scope["state"]["request_context"]`` (``request.state.request_context``).
"""
from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Awaitable, Callable
from uuid import uuid4

import structlog

from api_standards.application.envelope import ApiResponse
from api_standards.config.settings import ApiStandardsSettings
from api_standards.kernel.security import Principal, SecurityContext
from api_standards.observability.correlation import CorrelationContext, RequestContext

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

TokenVerifier = Callable[[str], Awaitable["Principal | Mapping[str, Any] | None"]]

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'none'; upgrade-insecure-requests;",
    "Permissions-Policy": (
        "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
        "magnetometer=(), microphone=(), payment=(), usb=()"
    ),
}

REMOVED_HEADERS: frozenset[bytes] = frozenset({b"server", b"x-powered-by"})

TENANT_MISMATCH_MESSAGE = (
    "Tenant context mismatch. You cannot access resources from a different tenant."
)


def _require_fastapi() -> None:
    try:
        import fastapi  # noqa: F401
    except ImportError as exc:
        raise ImportError(
            "Install 'api-standards[fastapi]' to use the FastAPI adapter"
        ) from exc


def _header(scope: "Scope", name: str) -> str | None:
    wanted = name.lower().encode()
    for key, value in scope.get("headers", []):
        if key == wanted:
            return value.decode("latin-1").strip() or None
    return None


def _state(scope: "Scope") -> dict[str, Any]:
    return scope.setdefault("state", {})


def _scope_context(scope: "Scope") -> RequestContext | None:
    return _state(scope).get("request_context") or CorrelationContext.get()


async def _send_envelope(send: "Send", status: int, response: ApiResponse[Any]) -> None:
    body = json.dumps(response.to_dict()).encode()
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode()),
            ],
        }
    )
    await send({"type": "http.response.body", "body": body})


def context_with_principal(
    ctx: RequestContext,
    principal: Principal,
    settings: ApiStandardsSettings,
    tenant_header: str | None = None,
) -> RequestContext:
    """Fill user and tenant ids from verified claims.

    User id: configured claim, then ``sub``.  Tenant id (multi-tenancy only):
    configured claim, then the tenant header.
    """
    user_id = principal.claim(settings.jwt.user_id_claim_type) or principal.claim("sub")
    tenant_id = ctx.tenant_id
    if settings.enable_multi_tenancy:
        tenant_id = principal.claim(settings.jwt.tenant_id_claim_type) or tenant_header or tenant_id
    return RequestContext(
        correlation_id=ctx.correlation_id,
        tenant_id=tenant_id,
        user_id=user_id or ctx.user_id,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent,
        values=ctx.values,
    )


# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------

class SecurityHeadersMiddleware:
    """Add hardening headers to every HTTP response and strip server banners."""

    def __init__(self, app: "ASGIApp", headers: Mapping[str, str] | None = None) -> None:
        _require_fastapi()
        self.app = app
        self._headers = [
            (k.lower().encode(), v.encode()) for k, v in (headers or SECURITY_HEADERS).items()
        ]
        self._names = frozenset(k for k, _ in self._headers) | REMOVED_HEADERS

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: "Message") -> None:
            if message["type"] == "http.response.start":
                kept = [(k, v) for k, v in message.get("headers", []) if k.lower() not in self._names]
                message = {**message, "headers": kept + self._headers}
                logger.debug("http.security_headers_added path=%s", scope.get("path"))
            await send(message)

        await self.app(scope, receive, send_with_headers)


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------

class RequestLoggingMiddleware:
    """Log request start and completion with status and elapsed time.

    Completion is logged at INFO below 400, WARNING for 4xx and ERROR for
    5xx.  Exceptions are logged and re-raised.
    """

    def __init__(self, app: "ASGIApp", log: logging.Logger | None = None) -> None:
        _require_fastapi()
        self.app = app
        self._log = log or logger

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        path = scope.get("path", "")
        client = scope.get("client")
        ctx = _scope_context(scope)
        self._log.info(
            "http.request_started method=%s path=%s correlation_id=%s tenant_id=%s user_id=%s ip=%s",
            method,
            path,
            ctx.correlation_id if ctx else _header(scope, "x-correlation-id"),
            (ctx.tenant_id if ctx else None) or "N/A",
            (ctx.user_id if ctx else None) or "Anonymous",
            client[0] if client else "Unknown",
        )

        status_code = [500]
        start = time.perf_counter()

        async def send_capturing(message: "Message") -> None:
            if message["type"] == "http.response.start":
                status_code[0] = message.get("status", 200)
            await send(message)

        try:
            await self.app(scope, receive, send_capturing)
        except Exception:
            ctx = _scope_context(scope)
            self._log.exception(
                "http.request_failed method=%s path=%s elapsed_ms=%d correlation_id=%s",
                method,
                path,
                (time.perf_counter() - start) * 1000,
                ctx.correlation_id if ctx else None,
            )
            raise

        status = status_code[0]
        if status < 400:
            level = logging.INFO
        elif status < 500:
            level = logging.WARNING
        else:
            level = logging.ERROR
        ctx = _scope_context(scope)
        self._log.log(
            level,
            "http.request_completed method=%s path=%s status=%s elapsed_ms=%d correlation_id=%s",
            method,
            path,
            status,
            (time.perf_counter() - start) * 1000,
            ctx.correlation_id if ctx else None,
        )


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

class RequestContextMiddleware:
    """Build the per-request :class:`RequestContext`.

    The correlation id comes from the configured header (a UUID is generated
    otherwise) and is echoed on the response.  Everything is cleared once the
    request completes.
    """

    def __init__(self, app: "ASGIApp", settings: ApiStandardsSettings | None = None) -> None:
        _require_fastapi()
        self.app = app
        self._settings = settings or ApiStandardsSettings()

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        settings = self._settings
        correlation_id = None
        if settings.enable_correlation_id:
            correlation_id = _header(scope, settings.correlation_id_header)
        correlation_id = correlation_id or str(uuid4())

        client = scope.get("client")
        ctx = RequestContext(
            correlation_id=correlation_id,
            tenant_id=_header(scope, settings.tenant_id_header) if settings.enable_multi_tenancy else None,
            ip_address=client[0] if client else None,
            user_agent=_header(scope, "user-agent"),
        )
        principal = SecurityContext.get_current()
        if principal is not None:
            ctx = context_with_principal(ctx, principal, settings, ctx.tenant_id)

        logger.debug(
            "request_context.set correlation_id=%s tenant_id=%s user_id=%s",
            ctx.correlation_id,
            ctx.tenant_id,
            ctx.user_id,
        )

        state = _state(scope)
        state["request_context"] = ctx
        token = CorrelationContext.set(ctx)
        bound = ctx.log_fields()
        structlog.contextvars.bind_contextvars(**bound)

        echo = settings.enable_correlation_id
        header_name = settings.correlation_id_header.lower().encode()
        encoded_id = correlation_id.encode()

        async def send_with_correlation(message: "Message") -> None:
            if echo and message["type"] == "http.response.start":
                headers = [(k, v) for k, v in message.get("headers", []) if k != header_name]
                message = {**message, "headers": headers + [(header_name, encoded_id)]}
            await send(message)

        try:
            await self.app(scope, receive, send_with_correlation)
        finally:
            structlog.contextvars.unbind_contextvars(*bound, "tenant_id", "user_id")
            CorrelationContext.reset(token)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class AuthenticationMiddleware:
    """Extract a Bearer token, verify it and populate :class:`SecurityContext`.

    Parameters
    ----------
    verifier:
        ``async (token) -> Principal | claims mapping | None``.  Signature and
        lifetime checks happen there.
    require_auth:
        When ``True`` requests without a valid token receive a 401 envelope.
    """

    def __init__(
        self,
        app: "ASGIApp",
        verifier: TokenVerifier | None = None,
        settings: ApiStandardsSettings | None = None,
        require_auth: bool = False,
    ) -> None:
        _require_fastapi()
        self.app = app
        self._verifier = verifier
        self._settings = settings or ApiStandardsSettings()
        self._require_auth = require_auth

    async def _authenticate(self, scope: "Scope") -> Principal | None:
        auth_value = _header(scope, "authorization") or ""
        if not auth_value.lower().startswith("bearer ") or self._verifier is None:
            return None
        token = auth_value[7:].strip()
        if not token:
            return None
        try:
            result = await self._verifier(token)
        except Exception as exc:  # noqa: BLE001
            logger.warning("auth.token_rejected path=%s reason=%s", scope.get("path"), exc)
            return None
        if result is None or isinstance(result, Principal):
            return result
        return Principal.from_claims(dict(result))

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        principal = await self._authenticate(scope)
        if principal is None:
            if self._require_auth:
                logger.info("auth.unauthenticated path=%s", scope.get("path"))
                await _send_envelope(send, 401, ApiResponse.error("Unauthorized access"))
                return
            await self.app(scope, receive, send)
            return

        state = _state(scope)
        state["principal"] = principal
        security_token = SecurityContext.set_current(principal)
        context_token = None
        log_fields: dict[str, str] = {}
        ctx = _scope_context(scope)
        if ctx is not None:
            ctx = context_with_principal(
                ctx, principal, self._settings, _header(scope, self._settings.tenant_id_header)
            )
            state["request_context"] = ctx
            context_token = CorrelationContext.set(ctx)
            log_fields = ctx.log_fields()
        try:
            with structlog.contextvars.bound_contextvars(**log_fields):
                await self.app(scope, receive, send)
        finally:
            if context_token is not None:
                CorrelationContext.reset(context_token)
            SecurityContext.reset(security_token)


# ---------------------------------------------------------------------------
# Tenant validation
# ---------------------------------------------------------------------------

class TenantJwtValidationMiddleware:
    """Reject requests whose tenant claim differs from the tenant header.

    Active only when multi-tenancy and JWT tenant validation are both on.
    Comparison is case-insensitive; a missing claim or header passes.
    """

    def __init__(self, app: "ASGIApp", settings: ApiStandardsSettings | None = None) -> None:
        _require_fastapi()
        self.app = app
        self._settings = settings or ApiStandardsSettings()

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        settings = self._settings
        if (
            scope["type"] != "http"
            or not settings.enable_multi_tenancy
            or not settings.validate_tenant_from_jwt
        ):
            await self.app(scope, receive, send)
            return

        principal = SecurityContext.get_current()
        if principal is not None:
            jwt_tenant = principal.claim(settings.jwt.tenant_id_claim_type)
            header_tenant = _header(scope, settings.tenant_id_header)
            if jwt_tenant and header_tenant and jwt_tenant.casefold() != header_tenant.casefold():
                logger.warning(
                    "tenant.mismatch jwt_tenant_id=%s header=%s header_tenant_id=%s",
                    jwt_tenant,
                    settings.tenant_id_header,
                    header_tenant,
                )
                await _send_envelope(send, 403, ApiResponse.error(TENANT_MISMATCH_MESSAGE))
                return

        await self.app(scope, receive, send)


__all__ = [
    "AuthenticationMiddleware",
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
    "SECURITY_HEADERS",
    "SecurityHeadersMiddleware",
    "TENANT_MISMATCH_MESSAGE",
    "TenantJwtValidationMiddleware",
    "TokenVerifier",
    "context_with_principal",
]
