"""FastAPI adapter – one-call wiring of the default API pipeline."""
from __future__ import annotations

import logging
from typing import Any

from api_standards.adapters.fastapi.exception_mapper import FastAPIExceptionMapper
from api_standards.adapters.fastapi.middleware import (
    AuthenticationMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    TenantJwtValidationMiddleware,
    TokenVerifier,
)
from api_standards.application.cqrs import (
    ServiceCollection,
    ServiceProvider,
    add_application_dispatchers,
)
from api_standards.config.settings import (
    ApiStandardsSettings,
    CorsSettings,
    FileUploadSettings,
    JwtSettings,
)

logger = logging.getLogger(__name__)


def add_api_standards(
    services: ServiceCollection,
    settings: ApiStandardsSettings | None = None,
) -> ServiceCollection:
    """Register settings instances and both dispatchers in *services*."""
    settings = settings or ApiStandardsSettings()
    services.add_instance(ApiStandardsSettings, settings)
    services.add_instance(JwtSettings, settings.jwt)
    services.add_instance(CorsSettings, settings.cors)
    services.add_instance(FileUploadSettings, settings.file_upload)
    return add_application_dispatchers(services)


def add_default_api(
    app: Any,
    settings: ApiStandardsSettings | None = None,
    provider: ServiceProvider | None = None,
    verifier: TokenVerifier | None = None,
    require_auth: bool = False,
) -> Any:
    """Install exception mapping, app state and the middleware pipeline.

    Outermost to innermost: security headers, request logging, CORS,
    request context, authentication, tenant validation.  Each stage is
    skipped when its toggle in *settings* is off; authentication is
    installed only when a *verifier* is given.
    """
    from starlette.middleware.cors import CORSMiddleware

    settings = settings or ApiStandardsSettings()
    FastAPIExceptionMapper().register(app)
    app.state.api_settings = settings
    if provider is not None:
        app.state.service_provider = provider

    # add_middleware prepends, so install innermost first
    installed: list[str] = []
    if settings.enable_multi_tenancy and settings.validate_tenant_from_jwt:
        app.add_middleware(TenantJwtValidationMiddleware, settings=settings)
        installed.append("tenant_validation")
    if verifier is not None:
        app.add_middleware(
            AuthenticationMiddleware,
            verifier=verifier,
            settings=settings,
            require_auth=require_auth,
        )
        installed.append("authentication")
    if settings.enable_request_context:
        app.add_middleware(RequestContextMiddleware, settings=settings)
        installed.append("request_context")
    if settings.enable_cors:
        app.add_middleware(CORSMiddleware, **settings.cors.middleware_kwargs())
        installed.append("cors")
    if settings.enable_request_logging:
        app.add_middleware(RequestLoggingMiddleware)
        installed.append("request_logging")
    if settings.enable_security_headers:
        app.add_middleware(SecurityHeadersMiddleware)
        installed.append("security_headers")

    logger.info("api.pipeline_configured middleware=%s", ",".join(reversed(installed)))
    return app


__all__ = ["add_api_standards", "add_default_api"]
