"""FastAPI adapter – middleware, exception mapper, endpoint filters, deps."""
from api_standards.adapters.fastapi.deps import (
    get_dispatcher,
    get_event_dispatcher,
    get_principal,
    get_request_context,
    get_service_scope,
    get_settings,
)
from api_standards.adapters.fastapi.exception_mapper import FastAPIExceptionMapper
from api_standards.adapters.fastapi.filters import (
    FileUploadValidationFilter,
    ImageExtensionValidationFilter,
    ValidationFilter,
)
from api_standards.adapters.fastapi.middleware import (
    AuthenticationMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    TenantJwtValidationMiddleware,
)
from api_standards.adapters.fastapi.setup import add_api_standards, add_default_api

__all__ = [
    "AuthenticationMiddleware",
    "FastAPIExceptionMapper",
    "FileUploadValidationFilter",
    "ImageExtensionValidationFilter",
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "TenantJwtValidationMiddleware",
    "ValidationFilter",
    "add_api_standards",
    "add_default_api",
    "get_dispatcher",
    "get_event_dispatcher",
    "get_principal",
    "get_request_context",
    "get_service_scope",
    "get_settings",
]
