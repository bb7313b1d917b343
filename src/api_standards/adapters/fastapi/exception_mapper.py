"""FastAPI adapter – FastAPIExceptionMapper."""
from __future__ import annotations

import logging
from typing import Any, Callable

from api_standards.application.envelope import ApiResponse

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."
UNAUTHORIZED_MESSAGE = "Unauthorized access"
VALIDATION_FAILED_MESSAGE = "Validation failed"


def _require_fastapi() -> None:
    try:
        import fastapi  # noqa: F401
    except ImportError as exc:
        raise ImportError(
            "Install 'api-standards[fastapi]' to use the FastAPI adapter"
        ) from exc


def _correlation_id(request: Any) -> str | None:
    from api_standards.observability.correlation import CorrelationContext

    ctx = getattr(request.state, "request_context", None) or CorrelationContext.get()
    return ctx.correlation_id if ctx is not None else None


class FastAPIExceptionMapper:
    """Register error → HTTP envelope mappings on a FastAPI app.

    Every response body is an :class:`ApiResponse` with ``success=false``.

    Mappings
    --------
    ``ApiError``               → ``status_code``
    ``BaseError``              → ``error_code`` status, details as metadata
    ``KeyError``               → 404
    ``PermissionError``        → 401 ``"Unauthorized access"``
    ``ValueError``             → 400
    ``RequestValidationError`` → 400 ``"Validation failed"``
    any other ``Exception``    → 500 with a generic message

    5xx responses never echo the exception text.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        _require_fastapi()
        self._log = log or logger

    def handlers(self) -> list[tuple[type[Exception], Callable[[Any, Any], Any]]]:
        from fastapi.exceptions import RequestValidationError

        from api_standards.kernel.errors import ApiError, BaseError

        return [
            (ApiError, self._handle_api_error),
            (BaseError, self._handle_base_error),
            (KeyError, self._handle_key_error),
            (PermissionError, self._handle_permission_error),
            (ValueError, self._handle_value_error),
            (RequestValidationError, self._handle_request_validation),
            (Exception, self._handle_unexpected),
        ]

    def register(self, app: Any) -> None:
        """Register all error handlers on a ``FastAPI`` or ``Starlette`` app."""
        for exc_type, handler in self.handlers():
            app.add_exception_handler(exc_type, handler)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _respond(self, request: Any, status: int, body: ApiResponse[Any]) -> Any:
        from fastapi.encoders import jsonable_encoder
        from fastapi.responses import JSONResponse

        correlation_id = _correlation_id(request)
        if correlation_id is not None:
            body.with_metadata("correlationId", correlation_id)
        return JSONResponse(status_code=status, content=jsonable_encoder(body.to_dict()))

    async def _handle_api_error(self, request: Any, exc: Any) -> Any:
        self._log.warning("http.api_error status=%s message=%s", exc.status_code, exc.message)
        body = ApiResponse.error(exc.message)
        for key, value in exc.error_details.items():
            body.with_metadata(key, value)
        return self._respond(request, exc.status_code, body)

    async def _handle_base_error(self, request: Any, exc: Any) -> Any:
        from api_standards.kernel.errors import ValidationError

        status = exc.error_code.status_code
        if status >= 500:
            self._log.error("http.application_error code=%s", exc.code, exc_info=exc)
            return self._respond(request, status, ApiResponse.error(UNEXPECTED_ERROR_MESSAGE))

        self._log.warning("http.domain_error code=%s status=%s message=%s", exc.code, status, exc.message)
        if isinstance(exc, ValidationError):
            body = ApiResponse.error(exc.message, list(exc.errors))
        else:
            body = ApiResponse.error(exc.message)
            for key, value in exc.error_details.items():
                body.with_metadata(key, value)
        return self._respond(request, status, body)

    async def _handle_key_error(self, request: Any, exc: KeyError) -> Any:
        message = str(exc.args[0]) if exc.args else "Resource not found"
        self._log.warning("http.not_found message=%s", message)
        return self._respond(request, 404, ApiResponse.error(message))

    async def _handle_permission_error(self, request: Any, exc: PermissionError) -> Any:
        self._log.warning("http.unauthorized message=%s", exc)
        return self._respond(request, 401, ApiResponse.error(UNAUTHORIZED_MESSAGE))

    async def _handle_value_error(self, request: Any, exc: ValueError) -> Any:
        self._log.warning("http.invalid_argument message=%s", exc)
        return self._respond(request, 400, ApiResponse.error(str(exc), [str(exc)]))

    async def _handle_request_validation(self, request: Any, exc: Any) -> Any:
        by_field: dict[str, list[str]] = {}
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
            by_field.setdefault(".".join(loc) or "request", []).append(error.get("msg", "invalid"))
        self._log.warning("http.request_validation_failed fields=%s", sorted(by_field))
        body = ApiResponse.validation_error(VALIDATION_FAILED_MESSAGE, by_field)
        return self._respond(request, 400, body)

    async def _handle_unexpected(self, request: Any, exc: Exception) -> Any:
        self._log.error("http.unhandled_exception type=%s", type(exc).__name__, exc_info=exc)
        return self._respond(request, 500, ApiResponse.error(UNEXPECTED_ERROR_MESSAGE))


__all__ = [
    "FastAPIExceptionMapper",
    "UNAUTHORIZED_MESSAGE",
    "UNEXPECTED_ERROR_MESSAGE",
    "VALIDATION_FAILED_MESSAGE",
]
