"""Unit / integration tests for the FastAPI adapter."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any

import pytest
import structlog
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient
from pydantic import BaseModel

# Imported at module level so FastAPI can resolve string-form annotations
# against this module's globals.
from starlette.datastructures import UploadFile as FormFile

from api_standards.adapters.fastapi import (
    AuthenticationMiddleware,
    FileUploadValidationFilter,
    ImageExtensionValidationFilter,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    TenantJwtValidationMiddleware,
    ValidationFilter,
    add_api_standards,
    add_default_api,
    get_dispatcher,
    get_principal,
    get_request_context,
    get_service_scope,
)
from api_standards.adapters.fastapi.exception_mapper import (
    UNAUTHORIZED_MESSAGE,
    UNEXPECTED_ERROR_MESSAGE,
    FastAPIExceptionMapper,
)
from api_standards.adapters.fastapi.filters import NO_FILE_MESSAGE
from api_standards.adapters.fastapi.middleware import (
    SECURITY_HEADERS,
    TENANT_MISMATCH_MESSAGE,
    context_with_principal,
)
from api_standards.application.cqrs import (
    CancellationToken,
    Command,
    CommandHandler,
    CommandQueryDispatcher,
    ServiceCollection,
    ServiceProvider,
    register_handler,
)
from api_standards.application.validation import ValidationFailure, Validator, add_validator
from api_standards.config.settings import ApiStandardsSettings, FileUploadSettings, JwtSettings
from api_standards.kernel.errors import (
    ApiError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceResolutionError,
    ValidationError,
)
from api_standards.kernel.security import Principal
from api_standards.observability.correlation import RequestContext

MIDDLEWARE_LOGGER = "api_standards.adapters.fastapi.middleware"


# ---------------------------------------------------------------------------
# Module-level request types, handlers and validators
# ---------------------------------------------------------------------------


class CreateProduct(BaseModel):
    name: str
    price: float


class ProductNameRequired(Validator[CreateProduct]):
    def validate(self, instance: CreateProduct) -> list[ValidationFailure]:
        if not instance.name.strip():
            return [ValidationFailure("name", "Name is required")]
        return []


@dataclasses.dataclass(frozen=True)
class PlaceOrder(Command[str]):
    sku: str


class PlaceOrderHandler(CommandHandler[PlaceOrder, str]):
    async def handle(self, command: PlaceOrder, cancellation: CancellationToken) -> str:
        return f"order-for-{command.sku}"


async def verify_token(token: str) -> Any:
    if token == "broken":
        raise ValueError("signature mismatch")
    if token == "acme-user":
        return {"sub": "u-1", "user_id": "42", "tenant_id": "acme", "roles": ["admin"]}
    if token == "principal":
        return Principal("u-2")
    return None


def _provider() -> ServiceProvider:
    services = ServiceCollection()
    add_api_standards(services)
    register_handler(services, PlaceOrderHandler)
    add_validator(services, CreateProduct, ProductNameRequired)
    return services.build_provider()


def _build_app(
    settings: ApiStandardsSettings | None = None,
    *,
    provider: ServiceProvider | None = None,
    require_auth: bool = False,
) -> FastAPI:
    app = FastAPI()
    add_default_api(
        app,
        settings or ApiStandardsSettings(),
        provider=provider,
        verifier=verify_token,
        require_auth=require_auth,
    )

    @app.get("/ping")
    async def ping() -> dict[str, Any]:
        return {"pong": True}

    @app.get("/banner")
    async def banner() -> JSONResponse:
        return JSONResponse({"ok": True}, headers={"X-Powered-By": "framework"})

    @app.get("/context/{item_id}")
    async def context(
        item_id: int,
        ctx: RequestContext = Depends(get_request_context),
    ) -> dict[str, Any]:
        return {
            "correlation_id": ctx.correlation_id,
            "tenant_id": ctx.tenant_id,
            "user_id": ctx.user_id,
            "route_item_id": ctx.get_value("route_item_id"),
        }

    @app.get("/me")
    async def me(principal: Principal | None = Depends(get_principal)) -> dict[str, Any]:
        return {"subject": principal.subject if principal else None}

    @app.get("/raise/{kind}")
    async def raise_error(kind: str) -> dict[str, Any]:
        errors: dict[str, Exception] = {
            "not_found": NotFoundError("User", 7),
            "validation": ValidationError("Validation failed", errors=["name is required"]),
            "conflict": ConflictError("Email", "a@b.c"),
            "forbidden": ForbiddenError(reason="not owner"),
            "api": ApiError("Payload too large", status_code=413),
            "key": KeyError("Widget 9 not found"),
            "permission": PermissionError("nope"),
            "value": ValueError("page must be positive"),
            "config": ServiceResolutionError("db pool missing"),
            "runtime": RuntimeError("secret connection string"),
        }
        raise errors[kind]

    @app.post("/products")
    async def create_product(
        body: CreateProduct = Depends(ValidationFilter(CreateProduct)),
    ) -> dict[str, Any]:
        return {"name": body.name, "price": body.price}

    @app.post("/orders/{sku}")
    async def place_order(
        sku: str,
        dispatcher: CommandQueryDispatcher = Depends(get_dispatcher),
    ) -> dict[str, Any]:
        return {"order": await dispatcher.dispatch_command(PlaceOrder(sku))}

    @app.get("/scope")
    async def scope(services: ServiceProvider = Depends(get_service_scope)) -> dict[str, Any]:
        return {"root": services.is_root}

    upload_settings = FileUploadSettings(max_file_size_bytes=10)

    @app.post("/uploads")
    async def upload(
        file: FormFile = Depends(FileUploadValidationFilter(upload_settings)),
    ) -> dict[str, Any]:
        return {"filename": file.filename}

    @app.post("/images")
    async def image(
        file: FormFile | None = Depends(ImageExtensionValidationFilter()),
    ) -> dict[str, Any]:
        return {"filename": file.filename if file else None}

    return app


def _client(settings: ApiStandardsSettings | None = None, **kwargs: Any) -> TestClient:
    return TestClient(_build_app(settings, **kwargs), raise_server_exceptions=False)


# ---------------------------------------------------------------------------
# SecurityHeadersMiddleware
# ---------------------------------------------------------------------------


class TestSecurityHeaders:
    def test_headers_added(self):
        resp = _client().get("/ping")
        assert resp.status_code == 200
        for name, value in SECURITY_HEADERS.items():
            assert resp.headers[name] == value

    def test_server_banners_removed(self):
        resp = _client().get("/banner")
        assert "x-powered-by" not in resp.headers
        assert "server" not in resp.headers

    def test_disabled(self):
        resp = _client(ApiStandardsSettings(enable_security_headers=False)).get("/ping")
        assert "x-frame-options" not in resp.headers

    def test_custom_headers(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware, headers={"X-Custom": "1"})

        @app.get("/ping")
        async def ping() -> dict[str, Any]:
            return {}

        resp = TestClient(app).get("/ping")
        assert resp.headers["x-custom"] == "1"
        assert "x-frame-options" not in resp.headers


# ---------------------------------------------------------------------------
# RequestContextMiddleware
# ---------------------------------------------------------------------------


class TestRequestContext:
    def test_supplied_correlation_id_echoed(self):
        resp = _client().get("/context/5", headers={"X-Correlation-Id": "req-123"})
        assert resp.headers["x-correlation-id"] == "req-123"
        assert resp.json()["correlation_id"] == "req-123"

    def test_correlation_id_generated(self):
        resp = _client().get("/context/5")
        generated = resp.headers["x-correlation-id"]
        assert generated
        assert resp.json()["correlation_id"] == generated

    def test_route_values_added(self):
        assert _client().get("/context/5").json()["route_item_id"] == "5"

    def test_tenant_header_ignored_without_multi_tenancy(self):
        resp = _client().get("/context/1", headers={"X-Tenant-Id": "acme"})
        assert resp.json()["tenant_id"] is None

    def test_tenant_header_read_with_multi_tenancy(self):
        settings = ApiStandardsSettings(enable_multi_tenancy=True)
        resp = _client(settings).get("/context/1", headers={"X-Tenant-Id": "acme"})
        assert resp.json()["tenant_id"] == "acme"

    def test_custom_header_name(self):
        settings = ApiStandardsSettings(correlation_id_header="X-Request-Id")
        resp = _client(settings).get("/context/1", headers={"X-Request-Id": "abc"})
        assert resp.headers["x-request-id"] == "abc"
        assert resp.json()["correlation_id"] == "abc"

    def test_correlation_disabled(self):
        settings = ApiStandardsSettings(enable_correlation_id=False)
        resp = _client(settings).get("/context/1", headers={"X-Correlation-Id": "ignored"})
        assert "x-correlation-id" not in resp.headers
        assert resp.json()["correlation_id"] != "ignored"

    def test_context_without_middleware(self):
        resp = _client(ApiStandardsSettings(enable_request_context=False)).get("/context/3")
        body = resp.json()
        assert body["correlation_id"]
        assert body["route_item_id"] == "3"


# ---------------------------------------------------------------------------
# AuthenticationMiddleware
# ---------------------------------------------------------------------------


class TestAuthentication:
    def test_anonymous_allowed_by_default(self):
        assert _client().get("/me").json() == {"subject": None}

    def test_claims_become_principal_and_context(self):
        client = _client()
        assert client.get("/me", headers={"Authorization": "Bearer acme-user"}).json() == {
            "subject": "u-1"
        }
        ctx = client.get("/context/1", headers={"Authorization": "Bearer acme-user"}).json()
        assert ctx["user_id"] == "42"
        assert ctx["tenant_id"] is None

    def test_verifier_may_return_principal(self):
        resp = _client().get("/me", headers={"Authorization": "Bearer principal"})
        assert resp.json() == {"subject": "u-2"}

    def test_require_auth_rejects_anonymous(self):
        resp = _client(require_auth=True).get("/ping")
        assert resp.status_code == 401
        assert resp.json() == {
            "success": False,
            "data": None,
            "message": UNAUTHORIZED_MESSAGE,
            "errors": None,
            "metadata": None,
        }

    def test_require_auth_accepts_valid_token(self):
        resp = _client(require_auth=True).get("/ping", headers={"Authorization": "Bearer acme-user"})
        assert resp.status_code == 200

    def test_non_bearer_scheme_ignored(self):
        resp = _client(require_auth=True).get("/ping", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    def test_verifier_failure_logged(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.WARNING, logger=MIDDLEWARE_LOGGER):
            resp = _client().get("/me", headers={"Authorization": "Bearer broken"})
        assert resp.json() == {"subject": None}
        assert any("auth.token_rejected" in r.getMessage() for r in caplog.records)

    def test_log_bindings_restored_after_request(self):
        seen: dict[str, Any] = {}

        async def verifier(token: str) -> Principal:
            return Principal("u-7", {"sub": "u-7"})

        async def inner(scope: Any, receive: Any, send: Any) -> None:
            seen.update(structlog.contextvars.get_contextvars())

        async def run() -> dict[str, Any]:
            structlog.contextvars.clear_contextvars()
            structlog.contextvars.bind_contextvars(correlation_id="outer")
            scope = {
                "type": "http",
                "path": "/orders",
                "headers": [(b"authorization", b"Bearer t-1")],
                "state": {"request_context": RequestContext("c1")},
            }
            await AuthenticationMiddleware(inner, verifier=verifier)(scope, None, None)
            return structlog.contextvars.get_contextvars()

        after = asyncio.run(run())
        assert seen == {"correlation_id": "c1", "user_id": "u-7"}
        assert after == {"correlation_id": "outer"}

    def test_context_with_principal_prefers_claims(self):
        settings = ApiStandardsSettings(
            enable_multi_tenancy=True,
            jwt=JwtSettings(user_id_claim_type="uid", tenant_id_claim_type="org"),
        )
        ctx = RequestContext("c1", values={"k": "v"})
        principal = Principal("sub-1", {"sub": "sub-1", "org": "acme"})
        enriched = context_with_principal(ctx, principal, settings, tenant_header="other")
        assert enriched.user_id == "sub-1"
        assert enriched.tenant_id == "acme"
        assert enriched.correlation_id == "c1"
        assert enriched.get_value("k") == "v"

    def test_context_with_principal_falls_back_to_header(self):
        settings = ApiStandardsSettings(enable_multi_tenancy=True)
        enriched = context_with_principal(
            RequestContext("c1"), Principal("s", {"user_id": "9"}), settings, tenant_header="acme"
        )
        assert (enriched.user_id, enriched.tenant_id) == ("9", "acme")


# ---------------------------------------------------------------------------
# TenantJwtValidationMiddleware
# ---------------------------------------------------------------------------


class TestTenantValidation:
    SETTINGS = ApiStandardsSettings(enable_multi_tenancy=True)

    def test_matching_tenant_case_insensitive(self):
        resp = _client(self.SETTINGS).get(
            "/context/1",
            headers={"Authorization": "Bearer acme-user", "X-Tenant-Id": "ACME"},
        )
        assert resp.status_code == 200
        assert resp.json()["tenant_id"] == "acme"

    def test_mismatch_rejected(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.WARNING, logger=MIDDLEWARE_LOGGER):
            resp = _client(self.SETTINGS).get(
                "/ping",
                headers={"Authorization": "Bearer acme-user", "X-Tenant-Id": "globex"},
            )
        assert resp.status_code == 403
        assert resp.json()["message"] == TENANT_MISMATCH_MESSAGE
        assert any("tenant.mismatch" in r.getMessage() for r in caplog.records)

    def test_missing_header_passes(self):
        resp = _client(self.SETTINGS).get("/ping", headers={"Authorization": "Bearer acme-user"})
        assert resp.status_code == 200

    def test_anonymous_passes(self):
        resp = _client(self.SETTINGS).get("/ping", headers={"X-Tenant-Id": "globex"})
        assert resp.status_code == 200

    def test_validation_disabled(self):
        settings = ApiStandardsSettings(enable_multi_tenancy=True, validate_tenant_from_jwt=False)
        resp = _client(settings).get(
            "/ping",
            headers={"Authorization": "Bearer acme-user", "X-Tenant-Id": "globex"},
        )
        assert resp.status_code == 200


# ---------------------------------------------------------------------------
# RequestLoggingMiddleware
# ---------------------------------------------------------------------------


class TestRequestLogging:
    SETTINGS = ApiStandardsSettings(enable_request_logging=True)

    def _completed(self, caplog: pytest.LogCaptureFixture) -> list[logging.LogRecord]:
        return [r for r in caplog.records if r.getMessage().startswith("http.request_completed")]

    def test_success_logged_at_info(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            _client(self.SETTINGS).get("/ping", headers={"X-Correlation-Id": "log-1"})
        started = [r for r in caplog.records if r.getMessage().startswith("http.request_started")]
        assert started and "correlation_id=log-1" in started[0].getMessage()
        [completed] = self._completed(caplog)
        assert completed.levelno == logging.INFO
        assert "status=200" in completed.getMessage()

    def test_client_error_logged_at_warning(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            _client(self.SETTINGS).get("/raise/not_found")
        [completed] = self._completed(caplog)
        assert completed.levelno == logging.WARNING

    def test_server_error_logged_at_error(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            _client(self.SETTINGS).get("/raise/config")
        [completed] = self._completed(caplog)
        assert completed.levelno == logging.ERROR

    def test_unhandled_exception_logged(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            resp = _client(self.SETTINGS).get("/raise/runtime")
        assert resp.status_code == 500
        failed = [r for r in caplog.records if r.getMessage().startswith("http.request_failed")]
        assert failed and failed[0].exc_info is not None

    def test_disabled_by_default(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            _client().get("/ping")
        assert self._completed(caplog) == []


# ---------------------------------------------------------------------------
# FastAPIExceptionMapper
# ---------------------------------------------------------------------------


class TestExceptionMapper:
    @pytest.mark.parametrize(
        ("kind", "status", "message"),
        [
            ("not_found", 404, "User with ID '7' was not found."),
            ("validation", 400, "Validation failed"),
            ("conflict", 409, "A resource with Email 'a@b.c' already exists."),
            ("forbidden", 403, "You do not have permission to access this resource."),
            ("api", 413, "Payload too large"),
            ("key", 404, "Widget 9 not found"),
            ("permission", 401, UNAUTHORIZED_MESSAGE),
            ("value", 400, "page must be positive"),
            ("config", 500, UNEXPECTED_ERROR_MESSAGE),
            ("runtime", 500, UNEXPECTED_ERROR_MESSAGE),
        ],
    )
    def test_status_and_message(self, kind: str, status: int, message: str):
        resp = _client().get(f"/raise/{kind}")
        assert resp.status_code == status
        body = resp.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["message"] == message

    def test_details_become_metadata(self):
        metadata = _client().get("/raise/not_found").json()["metadata"]
        assert metadata["resourceType"] == "User"
        assert metadata["resourceId"] == 7

    def test_validation_errors_listed(self):
        assert _client().get("/raise/validation").json()["errors"] == ["name is required"]

    def test_value_error_listed(self):
        assert _client().get("/raise/value").json()["errors"] == ["page must be positive"]

    def test_server_errors_hide_details(self):
        resp = _client().get("/raise/runtime")
        assert "secret" not in resp.text

    def test_correlation_id_in_metadata(self):
        client = _client()
        for kind in ("not_found", "runtime"):
            resp = client.get(f"/raise/{kind}", headers={"X-Correlation-Id": "err-1"})
            assert resp.json()["metadata"]["correlationId"] == "err-1"

    def test_request_validation_grouped_by_field(self):
        resp = _client(provider=_provider()).post("/products", json={"name": "Pen"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["message"] == "Validation failed"
        assert "price" in body["metadata"]["validationErrors"]
        assert body["errors"][0].startswith("price: ")

    def test_register_on_bare_app(self):
        app = FastAPI()
        FastAPIExceptionMapper().register(app)

        @app.get("/boom")
        async def boom() -> dict[str, Any]:
            raise NotFoundError("Order", 1)

        resp = TestClient(app).get("/boom")
        assert resp.status_code == 404
        assert "correlationId" not in (resp.json()["metadata"] or {})


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class TestValidationFilter:
    def test_valid_body_passes(self):
        resp = _client(provider=_provider()).post("/products", json={"name": "Pen", "price": 2.5})
        assert resp.status_code == 200
        assert resp.json() == {"name": "Pen", "price": 2.5}

    def test_validator_failure(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger="api_standards.adapters.fastapi.filters"):
            resp = _client(provider=_provider()).post("/products", json={"name": " ", "price": 1})
        assert resp.status_code == 400
        assert resp.json()["errors"] == ["Name is required"]
        assert any("validation.failed" in r.getMessage() for r in caplog.records)

    def test_no_validator_registered(self):
        provider = ServiceCollection().build_provider()
        resp = _client(provider=provider).post("/products", json={"name": "", "price": 1})
        assert resp.status_code == 200


class TestFileUploadFilters:
    def test_upload_within_limit(self):
        resp = _client().post("/uploads", files={"file": ("a.png", b"12345", "image/png")})
        assert resp.status_code == 200
        assert resp.json() == {"filename": "a.png"}

    def test_upload_too_large(self):
        resp = _client().post("/uploads", files={"file": ("a.png", b"x" * 20, "image/png")})
        assert resp.status_code == 400
        assert resp.json()["message"].startswith("File size exceeds maximum allowed size of")

    def test_upload_without_form(self):
        resp = _client().post("/uploads", json={"file": "nope"})
        assert resp.status_code == 400
        assert resp.json()["message"] == NO_FILE_MESSAGE

    def test_form_without_files(self):
        resp = _client().post("/uploads", data={"name": "x"})
        assert resp.status_code == 400
        assert resp.json()["message"] == NO_FILE_MESSAGE

    def test_image_extension_accepted(self):
        resp = _client().post("/images", files={"file": ("photo.PNG", b"1", "image/png")})
        assert resp.json() == {"filename": "photo.PNG"}

    def test_image_extension_rejected(self):
        resp = _client().post("/images", files={"file": ("cv.pdf", b"1", "application/pdf")})
        assert resp.status_code == 400
        assert resp.json()["message"] == (
            "Invalid file extension. Only .jpeg, .jpg, .png, .webp are allowed."
        )

    def test_image_filter_skips_requests_without_files(self):
        assert _client().post("/images").json() == {"filename": None}


# ---------------------------------------------------------------------------
# Dependencies and setup
# ---------------------------------------------------------------------------


class TestDependencies:
    def test_dispatcher_resolved_from_scope(self):
        resp = _client(provider=_provider()).post("/orders/sku-1")
        assert resp.json() == {"order": "order-for-sku-1"}

    def test_scope_is_per_request(self):
        assert _client(provider=_provider()).get("/scope").json() == {"root": False}

    def test_missing_provider_is_server_error(self):
        resp = _client().get("/scope")
        assert resp.status_code == 500
        assert resp.json()["message"] == UNEXPECTED_ERROR_MESSAGE


class TestAddDefaultApi:
    def _classes(self, app: FastAPI) -> list[type]:
        return [m.cls for m in app.user_middleware]

    def test_default_pipeline_order(self):
        settings = ApiStandardsSettings(
            enable_multi_tenancy=True, enable_request_logging=True, enable_cors=True
        )
        app = add_default_api(FastAPI(), settings, verifier=verify_token)
        classes = self._classes(app)
        assert classes[0] is SecurityHeadersMiddleware
        assert classes[1] is RequestLoggingMiddleware
        assert classes[3:] == [
            RequestContextMiddleware,
            AuthenticationMiddleware,
            TenantJwtValidationMiddleware,
        ]

    def test_toggles_skip_stages(self):
        settings = ApiStandardsSettings(
            enable_security_headers=False, enable_request_context=False
        )
        assert self._classes(add_default_api(FastAPI(), settings)) == []

    def test_state_populated(self):
        settings = ApiStandardsSettings()
        provider = _provider()
        app = add_default_api(FastAPI(), settings, provider=provider)
        assert app.state.api_settings is settings
        assert app.state.service_provider is provider

    def test_add_api_standards_registers_settings(self):
        settings = ApiStandardsSettings()
        provider = add_api_standards(ServiceCollection(), settings).build_provider()
        assert provider.require(ApiStandardsSettings) is settings
        assert provider.require(JwtSettings) is settings.jwt
        scope = provider.create_scope()
        assert isinstance(scope.require(CommandQueryDispatcher), CommandQueryDispatcher)

    def test_cors_preflight(self):
        settings = ApiStandardsSettings(enable_cors=True)
        settings.cors.allowed_origins = ["https://app.example"]
        resp = _client(settings).options(
            "/ping",
            headers={
                "Origin": "https://app.example",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "https://app.example"

