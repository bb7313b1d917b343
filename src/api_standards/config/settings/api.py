"""Config settings – API standards options."""
from __future__ import annotations

import dataclasses
from typing import Any

from api_standards.application.files.validator import (
    DEFAULT_DOCUMENT_EXTENSIONS,
    DEFAULT_IMAGE_EXTENSIONS,
    DEFAULT_MAX_FILE_SIZE_BYTES,
)
from api_standards.config.settings.base import Settings
from api_standards.config.validation import InvalidSettingValueError

MIN_SECRET_KEY_LENGTH = 32


@dataclasses.dataclass
class JwtSettings(Settings):
    """Token settings.  Signature checking itself is delegated to the verifier."""

    _prefix = "JWT"

    issuer: str = ""
    audience: str = ""
    secret_key: str = dataclasses.field(default="", repr=False)
    expiration_minutes: int = 60
    validate_issuer: bool = True
    validate_audience: bool = True
    validate_lifetime: bool = True
    validate_issuer_signing_key: bool = True
    clock_skew_seconds: int = 0
    tenant_id_claim_type: str = "tenant_id"
    user_id_claim_type: str = "user_id"

    def _validate(self) -> None:
        if self.secret_key and len(self.secret_key) < MIN_SECRET_KEY_LENGTH:
            raise InvalidSettingValueError(
                "JWT_SECRET_KEY",
                "***",
                f"must be at least {MIN_SECRET_KEY_LENGTH} characters",
            )
        if self.expiration_minutes <= 0:
            raise InvalidSettingValueError(
                "JWT_EXPIRATION_MINUTES", self.expiration_minutes, "must be positive"
            )
        if self.clock_skew_seconds < 0:
            raise InvalidSettingValueError(
                "JWT_CLOCK_SKEW_SECONDS", self.clock_skew_seconds, "must not be negative"
            )


@dataclasses.dataclass
class CorsSettings(Settings):
    _prefix = "CORS"

    policy_name: str = "DefaultCorsPolicy"
    allowed_origins: list[str] = dataclasses.field(default_factory=list)
    allow_any_origin: bool = False
    allowed_methods: list[str] = dataclasses.field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
    )
    allow_any_method: bool = False
    allowed_headers: list[str] = dataclasses.field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-Tenant-Id", "X-Correlation-Id"]
    )
    allow_any_header: bool = False
    exposed_headers: list[str] = dataclasses.field(default_factory=lambda: ["X-Correlation-Id"])
    allow_credentials: bool = True
    preflight_max_age: int = 600

    def middleware_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for Starlette's ``CORSMiddleware``."""
        return {
            "allow_origins": ["*"] if self.allow_any_origin else list(self.allowed_origins),
            "allow_methods": ["*"] if self.allow_any_method else list(self.allowed_methods),
            "allow_headers": ["*"] if self.allow_any_header else list(self.allowed_headers),
            "expose_headers": list(self.exposed_headers),
            # browsers reject credentials combined with a wildcard origin
            "allow_credentials": self.allow_credentials and not self.allow_any_origin,
            "max_age": self.preflight_max_age,
        }


@dataclasses.dataclass
class FileUploadSettings(Settings):
    _prefix = "FILE_UPLOAD"

    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    min_file_size_bytes: int = 0
    allowed_image_extensions: frozenset[str] = DEFAULT_IMAGE_EXTENSIONS
    allowed_document_extensions: frozenset[str] = DEFAULT_DOCUMENT_EXTENSIONS
    allowed_extensions: frozenset[str] = frozenset()

    def _validate(self) -> None:
        if self.max_file_size_bytes <= 0:
            raise InvalidSettingValueError(
                "FILE_UPLOAD_MAX_FILE_SIZE_BYTES", self.max_file_size_bytes, "must be positive"
            )
        if not 0 <= self.min_file_size_bytes <= self.max_file_size_bytes:
            raise InvalidSettingValueError(
                "FILE_UPLOAD_MIN_FILE_SIZE_BYTES",
                self.min_file_size_bytes,
                "must be between 0 and the maximum file size",
            )
        self.allowed_image_extensions = _lower(self.allowed_image_extensions)
        self.allowed_document_extensions = _lower(self.allowed_document_extensions)
        self.allowed_extensions = _lower(self.allowed_extensions)


@dataclasses.dataclass
class ApiStandardsSettings(Settings):
    """Feature toggles for the API pipeline plus the nested option groups."""

    _prefix = "API"

    enable_multi_tenancy: bool = False
    enable_request_context: bool = True
    enable_correlation_id: bool = True
    correlation_id_header: str = "X-Correlation-Id"
    tenant_id_header: str = "X-Tenant-Id"
    validate_tenant_from_jwt: bool = True
    enable_cors: bool = False
    enable_security_headers: bool = True
    enable_request_logging: bool = False
    jwt: JwtSettings = dataclasses.field(default_factory=JwtSettings)
    cors: CorsSettings = dataclasses.field(default_factory=CorsSettings)
    file_upload: FileUploadSettings = dataclasses.field(default_factory=FileUploadSettings)

    def _validate(self) -> None:
        for name in ("correlation_id_header", "tenant_id_header"):
            if not getattr(self, name).strip():
                raise InvalidSettingValueError(f"API_{name.upper()}", getattr(self, name), "must not be empty")


def _lower(extensions: Any) -> frozenset[str]:
    return frozenset(e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions)


__all__ = [
    "ApiStandardsSettings",
    "CorsSettings",
    "FileUploadSettings",
    "JwtSettings",
    "MIN_SECRET_KEY_LENGTH",
]
