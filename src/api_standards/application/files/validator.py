"""Application files – FileUploadValidator."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from api_standards.application.files.upload import UploadedFile

__all__ = [
    "DEFAULT_DOCUMENT_EXTENSIONS",
    "DEFAULT_IMAGE_EXTENSIONS",
    "DEFAULT_MAX_FILE_SIZE_BYTES",
    "FileUploadValidator",
    "ValidationResult",
]

DEFAULT_MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024
DEFAULT_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})
DEFAULT_DOCUMENT_EXTENSIONS = frozenset({".pdf", ".doc", ".docx", ".xls", ".xlsx", ".txt"})


def _normalise(extensions: Iterable[str]) -> frozenset[str]:
    return frozenset(e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True, errors=())

    @classmethod
    def fail(cls, *errors: str) -> "ValidationResult":
        return cls(valid=False, errors=errors)


class FileUploadValidator:
    """Size and extension rules shared by the upload endpoint filters.

    Extensions are compared case-insensitively. A ``min_size_bytes`` of ``0``
    disables the lower bound.
    """

    def __init__(
        self,
        max_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
        min_size_bytes: int = 0,
        image_extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
        document_extensions: Iterable[str] = DEFAULT_DOCUMENT_EXTENSIONS,
        allowed_extensions: Iterable[str] = (),
    ) -> None:
        self.max_size_bytes = max_size_bytes
        self.min_size_bytes = min_size_bytes
        self.image_extensions = _normalise(image_extensions)
        self.document_extensions = _normalise(document_extensions)
        self.allowed_extensions = _normalise(allowed_extensions)

    @classmethod
    def from_settings(cls, settings: Any) -> "FileUploadValidator":
        """Build from a ``FileUploadSettings``-shaped object."""
        return cls(
            max_size_bytes=settings.max_file_size_bytes,
            min_size_bytes=settings.min_file_size_bytes,
            image_extensions=settings.allowed_image_extensions,
            document_extensions=settings.allowed_document_extensions,
            allowed_extensions=settings.allowed_extensions,
        )

    def validate_size(self, file: UploadedFile) -> ValidationResult:
        if file.size_bytes > self.max_size_bytes:
            max_mb = self.max_size_bytes / (1024.0 * 1024.0)
            return ValidationResult.fail(
                f"File size exceeds maximum allowed size of {max_mb:.1f}MB."
            )
        if self.min_size_bytes > 0 and file.size_bytes < self.min_size_bytes:
            min_kb = self.min_size_bytes / 1024.0
            return ValidationResult.fail(
                f"File size is below minimum required size of {min_kb:.1f}KB."
            )
        return ValidationResult.ok()

    def validate_image_extension(self, file: UploadedFile) -> ValidationResult:
        return self._check_extension(file, self.image_extensions)

    def validate_extension(self, file: UploadedFile) -> ValidationResult:
        """Accept images, documents and any custom allowed extension."""
        return self._check_extension(
            file,
            self.image_extensions | self.document_extensions | self.allowed_extensions,
        )

    def validate(self, file: UploadedFile) -> ValidationResult:
        errors = self.validate_size(file).errors + self.validate_extension(file).errors
        if errors:
            return ValidationResult.fail(*errors)
        return ValidationResult.ok()

    @staticmethod
    def _check_extension(file: UploadedFile, allowed: frozenset[str]) -> ValidationResult:
        ext = file.extension
        if not ext or ext not in allowed:
            allowed_text = ", ".join(sorted(allowed))
            return ValidationResult.fail(
                f"Invalid file extension. Only {allowed_text} are allowed."
            )
        return ValidationResult.ok()
