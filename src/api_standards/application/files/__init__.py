"""Application files – upload size and extension checks."""
from api_standards.application.files.upload import UploadedFile
from api_standards.application.files.validator import (
    DEFAULT_DOCUMENT_EXTENSIONS,
    DEFAULT_IMAGE_EXTENSIONS,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    FileUploadValidator,
    ValidationResult,
)

__all__ = [
    "DEFAULT_DOCUMENT_EXTENSIONS",
    "DEFAULT_IMAGE_EXTENSIONS",
    "DEFAULT_MAX_FILE_SIZE_BYTES",
    "FileUploadValidator",
    "UploadedFile",
    "ValidationResult",
]
