"""FastAPI adapter – endpoint filters implemented as dependencies.

Each filter is an instance used with ``Depends``::

    @app.post("/avatars")
    async def upload(file: UploadFile = Depends(FileUploadValidationFilter(settings))):
        ...

    @app.post("/users")
    async def create(body: CreateUser = Depends(ValidationFilter(CreateUser))):
        ...
"""
import inspect
import logging
from typing import Any

from fastapi import Body, Depends, Request
from starlette.datastructures import UploadFile as FormFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from api_standards.adapters.fastapi.deps import get_service_scope
from api_standards.application.cqrs import ServiceProvider
from api_standards.application.files import FileUploadValidator, UploadedFile, ValidationResult
from api_standards.application.validation import collect_failures
from api_standards.config.settings import FileUploadSettings
from api_standards.kernel.errors import ApiError, ValidationError

logger = logging.getLogger(__name__)

NO_FILE_MESSAGE = "No file was uploaded."
INVALID_FORM_MESSAGE = "Invalid multipart form data."

_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


class ValidationFilter:
    """Parse the JSON body as *request_type* and run its registered validators.

    Validators come from the request's service scope; failures are raised as
    ``ValidationError("Validation failed", errors)``.  Without a validator the
    body passes through unchanged.
    """

    def __init__(self, request_type: type) -> None:
        self.request_type = request_type
        self.__signature__ = inspect.Signature(
            [
                inspect.Parameter(
                    "payload",
                    inspect.Parameter.POSITIONAL_OR_KEYWORD,
                    default=Body(...),
                    annotation=request_type,
                ),
                inspect.Parameter(
                    "scope",
                    inspect.Parameter.POSITIONAL_OR_KEYWORD,
                    default=Depends(get_service_scope),
                    annotation=ServiceProvider,
                ),
            ]
        )

    async def __call__(self, payload: Any, scope: ServiceProvider) -> Any:
        failures = await collect_failures(scope, payload)
        if failures:
            logger.info(
                "validation.failed type=%s count=%d", self.request_type.__name__, len(failures)
            )
            raise ValidationError("Validation failed", errors=[f.message for f in failures])
        return payload


async def _form_files(request: Request) -> list[FormFile]:
    content_type = request.headers.get("content-type", "").lower()
    if not content_type.startswith(_FORM_CONTENT_TYPES):
        raise ApiError(NO_FILE_MESSAGE, status_code=400)
    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException) as exc:
        logger.warning("upload.invalid_form path=%s reason=%s", request.url.path, exc)
        raise ApiError(INVALID_FORM_MESSAGE, status_code=400) from exc
    return [value for _, value in form.multi_items() if isinstance(value, FormFile)]


async def _uploaded_file(upload: FormFile) -> UploadedFile:
    size = upload.size
    if size is None:
        size = len(await upload.read())
        await upload.seek(0)
    return UploadedFile(
        filename=upload.filename or "",
        size_bytes=size,
        content_type=upload.content_type or "application/octet-stream",
    )


def _raise_on_failure(result: ValidationResult) -> None:
    if not result.valid:
        raise ApiError(result.errors[0], status_code=400)


class FileUploadValidationFilter:
    """Require a multipart upload and check the first file's size."""

    def __init__(self, settings: FileUploadSettings | None = None) -> None:
        self._validator = FileUploadValidator.from_settings(settings or FileUploadSettings())

    async def __call__(self, request: Request) -> FormFile:
        files = await _form_files(request)
        if not files:
            raise ApiError(NO_FILE_MESSAGE, status_code=400)
        upload = files[0]
        _raise_on_failure(self._validator.validate_size(await _uploaded_file(upload)))
        request.state.uploaded_file = upload
        return upload


class ImageExtensionValidationFilter:
    """Reject a first uploaded file whose extension is not an allowed image type.

    Requests without a form or without files pass through (``None``).
    """

    def __init__(self, settings: FileUploadSettings | None = None) -> None:
        self._validator = FileUploadValidator.from_settings(settings or FileUploadSettings())

    async def __call__(self, request: Request) -> FormFile | None:
        content_type = request.headers.get("content-type", "").lower()
        if not content_type.startswith(_FORM_CONTENT_TYPES):
            return None
        files = await _form_files(request)
        if not files:
            return None
        upload = files[0]
        _raise_on_failure(self._validator.validate_image_extension(await _uploaded_file(upload)))
        return upload


__all__ = [
    "FileUploadValidationFilter",
    "INVALID_FORM_MESSAGE",
    "ImageExtensionValidationFilter",
    "NO_FILE_MESSAGE",
    "ValidationFilter",
]
