"""Kernel error hierarchy: public re-export surface.

Hierarchy::

    BaseError
    ├── DomainError              (domain.py)
    │   ├── BadRequestError
    │   ├── ValidationError
    │   ├── NotFoundError
    │   ├── ConflictError
    │   ├── ForbiddenError
    │   └── UnauthorizedError
    ├── ApplicationError         (application.py)
    │   ├── ConfigurationError
    │   │   ├── HandlerNotRegisteredError
    │   │   ├── DuplicateHandlerError
    │   │   ├── InvalidHandlerError
    │   │   └── ServiceResolutionError
    │   └── OperationCancelledError
    └── ApiError                 (api.py)
"""

from api_standards.kernel.errors.api import ApiError
from api_standards.kernel.errors.application import (
    ApplicationError,
    ConfigurationError,
    DuplicateHandlerError,
    HandlerNotRegisteredError,
    InvalidHandlerError,
    OperationCancelledError,
    ServiceResolutionError,
)
from api_standards.kernel.errors.base import BaseError
from api_standards.kernel.errors.codes import ErrorCode
from api_standards.kernel.errors.domain import (
    BadRequestError,
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

__all__ = [
    "ApiError",
    "ApplicationError",
    "BadRequestError",
    "BaseError",
    "ConfigurationError",
    "ConflictError",
    "DomainError",
    "DuplicateHandlerError",
    "ErrorCode",
    "ForbiddenError",
    "HandlerNotRegisteredError",
    "InvalidHandlerError",
    "NotFoundError",
    "OperationCancelledError",
    "ServiceResolutionError",
    "UnauthorizedError",
    "ValidationError",
]
