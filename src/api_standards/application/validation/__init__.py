"""Application validation."""
from api_standards.application.validation.validator import (
    ValidationFailure,
    Validator,
    add_validator,
    collect_failures,
    group_by_property,
    validate_request,
    validator_key,
)

__all__ = [
    "ValidationFailure",
    "Validator",
    "add_validator",
    "collect_failures",
    "group_by_property",
    "validate_request",
    "validator_key",
]
