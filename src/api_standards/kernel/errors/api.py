"""ApiError: errors raised by the API layer with an explicit HTTP status."""

from __future__ import annotations

from typing import Any

from api_standards.kernel.errors.base import BaseError


class ApiError(BaseError):
    """Error carrying the exact HTTP status code to return.

    Use for transport concerns that have no domain meaning (e.g. 413, 415).
    """

    default_code = "api_error"

    def __init__(self, message: str, status_code: int = 500, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code


__all__ = ["ApiError"]
