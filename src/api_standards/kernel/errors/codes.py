"""ErrorCode – transport-agnostic error categories."""

from __future__ import annotations

import enum


class ErrorCode(enum.IntEnum):
    """Error categories whose values are the matching HTTP status codes.

    The kernel never imports an HTTP library; the API layer reads
    ``int(code)`` when it builds a response.
    """

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_ERROR = 500

    @property
    def status_code(self) -> int:
        return int(self)


__all__ = ["ErrorCode"]
