"""Application envelope – ApiResponse."""
from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclasses.dataclass
class ApiResponse(Generic[T]):
    """Uniform JSON envelope returned by every endpoint.

    Body shape::

        {"success": true, "data": {...}, "message": null, "errors": null, "metadata": null}
    """

    success: bool
    data: T | None = None
    message: str | None = None
    errors: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def ok(cls, data: T, message: str | None = None) -> "ApiResponse[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def ok_empty(cls, message: str | None = None) -> "ApiResponse[Any]":
        """Successful response without a payload."""
        return cls(success=True, message=message)

    @classmethod
    def error(cls, message: str, errors: Iterable[str] | None = None) -> "ApiResponse[Any]":
        return cls(
            success=False,
            message=message,
            errors=list(errors) if errors is not None else None,
        )

    @classmethod
    def validation_error(
        cls,
        message: str,
        validation_errors: Mapping[str, Iterable[str]],
    ) -> "ApiResponse[Any]":
        """Flatten ``{field: [messages]}`` into ``"field: message"`` errors.

        The original mapping is kept under ``metadata["validationErrors"]``.
        """
        by_field = {name: list(messages) for name, messages in validation_errors.items()}
        errors = [f"{name}: {msg}" for name, messages in by_field.items() for msg in messages]
        return cls(
            success=False,
            message=message,
            errors=errors,
            metadata={"validationErrors": by_field},
        )

    def with_metadata(self, key: str, value: Any) -> "ApiResponse[T]":
        if self.metadata is None:
            self.metadata = {}
        self.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        data = self.data
        if hasattr(data, "to_dict"):
            data = data.to_dict()
        elif dataclasses.is_dataclass(data) and not isinstance(data, type):
            data = dataclasses.asdict(data)
        return {
            "success": self.success,
            "data": data,
            "message": self.message,
            "errors": self.errors,
            "metadata": self.metadata,
        }


__all__ = ["ApiResponse"]
