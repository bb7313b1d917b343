"""Application files – UploadedFile value object."""
from __future__ import annotations

import os
from dataclasses import dataclass

__all__ = ["UploadedFile"]


@dataclass(frozen=True)
class UploadedFile:
    """A file received in a multipart upload, independent of the web framework."""

    filename: str
    size_bytes: int
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, or ``""`` when absent."""
        return os.path.splitext(self.filename or "")[1].lower()

    @classmethod
    def from_bytes(
        cls,
        filename: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> "UploadedFile":
        return cls(filename=filename, size_bytes=len(data), content_type=content_type)
