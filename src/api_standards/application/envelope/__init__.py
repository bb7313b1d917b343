"""Application envelope – standard success / error response body."""
from api_standards.application.envelope.api_response import ApiResponse

__all__ = ["ApiResponse"]
