"""Application pagination."""
from api_standards.application.pagination.page import PagedResult

__all__ = ["PagedResult"]
