"""Observability – JsonLoggerFactory."""
from __future__ import annotations

import logging
from typing import Any

import structlog

from api_standards.observability.logging.filters import SensitiveFieldsFilter
from api_standards.observability.logging.processors import CorrelationProcessor


class JsonLoggerFactory:
    """Route stdlib and structlog records through one JSON renderer.

    Library modules log with ``logging.getLogger(__name__)``; once
    :meth:`configure` runs, those records come out as JSON lines enriched
    with the active request's correlation, tenant and user ids.
    """

    @staticmethod
    def shared_processors(sensitive_fields: frozenset[str] | None = None) -> list[Any]:
        processors: list[Any] = [
            structlog.contextvars.merge_contextvars,
            CorrelationProcessor(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]
        if sensitive_fields:
            processors.append(SensitiveFieldsFilter(sensitive_fields))
        return processors

    @staticmethod
    def configure(
        level: int = logging.INFO,
        sensitive_fields: frozenset[str] | None = None,
        handler: logging.Handler | None = None,
    ) -> logging.Handler:
        shared = JsonLoggerFactory.shared_processors(sensitive_fields)
        structlog.configure(
            processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
        handler = handler or logging.StreamHandler()
        handler.setFormatter(formatter)
        root = logging.getLogger()
        root.handlers.clear()
        root.addHandler(handler)
        root.setLevel(level)
        return handler


__all__ = ["JsonLoggerFactory"]
