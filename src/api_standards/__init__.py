"""
api_standards – Web API conventions library.

Import path convention::

    from api_standards.kernel.errors import NotFoundError
    from api_standards.application.cqrs import Command, CommandHandler, CommandQueryDispatcher
    from api_standards.application.envelope import ApiResponse
    from api_standards.adapters.fastapi import add_default_api
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
