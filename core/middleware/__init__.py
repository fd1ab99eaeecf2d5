"""
Request middleware: error rendering and structured request logging.
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    error_body,
    setup_error_handlers,
)
from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "StructuredLoggingMiddleware",
    "error_body",
    "setup_error_handlers",
    "setup_logging",
]
