"""Core helpers: diagnostics channel and structured error handling."""
from .error_handling import create_error_response, log_error_with_context
from .warnings import add_warning

__all__ = [
    "add_warning",
    "create_error_response",
    "log_error_with_context",
]
