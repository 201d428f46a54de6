"""
API middleware and exception handling.
"""

from .error_handler import error_body, setup_exception_handlers

__all__ = ["error_body", "setup_exception_handlers"]
