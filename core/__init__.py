"""
Core modules for Creative Studio API.

This package contains fundamental utilities used across the application:
- config: Application settings and configuration
- exceptions: Custom exception classes
- rate_limit: Fixed-window request throttling
"""

from .config import Settings, get_settings
from .exceptions import (
    AppException,
    ExternalServiceError,
    ExtractionError,
    GenerationError,
    GenerationTimeoutError,
    InvalidModelError,
    ModelUnavailableError,
    OperationCancelledError,
    ProviderError,
    ProviderErrorKind,
    RateLimitError,
    SafetyRejectedError,
    ValidationError,
)
from .rate_limit import FixedWindowRateLimiter

__all__ = [
    # Config
    "get_settings",
    "Settings",
    # Exceptions
    "AppException",
    "ValidationError",
    "InvalidModelError",
    "RateLimitError",
    "ProviderError",
    "ProviderErrorKind",
    "SafetyRejectedError",
    "ExtractionError",
    "GenerationTimeoutError",
    "OperationCancelledError",
    "GenerationError",
    "ModelUnavailableError",
    "ExternalServiceError",
    # Throttling
    "FixedWindowRateLimiter",
]
