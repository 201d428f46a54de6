"""
Error taxonomy for the generation API.

Every error is an AppException carrying:
- error_code: stable identifier returned as ``code`` in error bodies
- message: text returned as ``error``
- status_code: 4xx for caller faults, 5xx for provider and server faults
- stage: orchestration stage that raised it (route, invoke, poll, normalize)
"""

from enum import StrEnum
from typing import Any


class AppException(Exception):
    """Base exception for all application errors."""

    error_code: str = "internal_error"
    message: str = "An unexpected error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        self.stage: str | None = None
        super().__init__(self.message)

    def tag_stage(self, stage: str) -> "AppException":
        """Record the orchestration stage the error originated from (first tag wins)."""
        if self.stage is None:
            self.stage = stage
            self.details.setdefault("stage", stage)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# ============ Caller input faults (4xx) ============


class ValidationError(AppException):
    """Raised when input validation fails."""

    error_code = "validation_error"
    message = "Invalid input"
    status_code = 422


class InvalidModelError(AppException):
    """Raised when a model identifier matches no known provider family."""

    error_code = "invalid_model"
    message = "Unrecognized model identifier"
    status_code = 400

    def __init__(self, model_id: str, message: str | None = None):
        self.model_id = model_id
        super().__init__(
            message=message or f"Unrecognized model identifier: {model_id!r}",
            details={"model": model_id},
        )


class RateLimitError(AppException):
    """Raised when rate limit is exceeded."""

    error_code = "rate_limit_exceeded"
    message = "Too many requests, please try again later"
    status_code = 429


# ============ Provider faults (5xx) ============


class ProviderErrorKind(StrEnum):
    """How a provider call failed."""

    TRANSPORT = "transport"
    REJECTED = "rejected"
    MALFORMED = "malformed"


class ProviderError(AppException):
    """Raised when a provider call fails or returns an explicit error."""

    error_code = "provider_error"
    message = "Provider request failed"
    status_code = 502

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str | None = None,
        provider: str | None = None,
    ):
        self.kind = kind
        self.provider = provider
        details: dict[str, Any] = {"kind": kind.value}
        if provider:
            details["provider"] = provider
        super().__init__(
            message=message,
            error_code=f"provider_{kind.value}",
            details=details,
        )


class SafetyRejectedError(AppException):
    """Raised when a provider refuses a request on content-policy grounds. Never retried."""

    error_code = "safety_rejected"
    message = "Content blocked by provider safety filter"
    status_code = 502

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(
            message=f"Content blocked by provider safety filter: {reason}",
            details={"reason": reason},
        )


class ExtractionError(AppException):
    """Raised when a provider response has no recognizable result location."""

    error_code = "extraction_failed"
    message = "Could not extract a result from the provider response"
    status_code = 502

    def __init__(self, message: str | None = None, excerpt: str | None = None):
        self.excerpt = excerpt
        super().__init__(
            message=message,
            details={"excerpt": excerpt} if excerpt is not None else None,
        )


class GenerationTimeoutError(AppException):
    """Raised when polling exceeds the attempt ceiling."""

    error_code = "generation_timeout"
    message = "Generation timed out"
    status_code = 504


class OperationCancelledError(GenerationTimeoutError):
    """Raised when polling is abandoned through the cancellation signal."""

    error_code = "generation_cancelled"
    message = "Generation was cancelled before completion"


class GenerationError(AppException):
    """Raised when generation fails for an unexpected reason."""

    error_code = "generation_failed"
    message = "Generation failed"
    status_code = 500


class ModelUnavailableError(AppException):
    """Raised when the provider serving a model is not configured."""

    error_code = "model_unavailable"
    message = "Requested model is currently unavailable"
    status_code = 503


class ExternalServiceError(AppException):
    """Raised when an auxiliary external service fails."""

    error_code = "external_service_error"
    message = "External service unavailable"
    status_code = 503
