"""
Base types and shared behaviour for generation provider adapters.

This module defines the request/target/result contracts that flow through
the orchestration layer, the adapter base class every backend family
implements, and the HTTP error classification shared by REST adapters.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import httpx

from core.exceptions import (
    ExtractionError,
    ProviderError,
    ProviderErrorKind,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ============ Enums ============


class MediaType(StrEnum):
    """Type of media that can be generated."""

    IMAGE = "image"
    VIDEO = "video"


class ProviderFamily(StrEnum):
    """Backend families the router can resolve a request to."""

    SYNC_IMAGE = "sync-image"
    IMAGE_EDIT = "image-edit"
    UPSCALE = "upscale"
    LONG_RUNNING_VIDEO = "long-running-video"

    @property
    def media_type(self) -> MediaType:
        if self is ProviderFamily.LONG_RUNNING_VIDEO:
            return MediaType.VIDEO
        return MediaType.IMAGE

    @property
    def is_long_running(self) -> bool:
        return self is ProviderFamily.LONG_RUNNING_VIDEO


class QualityTier(StrEnum):
    """Requested output resolution. Informational for current providers."""

    STANDARD = "1K"
    HIGH = "2K"
    ULTRA = "4K"


class OperationState(StrEnum):
    """Lifecycle of a long-running provider operation."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"
    TIMED_OUT = "timed-out"

    @property
    def is_terminal(self) -> bool:
        return self in (
            OperationState.DONE,
            OperationState.REJECTED,
            OperationState.FAILED,
            OperationState.TIMED_OUT,
        )


# ============ Data Classes ============


@dataclass(frozen=True)
class GenerationRequest:
    """Provider-agnostic generation request. Immutable once built."""

    prompt: str
    model_id: str
    aspect_ratio: str = "3:2"
    input_image: str | None = None  # data URL, bare base64 or http(s) URL
    output_count: int = 1
    quality_tier: QualityTier = QualityTier.STANDARD
    request_id: str = field(default_factory=lambda: f"gen_{uuid.uuid4().hex[:12]}")

    def __post_init__(self):
        if not self.prompt or not self.prompt.strip():
            raise ValidationError(message="Prompt is required")
        if self.output_count < 1:
            raise ValidationError(message="output_count must be at least 1")

    @property
    def has_input_image(self) -> bool:
        return bool(self.input_image)


@dataclass(frozen=True)
class ProviderTarget:
    """Resolved backend for one request."""

    family: ProviderFamily
    provider: str
    endpoint_model: str
    compatibility_notes: tuple[str, ...] = ()


@dataclass(frozen=True)
class GenerationResult:
    """Canonical successful outcome. The only structure returned to callers."""

    primary_url: str
    all_urls: tuple[str, ...]
    kind: MediaType

    def __post_init__(self):
        if not self.all_urls:
            raise ExtractionError(message="Provider returned no results")
        if self.primary_url != self.all_urls[0]:
            raise ValueError("primary_url must be the first entry of all_urls")

    @classmethod
    def from_urls(cls, urls: list[str], kind: MediaType) -> "GenerationResult":
        if not urls:
            raise ExtractionError(message="Provider returned no results")
        return cls(primary_url=urls[0], all_urls=tuple(urls), kind=kind)


@dataclass
class OperationHandle:
    """In-flight long-running operation. Mutated only by the poller that owns it."""

    id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempts: int = 0
    state: OperationState = OperationState.SUBMITTED
    cancelled: bool = False
    result_url: str | None = None


# ============ Helpers ============


def map_aspect_ratio(aspect_ratio: str, table: dict[str, str], fallback: str) -> str:
    """Map a requested ratio through a provider's compatibility table."""
    mapped = table.get(aspect_ratio)
    if mapped is None:
        logger.warning(
            f"Aspect ratio {aspect_ratio} has no provider mapping, falling back to {fallback}"
        )
        return fallback
    return mapped


def payload_excerpt(payload: Any, limit: int = 500) -> str:
    """Render a bounded, human-readable excerpt of a raw provider payload."""
    try:
        text = json.dumps(payload, default=str)
    except (TypeError, ValueError):
        text = repr(payload)
    if len(text) > limit:
        return f"{text[:limit]}..."
    return text


# ============ Adapter Base ============


class BaseAdapter(ABC):
    """
    Translates between the abstract request model and one provider family.

    Adapters never retry and never wait for asynchronous completion.
    """

    family: ProviderFamily

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g. 'replicate', 'google')."""
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Whether credentials for this provider are configured."""
        ...

    @abstractmethod
    async def invoke(self, request: GenerationRequest, target: ProviderTarget) -> Any:
        """
        Call the provider once.

        Returns:
            The raw provider response, or an OperationHandle for long-running families.

        Raises:
            ProviderError: transport, rejected or malformed outcome.
        """
        ...


class HTTPProviderMixin:
    """
    Shared httpx request handling for REST adapters.

    Maps every outcome onto ProviderError kinds:
    - transport: connection/timeout failures and bare 5xx responses
    - rejected: the provider answered with an explicit error
    - malformed: a success status with an empty or undecodable body
    """

    _client: httpx.AsyncClient
    _log_tag: str = "HTTP"
    name: str

    def _extract_error_from_response(self, data: Any) -> str | None:
        """Return the provider's error message if the body carries one."""
        if not isinstance(data, dict) or not data.get("error"):
            return None
        error = data["error"]
        if isinstance(error, dict):
            return error.get("message") or json.dumps(error)
        return str(error)

    async def _request_json(self, method: str, url: str, **kwargs) -> dict:
        """Perform one request and return the decoded JSON object."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[{self._log_tag}] Transport failure on {method} {url}: {e}")
            raise ProviderError(
                ProviderErrorKind.TRANSPORT,
                message=f"Could not reach provider: {e}",
                provider=self.name,
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        error_msg = self._extract_error_from_response(data)
        if error_msg:
            logger.warning(f"[{self._log_tag}] Provider error ({response.status_code}): {error_msg}")
            raise ProviderError(ProviderErrorKind.REJECTED, message=error_msg, provider=self.name)

        if response.status_code >= 500:
            raise ProviderError(
                ProviderErrorKind.TRANSPORT,
                message=f"Provider returned HTTP {response.status_code}",
                provider=self.name,
            )
        if response.status_code >= 400:
            raise ProviderError(
                ProviderErrorKind.REJECTED,
                message=f"Provider rejected the request (HTTP {response.status_code})",
                provider=self.name,
            )

        if not isinstance(data, dict) or not data:
            raise ProviderError(
                ProviderErrorKind.MALFORMED,
                message="Provider returned an empty or malformed body",
                provider=self.name,
            )
        return data
