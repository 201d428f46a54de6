"""
Operation poller: drives a long-running video operation to a terminal state.

State machine (OperationState):

    submitted -> polling -> done | rejected | failed | timed-out

Each iteration waits one interval through the scheduler, then queries the
operation once. Only "still processing" answers lead to another iteration;
there is no retry of failed polls. Cancellation abandons the operation
locally without contacting the provider.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from core.exceptions import (
    AppException,
    ExtractionError,
    GenerationTimeoutError,
    OperationCancelledError,
    ProviderError,
    ProviderErrorKind,
    SafetyRejectedError,
)

from .providers.base import OperationHandle, OperationState, payload_excerpt

logger = logging.getLogger(__name__)


# ============ Scheduling ============


class PollScheduler(Protocol):
    """Waits between polls. Replaced by an instant fake in tests."""

    async def wait(self, seconds: float, cancel_event: asyncio.Event | None = None) -> bool:
        """Wait ``seconds``; return True if the cancel event fired meanwhile."""
        ...


class AsyncioScheduler:
    """Real-time scheduler on the running event loop."""

    async def wait(self, seconds: float, cancel_event: asyncio.Event | None = None) -> bool:
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True


class OperationSource(Protocol):
    """What the poller needs from the long-running adapter."""

    async def fetch_operation(self, operation_name: str) -> dict: ...

    def sign_url(self, uri: str) -> str: ...


@dataclass(frozen=True)
class PollerConfig:
    interval: float = 3.0  # seconds between polls
    max_attempts: int = 60
    excerpt_limit: int = 500  # chars of payload kept on extraction failure


# ============ Result extraction ============


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _location(value: Any) -> str | None:
    """A non-empty string, or a ``{"uri": ...}`` mapping wrapping one."""
    if isinstance(value, dict):
        value = value.get("uri")
    return value if isinstance(value, str) and value else None


def _from_result(response: dict) -> str | None:
    result = response.get("result")
    if isinstance(result, str):
        return _location(result)
    result = _as_dict(result)
    return _location(result.get("videoUri")) or _location(result.get("uri"))


def _from_generated_samples(response: dict) -> str | None:
    samples = _as_dict(response.get("generateVideoResponse")).get("generatedSamples")
    if not isinstance(samples, list):
        return None
    for sample in samples:
        uri = _location(_as_dict(sample).get("video"))
        if uri:
            return uri
    return None


def _from_video_uri(response: dict) -> str | None:
    return _location(response.get("videoUri"))


# Tried in order; the first non-empty location wins
VIDEO_URI_EXTRACTORS: tuple[Callable[[dict], str | None], ...] = (
    _from_result,
    _from_generated_samples,
    _from_video_uri,
)


def extract_video_uri(payload: dict) -> str | None:
    """Find the video location in a completed operation payload."""
    response = _as_dict(payload.get("response"))
    for extractor in VIDEO_URI_EXTRACTORS:
        uri = extractor(response)
        if uri:
            return uri
    return None


def safety_reasons(payload: dict) -> list[str]:
    """Content-policy reasons attached to a completed operation, if any."""
    response = _as_dict(payload.get("response"))
    reasons = _as_dict(response.get("generateVideoResponse")).get("raiMediaFilteredReasons")
    if not isinstance(reasons, list):
        return []
    return [str(reason) for reason in reasons if reason]


# ============ Poller ============


class OperationPoller:
    """Polls one operation handle to completion."""

    def __init__(
        self,
        source: OperationSource,
        config: PollerConfig | None = None,
        scheduler: PollScheduler | None = None,
    ):
        self._source = source
        self.config = config or PollerConfig()
        self._scheduler = scheduler or AsyncioScheduler()

    async def run(self, handle: OperationHandle, cancel_event: asyncio.Event | None = None) -> str:
        """
        Poll until the operation reaches a terminal state.

        Args:
            handle: Handle returned by the long-running adapter
            cancel_event: Optional event; setting it abandons the operation

        Returns:
            The (signed) result URL.

        Raises:
            OperationCancelledError: cancel_event was set.
            GenerationTimeoutError: The attempt ceiling was reached.
            SafetyRejectedError: The provider filtered the output.
            ProviderError: A poll failed or carried an explicit error.
            ExtractionError: Completed, but no video location was found.
        """
        if handle.state.is_terminal:
            raise ValueError(f"Operation {handle.id} is already {handle.state.value}")

        handle.state = OperationState.POLLING
        logger.info(f"[Poller] Polling {handle.id} every {self.config.interval}s")

        while True:
            if cancel_event is not None and cancel_event.is_set():
                self._abandon(handle)

            if handle.attempts >= self.config.max_attempts:
                handle.state = OperationState.TIMED_OUT
                logger.warning(
                    f"[Poller] {handle.id} still running after {handle.attempts} attempts"
                )
                raise GenerationTimeoutError(
                    message=f"Video generation timed out after {handle.attempts} attempts",
                    details={"operation": handle.id, "attempts": handle.attempts},
                )

            if await self._scheduler.wait(self.config.interval, cancel_event):
                self._abandon(handle)

            handle.attempts += 1
            try:
                payload = await self._source.fetch_operation(handle.id)
            except AppException:
                handle.state = OperationState.FAILED
                raise

            if self._advance(handle, payload):
                return handle.result_url

    def _advance(self, handle: OperationHandle, payload: Any) -> bool:
        """Apply one poll result. Returns True once the handle is done."""
        if not isinstance(payload, dict):
            handle.state = OperationState.FAILED
            raise ProviderError(
                ProviderErrorKind.MALFORMED,
                message="Operation status was not a JSON object",
            )

        if payload.get("error"):
            handle.state = OperationState.FAILED
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.error(f"[Poller] {handle.id} failed: {message}")
            raise ProviderError(ProviderErrorKind.REJECTED, message=message or str(error))

        if not payload.get("done"):
            logger.info(f"[Poller] {handle.id} processing (attempt {handle.attempts})")
            return False

        reasons = safety_reasons(payload)
        if reasons:
            handle.state = OperationState.REJECTED
            logger.warning(f"[Poller] {handle.id} blocked by safety filter: {reasons}")
            raise SafetyRejectedError(reason=reasons[0])

        uri = extract_video_uri(payload)
        if not uri:
            handle.state = OperationState.FAILED
            excerpt = payload_excerpt(payload, self.config.excerpt_limit)
            logger.error(f"[Poller] No video URI in completed operation: {excerpt}")
            raise ExtractionError(
                message="Video generation completed but no video URI found",
                excerpt=excerpt,
            )

        handle.result_url = self._source.sign_url(uri)
        handle.state = OperationState.DONE
        logger.info(f"[Poller] {handle.id} done after {handle.attempts} attempts")
        return True

    def _abandon(self, handle: OperationHandle) -> None:
        handle.state = OperationState.TIMED_OUT
        handle.cancelled = True
        logger.info(f"[Poller] {handle.id} cancelled after {handle.attempts} attempts")
        raise OperationCancelledError(details={"operation": handle.id, "attempts": handle.attempts})
