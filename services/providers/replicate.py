"""
Replicate adapters: FLUX text/image-to-image and Real-ESRGAN upscaling.

Both families run a single prediction through the injected Replicate
client and hand the SDK output (file handles, URLs or strings) to the
normalizer untouched.
"""

import logging
import time
from typing import Any

import httpx
from replicate import Client as ReplicateClient
from replicate.exceptions import ModelError, ReplicateError

from core.exceptions import ProviderError, ProviderErrorKind, ValidationError

from .base import (
    BaseAdapter,
    GenerationRequest,
    ProviderFamily,
    ProviderTarget,
    map_aspect_ratio,
)

logger = logging.getLogger(__name__)


# FLUX accepts these ratios natively
FLUX_ASPECT_RATIOS = {
    ratio: ratio
    for ratio in ("1:1", "16:9", "21:9", "3:2", "2:3", "4:5", "5:4", "3:4", "4:3", "9:16", "9:21")
}

MAX_FLUX_OUTPUTS = 4


def classify_replicate_error(error: Exception) -> ProviderError:
    """Map a Replicate SDK failure onto the provider error taxonomy."""
    if isinstance(error, ModelError):
        prediction = getattr(error, "prediction", None)
        detail = getattr(prediction, "error", None) or str(error)
        return ProviderError(ProviderErrorKind.REJECTED, message=str(detail), provider="replicate")
    if isinstance(error, ReplicateError):
        status = getattr(error, "status", None)
        detail = getattr(error, "detail", None) or str(error)
        kind = (
            ProviderErrorKind.TRANSPORT
            if status is not None and status >= 500
            else ProviderErrorKind.REJECTED
        )
        return ProviderError(kind, message=str(detail), provider="replicate")
    if isinstance(error, httpx.HTTPError):
        return ProviderError(
            ProviderErrorKind.TRANSPORT,
            message=f"Could not reach Replicate: {error}",
            provider="replicate",
        )
    return ProviderError(ProviderErrorKind.TRANSPORT, message=str(error), provider="replicate")


class ReplicateAdapter(BaseAdapter):
    """Shared prediction runner for Replicate-backed families."""

    def __init__(self, client: ReplicateClient | None):
        self._client = client

    @property
    def name(self) -> str:
        return "replicate"

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def _run(self, model: str, payload: dict) -> Any:
        """Run one prediction and return its raw output."""
        start_time = time.time()
        try:
            output = await self._client.async_run(model, input=payload)
        except (ReplicateError, ModelError, httpx.HTTPError) as e:
            logger.error(f"[Replicate] {model} failed: {e}")
            raise classify_replicate_error(e) from e

        logger.info(f"[Replicate] {model} finished in {time.time() - start_time:.2f}s")

        if output is None or output == "" or (isinstance(output, (list, tuple)) and not output):
            raise ProviderError(
                ProviderErrorKind.MALFORMED,
                message=f"Replicate returned no output for {model}",
                provider=self.name,
            )
        return output


class ReplicateImageAdapter(ReplicateAdapter):
    """FLUX image generation, optionally conditioned on an input image."""

    family = ProviderFamily.SYNC_IMAGE

    def __init__(
        self,
        client: ReplicateClient | None,
        output_format: str = "webp",
        output_quality: int = 90,
        aspect_ratio_fallback: str = "1:1",
    ):
        super().__init__(client)
        self._output_format = output_format
        self._output_quality = output_quality
        self._aspect_ratio_fallback = aspect_ratio_fallback

    def build_input(self, request: GenerationRequest) -> dict:
        """Build the FLUX prediction input for a request."""
        payload = {
            "prompt": request.prompt,
            "aspect_ratio": map_aspect_ratio(
                request.aspect_ratio, FLUX_ASPECT_RATIOS, self._aspect_ratio_fallback
            ),
            "num_outputs": min(request.output_count, MAX_FLUX_OUTPUTS),
            "output_format": self._output_format,
            "output_quality": self._output_quality,
        }
        # Replicate accepts data URLs and remote URLs alike
        if request.input_image:
            payload["image"] = request.input_image
        return payload

    async def invoke(self, request: GenerationRequest, target: ProviderTarget) -> Any:
        logger.info(
            f"[Replicate] Generating with {target.endpoint_model}: {request.prompt[:50]}..."
        )
        if request.input_image:
            logger.info(f"[Replicate] Image input provided ({request.input_image[:20]}...)")
        return await self._run(target.endpoint_model, self.build_input(request))


class ReplicateUpscaleAdapter(ReplicateAdapter):
    """Real-ESRGAN upscaling with fixed enhancement parameters."""

    family = ProviderFamily.UPSCALE

    def __init__(
        self,
        client: ReplicateClient | None,
        scale: int = 4,
        face_enhance: bool = True,
    ):
        super().__init__(client)
        self._scale = scale
        self._face_enhance = face_enhance

    async def invoke(self, request: GenerationRequest, target: ProviderTarget) -> Any:
        if not request.input_image:
            raise ValidationError(message="Upscaling requires an input image")

        logger.info(f"[Replicate] Upscaling image x{self._scale} with {target.endpoint_model}")
        return await self._run(
            target.endpoint_model,
            {
                "image": request.input_image,
                "scale": self._scale,
                "face_enhance": self._face_enhance,
            },
        )
