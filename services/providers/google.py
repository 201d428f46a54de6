"""
Google Generative Language adapters: Imagen prediction and Veo video.

Both talk to the v1beta REST surface through an injected httpx client
whose headers already carry the API key. Imagen answers synchronously with
base64 predictions; Veo answers with a long-running operation that the
poller drives to completion.
"""

import asyncio
import base64
import ipaddress
import logging
import re
import time
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from core.exceptions import (
    ProviderError,
    ProviderErrorKind,
    SafetyRejectedError,
    ValidationError,
)

from .base import (
    BaseAdapter,
    GenerationRequest,
    HTTPProviderMixin,
    OperationHandle,
    ProviderFamily,
    ProviderTarget,
    QualityTier,
    map_aspect_ratio,
)

logger = logging.getLogger(__name__)

API_VERSION = "v1beta"

# Imagen only renders a handful of ratios; map the rest onto the closest one
IMAGEN_ASPECT_RATIOS = {
    "3:2": "4:3",
    "4:5": "3:4",
    "1:1": "1:1",
    "16:9": "16:9",
    "9:16": "9:16",
    "4:3": "4:3",
    "3:4": "3:4",
}

VEO_ASPECT_RATIOS = {"16:9", "9:16"}

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,")


def build_google_client(
    api_key: str,
    base_url: str = "https://generativelanguage.googleapis.com",
    timeout: float = 120.0,
) -> httpx.AsyncClient:
    """Create the shared HTTP client used by the Google adapters."""
    return httpx.AsyncClient(
        base_url=base_url,
        headers={
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        },
        timeout=timeout,
    )


async def ensure_public_host(host: str | None) -> None:
    """
    Reject hosts that resolve to non-public addresses.

    Raises:
        ValidationError: The host is missing, unresolvable, or resolves to a
            private, loopback, link-local or reserved address.
    """
    if not host:
        raise ValidationError(message="Input image URL has no host")

    try:
        addresses = [ipaddress.ip_address(host)]
    except ValueError:
        try:
            infos = await asyncio.get_running_loop().getaddrinfo(host, None)
        except OSError as e:
            raise ValidationError(message=f"Could not resolve input image host {host!r}") from e
        addresses = [ipaddress.ip_address(info[4][0]) for info in infos]

    for address in addresses:
        if not address.is_global:
            logger.warning(f"[Google] Refusing input image from non-public address {address}")
            raise ValidationError(
                message="Input image URL must point to a public host",
                details={"host": host},
            )


class GoogleAdapter(HTTPProviderMixin, BaseAdapter):
    """Shared plumbing for adapters on the Generative Language API."""

    def __init__(
        self,
        client: httpx.AsyncClient | None,
        api_key: str | None,
        max_input_image_bytes: int = 10 * 1024 * 1024,
        image_fetch_client: httpx.AsyncClient | None = None,
    ):
        self._client = client
        self._api_key = api_key
        self._max_input_image_bytes = max_input_image_bytes
        # Separate from the API client: that one carries credentials
        self._image_fetch_client = image_fetch_client

    @property
    def name(self) -> str:
        return "google"

    @property
    def is_available(self) -> bool:
        return self._client is not None and bool(self._api_key)

    async def _encode_image(self, image: str) -> dict:
        """Turn a data URL, remote URL or bare base64 string into an inline image."""
        match = _DATA_URL_RE.match(image)
        if match:
            return {"bytesBase64Encoded": image[match.end():], "mimeType": match.group("mime")}

        if image.startswith(("http://", "https://")):
            content, mime_type = await self._fetch_image(image)
            return {
                "bytesBase64Encoded": base64.b64encode(content).decode("utf-8"),
                "mimeType": mime_type,
            }

        return {"bytesBase64Encoded": image}

    async def _fetch_image(self, url: str) -> tuple[bytes, str]:
        """Download a public input image, aborting past the size cap. Redirects are not followed."""
        await ensure_public_host(urlsplit(url).hostname)

        try:
            if self._image_fetch_client is not None:
                return await self._read_capped(self._image_fetch_client, url)
            async with httpx.AsyncClient(timeout=30.0) as client:
                return await self._read_capped(client, url)
        except httpx.HTTPError as e:
            raise ValidationError(message=f"Could not fetch input image: {e}") from e

    async def _read_capped(self, client: httpx.AsyncClient, url: str) -> tuple[bytes, str]:
        limit = self._max_input_image_bytes
        too_large = ValidationError(
            message=f"Input image exceeds {limit} bytes",
            details={"max_bytes": limit},
        )

        async with client.stream("GET", url) as response:
            response.raise_for_status()
            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > limit:
                raise too_large

            chunks: list[bytes] = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > limit:
                    raise too_large
                chunks.append(chunk)

            mime_type = response.headers.get("content-type", "image/png").split(";")[0]
        return b"".join(chunks), mime_type


class ImagenAdapter(GoogleAdapter):
    """Imagen / Gemini image prediction, with optional image conditioning."""

    family = ProviderFamily.IMAGE_EDIT
    _log_tag = "Imagen"

    def __init__(
        self,
        client: httpx.AsyncClient | None,
        api_key: str | None,
        aspect_ratio_fallback: str = "1:1",
        **kwargs,
    ):
        super().__init__(client, api_key, **kwargs)
        self._aspect_ratio_fallback = aspect_ratio_fallback

    async def build_body(self, request: GenerationRequest) -> dict:
        """Build the :predict request body."""
        instance: dict = {"prompt": request.prompt}
        if request.input_image:
            instance["image"] = await self._encode_image(request.input_image)

        return {
            "instances": [instance],
            "parameters": {
                "sampleCount": request.output_count,
                "aspectRatio": map_aspect_ratio(
                    request.aspect_ratio, IMAGEN_ASPECT_RATIOS, self._aspect_ratio_fallback
                ),
            },
        }

    async def invoke(self, request: GenerationRequest, target: ProviderTarget) -> dict:
        logger.info(
            f"[Imagen] Generating {request.output_count} image(s) with "
            f"{target.endpoint_model} at {request.quality_tier.value}..."
        )
        if request.input_image:
            logger.info("[Imagen] Image input detected for editing/variation.")
        if request.quality_tier is QualityTier.ULTRA:
            logger.warning("[Imagen] 4K requested; returning native resolution.")

        start_time = time.time()
        data = await self._request_json(
            "POST",
            f"/{API_VERSION}/{target.endpoint_model}:predict",
            json=await self.build_body(request),
        )

        predictions = data.get("predictions")
        if not isinstance(predictions, list) or not predictions:
            raise ProviderError(
                ProviderErrorKind.MALFORMED,
                message="No image data returned from Google API",
                provider=self.name,
            )

        filtered = [
            p["raiFilteredReason"]
            for p in predictions
            if isinstance(p, dict) and p.get("raiFilteredReason")
        ]
        if filtered:
            logger.warning(f"[Imagen] Blocked by safety filter: {filtered[0]}")
            raise SafetyRejectedError(reason=filtered[0])

        logger.info(
            f"[Imagen] {len(predictions)} prediction(s) in {time.time() - start_time:.2f}s"
        )
        return data


class VeoAdapter(GoogleAdapter):
    """
    Veo video submission.

    invoke() only submits; the returned handle is driven to completion by
    the OperationPoller through fetch_operation() and sign_url().
    """

    family = ProviderFamily.LONG_RUNNING_VIDEO
    _log_tag = "Veo"

    def __init__(
        self,
        client: httpx.AsyncClient | None,
        api_key: str | None,
        authenticated_hosts: list[str] | tuple[str, ...] = ("generativelanguage.googleapis.com",),
        **kwargs,
    ):
        super().__init__(client, api_key, **kwargs)
        self._authenticated_hosts = tuple(authenticated_hosts)

    async def build_body(self, request: GenerationRequest) -> dict:
        instance: dict = {"prompt": request.prompt}
        if request.input_image:
            instance["image"] = await self._encode_image(request.input_image)

        parameters: dict = {}
        if request.aspect_ratio in VEO_ASPECT_RATIOS:
            parameters["aspectRatio"] = request.aspect_ratio
        return {"instances": [instance], "parameters": parameters}

    async def submit(self, request: GenerationRequest, target: ProviderTarget) -> OperationHandle:
        """Start the operation. Never waits for completion."""
        logger.info(f"[Veo] Starting generation with model: {target.endpoint_model}")
        logger.info(f"[Veo] Prompt: {request.prompt[:50]}...")

        data = await self._request_json(
            "POST",
            f"/{API_VERSION}/{target.endpoint_model}:predictLongRunning",
            json=await self.build_body(request),
        )

        operation_name = data.get("name")
        if not operation_name:
            raise ProviderError(
                ProviderErrorKind.MALFORMED,
                message="Video submission returned no operation name",
                provider=self.name,
            )

        logger.info(f"[Veo] Operation started: {operation_name}")
        return OperationHandle(id=operation_name)

    async def invoke(self, request: GenerationRequest, target: ProviderTarget) -> OperationHandle:
        return await self.submit(request, target)

    async def fetch_operation(self, operation_name: str) -> dict:
        """Query the operation status endpoint once."""
        return await self._request_json("GET", f"/{API_VERSION}/{operation_name}")

    def sign_url(self, uri: str) -> str:
        """Append the API key to URIs that are only fetchable with credentials."""
        parts = urlsplit(uri)
        if parts.hostname not in self._authenticated_hosts:
            return uri
        if "key" in parse_qs(parts.query):
            return uri
        separator = "&" if parts.query else "?"
        return f"{uri}{separator}{urlencode({'key': self._api_key})}"
