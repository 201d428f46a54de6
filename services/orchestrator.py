"""
Generation orchestration facade.

GenerationService is the single entry point the API layer talks to:

    route -> invoke -> (poll, long-running only) -> normalize

Every stage runs inside a stage guard. Application errors leave the facade
tagged with the stage that raised them; anything unexpected is wrapped in a
GenerationError. Callers get either a complete GenerationResult or an
error, never a partial result.
"""

import asyncio
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum

import httpx
import replicate
from google import genai

from core.config import Settings, get_settings
from core.exceptions import (
    AppException,
    GenerationError,
    InvalidModelError,
    ModelUnavailableError,
    ValidationError,
)

from .model_router import list_models, route
from .normalizer import normalize
from .operation_poller import OperationPoller, PollerConfig, PollScheduler
from .prompt_enhancer import PromptEnhancer
from .providers.base import (
    BaseAdapter,
    GenerationRequest,
    GenerationResult,
    OperationHandle,
    ProviderFamily,
    ProviderTarget,
)
from .providers.google import ImagenAdapter, VeoAdapter, build_google_client
from .providers.replicate import ReplicateImageAdapter, ReplicateUpscaleAdapter

logger = logging.getLogger(__name__)


class GenerationStage(StrEnum):
    ROUTE = "route"
    INVOKE = "invoke"
    POLL = "poll"
    NORMALIZE = "normalize"


class GenerationService:
    """Routes, invokes, polls and normalizes generation requests."""

    def __init__(
        self,
        adapters: dict[ProviderFamily, BaseAdapter],
        poller_config: PollerConfig | None = None,
        scheduler: PollScheduler | None = None,
        enhancer: PromptEnhancer | None = None,
        default_video_model: str = "models/veo-2.0-generate-001",
        upscale_model: str = "upscale",
        http_clients: list[httpx.AsyncClient] | None = None,
    ):
        self._adapters = dict(adapters)
        self._poller_config = poller_config or PollerConfig()
        self._scheduler = scheduler
        self._enhancer = enhancer
        self.default_video_model = default_video_model
        self.upscale_model = upscale_model
        self._http_clients = list(http_clients or [])

    # ============ Stage handling ============

    @contextmanager
    def _stage(self, stage: GenerationStage, request_id: str) -> Iterator[None]:
        try:
            yield
        except AppException as e:
            e.tag_stage(stage.value)
            logger.warning(f"[Orchestrator] {request_id} failed at {stage}: {e.error_code}")
            raise
        except Exception as e:
            logger.exception(f"[Orchestrator] {request_id} unexpected error at {stage}")
            raise GenerationError(
                message=f"Unexpected failure during {stage.value}: {e}"
            ).tag_stage(stage.value) from e

    def _adapter_for(self, target: ProviderTarget) -> BaseAdapter:
        adapter = self._adapters.get(target.family)
        if adapter is None or not adapter.is_available:
            raise ModelUnavailableError(
                message=f"No configured provider for {target.family.value} models",
                details={"family": target.family.value, "provider": target.provider},
            )
        return adapter

    # ============ Public API ============

    async def generate(
        self,
        request: GenerationRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """
        Run one generation request end to end.

        Args:
            request: The generation request
            cancel_event: Abandons a long-running operation when set

        Returns:
            GenerationResult with at least one URL.
        """
        with self._stage(GenerationStage.ROUTE, request.request_id):
            target = route(request)
        return await self._execute(request, target, cancel_event)

    async def generate_video(
        self,
        prompt: str,
        model: str | None = None,
        aspect_ratio: str = "16:9",
        input_image: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Generate a video; the model must belong to the long-running family."""
        request = GenerationRequest(
            prompt=prompt,
            model_id=model or self.default_video_model,
            aspect_ratio=aspect_ratio,
            input_image=input_image,
        )
        with self._stage(GenerationStage.ROUTE, request.request_id):
            target = route(request)
            if target.family is not ProviderFamily.LONG_RUNNING_VIDEO:
                raise InvalidModelError(
                    request.model_id,
                    message=f"{request.model_id!r} is not a video model",
                )
        return await self._execute(request, target, cancel_event)

    async def upscale(self, image: str) -> GenerationResult:
        """Upscale an image with the configured upscaling model."""
        if not image:
            raise ValidationError(message="Image is required")

        request = GenerationRequest(
            prompt="upscale",
            model_id=self.upscale_model,
            input_image=image,
        )
        with self._stage(GenerationStage.ROUTE, request.request_id):
            target = route(request)
            if target.family is not ProviderFamily.UPSCALE:
                raise InvalidModelError(
                    request.model_id,
                    message=f"{request.model_id!r} is not an upscaling model",
                )
        return await self._execute(request, target, None)

    async def enhance_prompt(self, prompt: str) -> str:
        """Rewrite a prompt with the configured text model."""
        if self._enhancer is None or not self._enhancer.is_available:
            raise ModelUnavailableError(message="Prompt enhancement is not configured")
        return await self._enhancer.enhance(prompt)

    def list_models(self) -> dict:
        """Routing table plus which families currently have credentials."""
        listing = list_models()
        for family in listing["families"]:
            adapter = self._adapters.get(ProviderFamily(family["family"]))
            family["available"] = adapter is not None and adapter.is_available
        return listing

    async def close(self) -> None:
        """Close the HTTP clients created at startup."""
        for client in self._http_clients:
            await client.aclose()
        self._http_clients.clear()

    # ============ Pipeline ============

    async def _execute(
        self,
        request: GenerationRequest,
        target: ProviderTarget,
        cancel_event: asyncio.Event | None,
    ) -> GenerationResult:
        start_time = time.time()

        with self._stage(GenerationStage.ROUTE, request.request_id):
            adapter = self._adapter_for(target)

        with self._stage(GenerationStage.INVOKE, request.request_id):
            raw = await adapter.invoke(request, target)

        if target.family.is_long_running:
            with self._stage(GenerationStage.POLL, request.request_id):
                if not isinstance(raw, OperationHandle):
                    raise GenerationError(message="Video adapter did not return an operation")
                poller = OperationPoller(adapter, self._poller_config, self._scheduler)
                raw = await poller.run(raw, cancel_event)

        with self._stage(GenerationStage.NORMALIZE, request.request_id):
            result = normalize(raw, target.family.media_type)

        logger.info(
            f"[Orchestrator] {request.request_id} produced {len(result.all_urls)} "
            f"{result.kind.value}(s) in {time.time() - start_time:.2f}s"
        )
        return result


def build_generation_service(
    settings: Settings | None = None,
    scheduler: PollScheduler | None = None,
) -> GenerationService:
    """
    Construct the service and its provider clients once at process start.

    Providers without credentials are still registered; requests routed to
    them fail with ModelUnavailableError.
    """
    settings = settings or get_settings()

    google_client = None
    if settings.is_google_configured:
        google_client = build_google_client(
            settings.google_api_key,
            base_url=settings.google_api_base_url,
            timeout=settings.provider_timeout,
        )

    replicate_client = None
    if settings.is_replicate_configured:
        replicate_client = replicate.Client(api_token=settings.replicate_api_token)

    genai_client = None
    if settings.is_google_configured:
        genai_client = genai.Client(api_key=settings.google_api_key)

    adapters: dict[ProviderFamily, BaseAdapter] = {
        ProviderFamily.SYNC_IMAGE: ReplicateImageAdapter(
            replicate_client,
            output_format=settings.replicate_output_format,
            output_quality=settings.replicate_output_quality,
            aspect_ratio_fallback=settings.aspect_ratio_fallback,
        ),
        ProviderFamily.IMAGE_EDIT: ImagenAdapter(
            google_client,
            settings.google_api_key,
            aspect_ratio_fallback=settings.aspect_ratio_fallback,
            max_input_image_bytes=settings.max_input_image_bytes,
        ),
        ProviderFamily.UPSCALE: ReplicateUpscaleAdapter(
            replicate_client,
            scale=settings.upscale_scale,
            face_enhance=settings.upscale_face_enhance,
        ),
        ProviderFamily.LONG_RUNNING_VIDEO: VeoAdapter(
            google_client,
            settings.google_api_key,
            authenticated_hosts=settings.video_authenticated_hosts,
            max_input_image_bytes=settings.max_input_image_bytes,
        ),
    }

    available = [family.value for family, adapter in adapters.items() if adapter.is_available]
    logger.info(f"[Orchestrator] Providers ready for: {', '.join(available) or 'none'}")

    return GenerationService(
        adapters,
        poller_config=PollerConfig(
            interval=settings.video_poll_interval,
            max_attempts=settings.video_poll_max_attempts,
            excerpt_limit=settings.error_excerpt_limit,
        ),
        scheduler=scheduler,
        enhancer=PromptEnhancer(genai_client, model=settings.prompt_enhance_model),
        default_video_model=settings.default_video_model,
        upscale_model=settings.upscale_model,
        http_clients=[google_client] if google_client else [],
    )
