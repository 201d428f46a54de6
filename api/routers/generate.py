"""
Image generation router.

Endpoints:
- POST /api/generate - Generate one or more images
- POST /api/upscale - Upscale an image
- POST /api/enhance-prompt - Rewrite a prompt for better results
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import enforce_rate_limit, get_generation_service
from api.schemas.common import ErrorResponse
from api.schemas.generate import (
    EnhancePromptRequest,
    EnhancePromptResponse,
    GenerateImageRequest,
    GenerateImageResponse,
    UpscaleRequest,
    UpscaleResponse,
)
from core.config import Settings, get_settings
from services.orchestrator import GenerationService
from services.providers.base import GenerationRequest, QualityTier

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["generation"],
    dependencies=[Depends(enforce_rate_limit)],
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.post("/generate", response_model=GenerateImageResponse)
async def generate_image(
    request: GenerateImageRequest,
    service: GenerationService = Depends(get_generation_service),
    settings: Settings = Depends(get_settings),
):
    """
    Generate images from a prompt, optionally conditioned on an input image.

    The model identifier (or alias) decides which provider serves the request.
    """
    generation_request = GenerationRequest(
        prompt=request.prompt,
        model_id=request.model or settings.default_image_model,
        aspect_ratio=request.aspect_ratio.value,
        input_image=request.image,
        output_count=request.num_outputs,
        quality_tier=QualityTier(request.resolution.value),
    )
    logger.info(
        f"Generate {generation_request.request_id}: model={generation_request.model_id}, "
        f"ratio={generation_request.aspect_ratio}, outputs={generation_request.output_count}"
    )

    result = await service.generate(generation_request)

    return GenerateImageResponse(url=result.primary_url, urls=list(result.all_urls))


@router.post("/upscale", response_model=UpscaleResponse)
async def upscale_image(
    request: UpscaleRequest,
    service: GenerationService = Depends(get_generation_service),
):
    """Upscale an image 4x with Real-ESRGAN."""
    result = await service.upscale(request.image)
    return UpscaleResponse(url=result.primary_url)


@router.post("/enhance-prompt", response_model=EnhancePromptResponse)
async def enhance_prompt(
    request: EnhancePromptRequest,
    service: GenerationService = Depends(get_generation_service),
):
    """Rewrite a short prompt into a detailed generation prompt."""
    enhanced = await service.enhance_prompt(request.prompt)
    return EnhancePromptResponse(prompt=enhanced)
