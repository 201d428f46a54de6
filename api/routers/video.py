"""
Video generation router.

Endpoints:
- POST /api/generate-video - Generate a video and wait for the result
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import enforce_rate_limit, get_generation_service
from api.schemas.common import ErrorResponse
from api.schemas.video import GenerateVideoRequest, GenerateVideoResponse
from services.orchestrator import GenerationService

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["video"],
    dependencies=[Depends(enforce_rate_limit)],
    responses={
        400: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)


@router.post("/generate-video", response_model=GenerateVideoResponse)
async def generate_video(
    request: GenerateVideoRequest,
    service: GenerationService = Depends(get_generation_service),
):
    """
    Generate a video.

    Submits a long-running operation and polls it until the video is ready,
    the provider rejects it, or the attempt ceiling is reached.
    """
    logger.info(f"Generate video: model={request.model or 'default'}, prompt={request.prompt[:50]}")

    result = await service.generate_video(
        prompt=request.prompt,
        model=request.model,
        aspect_ratio=request.aspect_ratio.value,
        input_image=request.image,
    )

    return GenerateVideoResponse(video_url=result.primary_url)
