"""
Models endpoint for frontend model discovery.

Endpoints:
- GET /api/models - List model families, aliases and fallbacks
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_generation_service
from core.config import Settings, get_settings
from services.orchestrator import GenerationService

router = APIRouter(prefix="/models", tags=["models"])


@router.get("")
async def list_models(
    service: GenerationService = Depends(get_generation_service),
    settings: Settings = Depends(get_settings),
):
    """
    List the routing table.

    Returns:
    - families: Backend families in match order, with aliases and availability
    - aliases: All model aliases and their canonical IDs
    - image_input_fallbacks: Models swapped when an input image is supplied
    - defaults: Default image and video models
    """
    return {
        **service.list_models(),
        "defaults": {
            "image": settings.default_image_model,
            "video": settings.default_video_model,
            "aspect_ratio": settings.default_aspect_ratio,
        },
    }
