"""
Pydantic schemas for API request/response models.
"""

from .common import ErrorResponse, HealthCheckResponse, HealthStatus
from .generate import (
    AspectRatio,
    EnhancePromptRequest,
    EnhancePromptResponse,
    GenerateImageRequest,
    GenerateImageResponse,
    Resolution,
    UpscaleRequest,
    UpscaleResponse,
)
from .video import GenerateVideoRequest, GenerateVideoResponse, VideoAspectRatio

__all__ = [
    # Common
    "ErrorResponse",
    "HealthStatus",
    "HealthCheckResponse",
    # Generate
    "AspectRatio",
    "Resolution",
    "GenerateImageRequest",
    "GenerateImageResponse",
    "UpscaleRequest",
    "UpscaleResponse",
    "EnhancePromptRequest",
    "EnhancePromptResponse",
    # Video
    "VideoAspectRatio",
    "GenerateVideoRequest",
    "GenerateVideoResponse",
]
