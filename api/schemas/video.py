"""
Video generation-related Pydantic schemas.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VideoAspectRatio(StrEnum):
    """Supported video aspect ratios."""

    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class GenerateVideoRequest(BaseModel):
    """Request for video generation."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., max_length=4000, description="Video generation prompt")
    model: str | None = Field(
        None, description="Video model ID or alias; defaults to the configured video model"
    )
    aspect_ratio: VideoAspectRatio = Field(
        default=VideoAspectRatio.LANDSCAPE, alias="aspectRatio", description="Video aspect ratio"
    )
    image: str | None = Field(None, description="Optional starting frame")

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        """Validate and clean prompt."""
        v = v.strip()
        if not v:
            raise ValueError("Prompt is required")
        return v


class GenerateVideoResponse(BaseModel):
    """Response for video generation."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    video_url: str = Field(..., alias="videoUrl", description="Playable video URL")
