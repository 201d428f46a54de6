"""
Image generation-related Pydantic schemas.

Request fields use the camelCase names browser clients send; snake_case
names are accepted as well.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AspectRatio(StrEnum):
    """Supported aspect ratios."""

    LANDSCAPE = "16:9"
    LANDSCAPE_32 = "3:2"
    SQUARE = "1:1"
    PORTRAIT_45 = "4:5"
    PORTRAIT = "9:16"
    LANDSCAPE_43 = "4:3"
    PORTRAIT_34 = "3:4"
    CINEMATIC = "21:9"


class Resolution(StrEnum):
    """Supported resolutions. Informational for current providers."""

    LOW = "1K"
    MEDIUM = "2K"
    HIGH = "4K"


def _clean_prompt(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Prompt is required")
    return v


class GenerateImageRequest(BaseModel):
    """Request for image generation."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., max_length=4000, description="Image generation prompt")
    model: str | None = Field(
        None, description="Model ID or alias; defaults to the configured image model"
    )
    aspect_ratio: AspectRatio = Field(
        default=AspectRatio.LANDSCAPE_32, alias="aspectRatio", description="Image aspect ratio"
    )
    image: str | None = Field(
        None, description="Optional input image (data URL, base64 or http(s) URL)"
    )
    num_outputs: int = Field(
        default=1, ge=1, le=4, alias="numOutputs", description="Number of images to generate"
    )
    resolution: Resolution = Field(default=Resolution.LOW, description="Output resolution")

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        """Validate and clean prompt."""
        return _clean_prompt(v)


class GenerateImageResponse(BaseModel):
    """Response for image generation."""

    success: bool = True
    url: str = Field(..., description="First generated image")
    urls: list[str] = Field(..., description="All generated images, in provider order")


class UpscaleRequest(BaseModel):
    """Request for image upscaling."""

    image: str = Field(..., min_length=1, description="Image to upscale (data URL or URL)")


class UpscaleResponse(BaseModel):
    """Response for image upscaling."""

    success: bool = True
    url: str = Field(..., description="Upscaled image")


class EnhancePromptRequest(BaseModel):
    """Request for prompt enhancement."""

    prompt: str = Field(..., max_length=4000, description="Prompt to enhance")

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        return _clean_prompt(v)


class EnhancePromptResponse(BaseModel):
    """Response for prompt enhancement."""

    success: bool = True
    prompt: str = Field(..., description="Enhanced prompt")
