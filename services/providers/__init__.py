"""
Provider adapter layer.

One adapter per backend family: Replicate FLUX (sync-image), Google Imagen
(image-edit), Replicate Real-ESRGAN (upscale) and Google Veo
(long-running-video).
"""

from .base import (
    BaseAdapter,
    GenerationRequest,
    GenerationResult,
    HTTPProviderMixin,
    # Enums
    MediaType,
    OperationHandle,
    OperationState,
    ProviderFamily,
    ProviderTarget,
    QualityTier,
    # Helpers
    map_aspect_ratio,
    payload_excerpt,
)
from .google import (
    IMAGEN_ASPECT_RATIOS,
    GoogleAdapter,
    ImagenAdapter,
    VeoAdapter,
    build_google_client,
)
from .replicate import (
    FLUX_ASPECT_RATIOS,
    ReplicateAdapter,
    ReplicateImageAdapter,
    ReplicateUpscaleAdapter,
    classify_replicate_error,
)

__all__ = [
    # Enums
    "MediaType",
    "ProviderFamily",
    "QualityTier",
    "OperationState",
    # Data classes
    "GenerationRequest",
    "ProviderTarget",
    "GenerationResult",
    "OperationHandle",
    # Base classes
    "BaseAdapter",
    "HTTPProviderMixin",
    # Helpers
    "map_aspect_ratio",
    "payload_excerpt",
    # Google
    "GoogleAdapter",
    "ImagenAdapter",
    "VeoAdapter",
    "build_google_client",
    "IMAGEN_ASPECT_RATIOS",
    # Replicate
    "ReplicateAdapter",
    "ReplicateImageAdapter",
    "ReplicateUpscaleAdapter",
    "classify_replicate_error",
    "FLUX_ASPECT_RATIOS",
]
