"""
Model Router: maps a declarative model identifier to one provider target.

Provides:
- MODEL_ALIASES: friendly names resolved to canonical model IDs
- ROUTING_TABLE: ordered identifier patterns per backend family
- IMAGE_INPUT_FALLBACKS: substitutes for models that reject image input
- route(): resolve a GenerationRequest to a ProviderTarget
- list_models(): describe the routing table for clients

Routing is pure: no I/O and no shared mutable state.
"""

import logging
from dataclasses import dataclass

from core.exceptions import InvalidModelError

from .providers.base import GenerationRequest, ProviderFamily, ProviderTarget

logger = logging.getLogger(__name__)


REAL_ESRGAN_MODEL = (
    "nightmareai/real-esrgan:b3ef194191d13140337468c916c2c5b96dd0cb06dffc032a022a31807f6a5ea8"
)

MODEL_ALIASES: dict[str, str] = {
    # sync-image
    "sync-image-fast": "black-forest-labs/flux-schnell",
    "sync-image-dev": "black-forest-labs/flux-dev",
    # image-edit
    "image-edit-fast": "models/imagen-4.0-fast-generate-001",
    "image-edit-standard": "models/imagen-4.0-generate-001",
    "image-edit-ultra": "models/imagen-4.0-ultra-generate-001",
    "image-edit-pro": "models/nano-banana-pro-preview",
    # upscale
    "upscale": REAL_ESRGAN_MODEL,
    # long-running-video
    "video-standard": "models/veo-2.0-generate-001",
    "video-fast": "models/veo-3.0-fast-generate-001",
    "video-next": "models/veo-3.1-generate-preview",
}

# Models that reject an input image, and the sibling that accepts one
IMAGE_INPUT_FALLBACKS: dict[str, str] = {
    "black-forest-labs/flux-schnell": "black-forest-labs/flux-dev",
}


@dataclass(frozen=True)
class RouteRule:
    """One row of the routing table."""

    family: ProviderFamily
    provider: str
    patterns: tuple[str, ...]
    description: str

    def matches(self, model_id: str) -> bool:
        lowered = model_id.lower()
        return any(pattern in lowered for pattern in self.patterns)


# First match wins, so the more specific families come first
ROUTING_TABLE: tuple[RouteRule, ...] = (
    RouteRule(
        family=ProviderFamily.LONG_RUNNING_VIDEO,
        provider="google",
        patterns=("veo",),
        description="Google Veo video generation (long-running operation)",
    ),
    RouteRule(
        family=ProviderFamily.UPSCALE,
        provider="replicate",
        patterns=("real-esrgan",),
        description="Real-ESRGAN 4x upscaling on Replicate",
    ),
    RouteRule(
        family=ProviderFamily.IMAGE_EDIT,
        provider="google",
        patterns=("imagen", "banana", "gemini-3-pro-image"),
        description="Google Imagen / Gemini image prediction with optional image input",
    ),
    RouteRule(
        family=ProviderFamily.SYNC_IMAGE,
        provider="replicate",
        patterns=("black-forest-labs/", "flux"),
        description="FLUX image generation on Replicate",
    ),
)


def resolve_alias(model_id: str) -> str:
    """Return the canonical model ID for an alias, or the ID unchanged."""
    return MODEL_ALIASES.get(model_id, model_id)


def match_rule(model_id: str) -> RouteRule | None:
    """Find the first routing table row matching a canonical model ID."""
    for rule in ROUTING_TABLE:
        if rule.matches(model_id):
            return rule
    return None


def _endpoint_model(rule: RouteRule, model_id: str) -> str:
    if rule.provider == "google" and not model_id.startswith("models/"):
        return f"models/{model_id}"
    if rule.family is ProviderFamily.SYNC_IMAGE and "/" not in model_id:
        return f"black-forest-labs/{model_id}"
    return model_id


def route(request: GenerationRequest) -> ProviderTarget:
    """
    Resolve a request to exactly one provider target.

    Args:
        request: The generation request

    Returns:
        ProviderTarget with the family, provider and endpoint model to call.

    Raises:
        InvalidModelError: If the identifier matches no known family.
    """
    notes: list[str] = []
    model_id = (request.model_id or "").strip()

    canonical = resolve_alias(model_id)
    if canonical != model_id:
        notes.append(f"alias '{model_id}' resolved to '{canonical}'")

    rule = match_rule(canonical) if canonical else None
    if rule is None:
        logger.warning(f"[Router] No route for model: {request.model_id!r}")
        raise InvalidModelError(request.model_id)

    endpoint_model = _endpoint_model(rule, canonical)

    if request.has_input_image and endpoint_model in IMAGE_INPUT_FALLBACKS:
        substitute = IMAGE_INPUT_FALLBACKS[endpoint_model]
        notes.append(f"'{endpoint_model}' does not accept image input, using '{substitute}'")
        logger.info(f"[Router] Image input: switching {endpoint_model} -> {substitute}")
        endpoint_model = substitute

    target = ProviderTarget(
        family=rule.family,
        provider=rule.provider,
        endpoint_model=endpoint_model,
        compatibility_notes=tuple(notes),
    )
    logger.info(
        f"[Router] {request.request_id}: {model_id} -> {target.family.value}/{target.endpoint_model}"
    )
    return target


def list_models() -> dict:
    """
    Describe the routing table.

    Returns:
        Dict with the families (in match order), aliases and image-input fallbacks.
    """
    families = []
    for rule in ROUTING_TABLE:
        aliases = {
            alias: model_id
            for alias, model_id in MODEL_ALIASES.items()
            if match_rule(model_id) is rule
        }
        families.append(
            {
                "family": rule.family.value,
                "provider": rule.provider,
                "media_type": rule.family.media_type.value,
                "long_running": rule.family.is_long_running,
                "patterns": list(rule.patterns),
                "description": rule.description,
                "aliases": aliases,
            }
        )

    return {
        "families": families,
        "aliases": dict(MODEL_ALIASES),
        "image_input_fallbacks": dict(IMAGE_INPUT_FALLBACKS),
    }
