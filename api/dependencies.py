"""
FastAPI dependency injection for the generation service and throttling.
"""

import logging

from fastapi import Depends, Request

from core.config import Settings, get_settings
from core.exceptions import ModelUnavailableError
from core.rate_limit import FixedWindowRateLimiter
from services.orchestrator import GenerationService

logger = logging.getLogger(__name__)


def get_generation_service(request: Request) -> GenerationService:
    """Get the GenerationService built at startup."""
    service = getattr(request.app.state, "generation_service", None)
    if service is None:
        raise ModelUnavailableError(message="Generation service is not initialized")
    return service


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter | None:
    """Get the process-wide rate limiter, if one was configured."""
    return getattr(request.app.state, "rate_limiter", None)


def client_key(request: Request, trusted_proxies: list[str] | tuple[str, ...] = ()) -> str:
    """
    Identify the caller for throttling.

    The peer address is used unless the peer is a trusted proxy, in which
    case the first X-Forwarded-For hop names the real client.
    """
    peer = request.client.host if request.client else "unknown"
    if peer not in trusted_proxies:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    return first_hop or peer


async def enforce_rate_limit(
    request: Request,
    limiter: FixedWindowRateLimiter | None = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Count the request against the caller's quota.

    Raises:
        RateLimitError: If the caller exhausted the current window.
    """
    if limiter is None or not settings.rate_limit_enabled:
        return
    limiter.hit(client_key(request, settings.trusted_proxies))
