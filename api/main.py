"""
Creative Studio API application.

Run with ``uvicorn api.main:app`` or the ``creative-studio-api`` script.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import setup_exception_handlers
from api.routers import (
    generate_router,
    health_router,
    models_router,
    video_router,
)
from core.config import Settings, get_settings
from core.rate_limit import FixedWindowRateLimiter
from services.orchestrator import build_generation_service

API_PREFIX = "/api"

# health, generation (image/upscale/enhance), video, model discovery
ROUTERS = (health_router, generate_router, video_router, models_router)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )


configure_logging(get_settings())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build provider clients at startup and close them at shutdown."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")

    if not settings.is_google_configured:
        logger.warning("GOOGLE_API_KEY not set: Imagen and Veo models are unavailable")
    if not settings.is_replicate_configured:
        logger.warning("REPLICATE_API_TOKEN not set: FLUX and upscaling are unavailable")

    # Tests may install their own service before startup
    if app.state.generation_service is None:
        app.state.generation_service = build_generation_service(settings)

    yield

    logger.info("Closing provider clients")
    await app.state.generation_service.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    The generation service is created by the lifespan handler; the rate
    limiter lives for the whole process and is shared by every router.
    """
    settings = settings or get_settings()
    show_docs = not settings.is_production

    app = FastAPI(
        title=settings.app_name,
        description="Image, upscale and video generation across Replicate and Google models",
        version=settings.app_version,
        docs_url="/docs" if show_docs else None,
        redoc_url="/redoc" if show_docs else None,
        openapi_url="/openapi.json" if show_docs else None,
        lifespan=lifespan,
    )

    app.state.generation_service = None
    app.state.rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    setup_exception_handlers(app)

    for router in ROUTERS:
        app.include_router(router, prefix=API_PREFIX)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs" if show_docs else None,
            "health": f"{API_PREFIX}/health",
            "models": f"{API_PREFIX}/models",
        }

    return app


app = create_app()


def run():
    """Serve the app with uvicorn; reloads on change when DEBUG is set."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
