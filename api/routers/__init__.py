"""
API routers for different endpoints.
"""

from .health import router as health_router
from .generate import router as generate_router
from .video import router as video_router
from .models import router as models_router

__all__ = [
    "health_router",
    "generate_router",
    "video_router",
    "models_router",
]
