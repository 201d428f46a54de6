"""
Settings for the generation API, read from the environment and ``.env``.

Provider credentials are optional; families without credentials report
themselves unavailable instead of failing at startup.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============ Application ============
    app_name: str = "Creative Studio API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"  # development, staging, production

    # ============ Server ============
    host: str = "0.0.0.0"
    port: int = 3002

    # ============ CORS ============
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # ============ Google Generative Language API ============
    google_api_key: Optional[str] = None
    google_api_base_url: str = "https://generativelanguage.googleapis.com"

    # ============ Replicate ============
    replicate_api_token: Optional[str] = None
    replicate_output_format: str = "webp"
    replicate_output_quality: int = 90

    # ============ Provider HTTP ============
    provider_timeout: float = 120.0  # seconds per provider call
    max_input_image_bytes: int = 10 * 1024 * 1024  # cap on downloaded input images

    # ============ Models ============
    default_image_model: str = "black-forest-labs/flux-schnell"
    default_video_model: str = "models/veo-2.0-generate-001"
    upscale_model: str = (
        "nightmareai/real-esrgan:"
        "b3ef194191d13140337468c916c2c5b96dd0cb06dffc032a022a31807f6a5ea8"
    )
    upscale_scale: int = 4
    upscale_face_enhance: bool = True
    prompt_enhance_model: str = "gemini-1.5-flash"

    # ============ Aspect Ratio Policy ============
    # Ratio used when a provider's compatibility table has no entry for the request
    aspect_ratio_fallback: str = "1:1"

    # ============ Video Polling ============
    video_poll_interval: float = 3.0  # seconds between status checks
    video_poll_max_attempts: int = 60
    video_authenticated_hosts: List[str] = ["generativelanguage.googleapis.com"]
    error_excerpt_limit: int = 500  # chars of raw payload kept in extraction errors

    # ============ Logging ============
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ============ Rate Limiting ============
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100  # requests per window per client
    rate_limit_window: int = 900  # seconds
    # Peers allowed to set X-Forwarded-For; other callers are keyed by peer address
    trusted_proxies: List[str] = []

    # ============ Defaults ============
    default_aspect_ratio: str = "3:2"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_google_configured(self) -> bool:
        """Check if the Google API key is present."""
        return bool(self.google_api_key)

    @property
    def is_replicate_configured(self) -> bool:
        """Check if the Replicate API token is present."""
        return bool(self.replicate_api_token)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, read on first use."""
    return Settings()
