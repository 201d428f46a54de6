"""
Common Pydantic schemas used across the API.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    success: bool = Field(default=False, description="Always false for errors")
    error: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Machine-readable error code")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details (stage, provider, reason, ...)"
    )


class HealthStatus(str, Enum):
    """Health check status enum."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: HealthStatus
    service: str
    version: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now())
    providers: Dict[str, bool] = Field(
        default_factory=dict,
        description="Whether each provider has credentials configured"
    )
