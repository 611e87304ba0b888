"""Health check endpoint."""

import logging
from datetime import datetime, timezone

from beartype import beartype
from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from ..dependencies import AppSettings

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Overall service health."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    status: str = Field(..., pattern=r"^(healthy|unhealthy|degraded)$")
    timestamp: datetime
    version: str = Field(..., description="API version")
    environment: str


@router.get("/health")
@beartype
async def health_check(settings: AppSettings) -> HealthResponse:
    """Report that the API process is up."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        environment=settings.api_env,
    )
