"""Health check endpoint.

Reports liveness and whether the security secrets come from the
environment rather than development fallbacks. Which secrets are missing
is never exposed.
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from storefront.api.dependencies import get_security_config
from storefront.core import settings
from storefront.core.config import SecurityConfig

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    environment_ready: bool


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={status.HTTP_200_OK: {"description": "Service is healthy"}},
)
async def health_check(config: SecurityConfig = Depends(get_security_config)) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment_ready=not config.using_fallbacks,
    )
