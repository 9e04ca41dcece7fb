"""Health check API endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from originality.core.config import settings
from originality.core.database import db_client

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Health check status")
    version: str = Field(..., description="Running application version")
    service: str = Field(..., description="Service name")


@router.get(
    "",
    response_model=HealthCheckResponse,
    tags=["Health"],
    summary="Health check endpoint",
    operation_id="get_service_health_status",
)
async def health_check() -> HealthCheckResponse:
    db_health = await db_client.health_check()
    return HealthCheckResponse(
        status="healthy" if db_health["status"] == "healthy" else "degraded",
        version=settings.app_version,
        service=settings.app_name,
    )
