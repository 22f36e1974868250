# roomboard/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from roomboard.core.config import get_settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(..., description="Overall service status.", examples=["ok"])
    app_name: str = Field(..., description="Name of the running application.", examples=["Roomboard"])
    environment: str = Field(..., description="Deployment environment.", examples=["local"])
    local_timezone: str = Field(
        ...,
        description="Zone used for day boundaries and recurrence end dates.",
        examples=["Asia/Kolkata"],
    )
    rooms: int = Field(..., description="Number of room calendars shown on the dashboard.", examples=[4])
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for the Roomboard service",
    description=(
        "Lightweight liveness probe. Does not call the bookings API, so it "
        "stays green while room calendars are unreachable."
    ),
)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        local_timezone=settings.LOCAL_TIMEZONE,
        rooms=len(settings.ROOM_RESOURCES),
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
