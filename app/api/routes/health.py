# app/api/routes/health.py
import logging
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Liveness payload.
    """

    status: str = Field(..., examples=["ok"])
    app_name: str = Field(..., examples=["Meeting Scheduler"])
    environment: str = Field(
        ...,
        description="Current deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this check was generated.",
    )


class ReadinessResponse(HealthResponse):
    """
    Readiness payload: liveness plus the database round-trip result and the
    scheduling rules currently in force.
    """

    database: str = Field(..., examples=["ok", "unreachable"])
    max_meeting_duration_hours: float = Field(..., examples=[8.0])
    allow_past_scheduling: bool = Field(..., examples=[False])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description=(
        "Answers as long as the process is serving requests. Does not touch "
        "the database, so it stays green while downstream components degrade."
    ),
)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        timestamp_utc=datetime.now(tz=timezone.utc),
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description=(
        "Runs `SELECT 1` against the scheduling database. Responds 503 when "
        "the database cannot be reached."
    ),
    responses={503: {"description": "Database unreachable."}},
)
async def readiness_check(
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> ReadinessResponse:
    settings = get_settings()
    database = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Readiness check could not reach the database")
        database = "unreachable"
        response.status_code = HTTPStatus.SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ok" if database == "ok" else "degraded",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        timestamp_utc=datetime.now(tz=timezone.utc),
        database=database,
        max_meeting_duration_hours=settings.MAX_MEETING_DURATION_HOURS,
        allow_past_scheduling=settings.ALLOW_PAST_SCHEDULING,
    )
