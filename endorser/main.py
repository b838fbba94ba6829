"""
Liveness probe HTTP application.
"""

from typing import Optional

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse, PlainTextResponse

import structlog

from endorser.core.config import settings
from endorser.api.schemas.common import EndorsementStatus, HealthCheckResponse
from endorser.scheduler.task_scheduler import TaskScheduler
from endorser.services.endorsement import EndorsementProgress, StartupGate

logger = structlog.get_logger(__name__)


def create_app(
    progress: EndorsementProgress,
    gate: Optional[StartupGate] = None,
    scheduler: Optional[TaskScheduler] = None,
    account_name: Optional[str] = None,
) -> FastAPI:
    """Build the probe app over the running validator's state."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
    )

    @app.get("/ping", response_class=PlainTextResponse, tags=["System"])
    async def ping() -> str:
        """Last height an endorsement was successfully submitted for."""
        return str(progress.last_submitted_height)

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["System"],
        summary="Health Check",
    )
    async def health_check():
        scheduler_health = await scheduler.health_check() if scheduler else {}
        healthy = scheduler_health.get("healthy", True)
        response = HealthCheckResponse(
            status="healthy" if healthy else "unhealthy",
            version=settings.app_version,
            endorsement=EndorsementStatus(
                account=account_name,
                last_endorse_height=progress.last_endorse_height,
                last_submitted_height=progress.last_submitted_height,
                network_launched=gate.confirmed if gate else False,
            ),
            scheduler=scheduler_health,
        )
        if not healthy:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=response.model_dump(mode="json"),
            )
        return response

    return app
