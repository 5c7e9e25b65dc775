"""Health check endpoints for monitoring application status."""

from datetime import datetime
from datetime import timezone

import asyncpg
from fastapi import APIRouter
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from ccas_api.schemas.schemas_workflow import ReadinessResponse
from ccas_api.workflow import __version__

ROUTER_HEALTH = APIRouter(tags=["Health"])


@ROUTER_HEALTH.get(
    "/health",
    summary="Health check endpoint",
    description="Basic health check that returns application status and metadata",
    responses={
        status.HTTP_200_OK: {
            "description": "Application is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2026-01-05T12:00:00.000000Z",
                        "service": "CCAS Workflow API",
                        "version": "1.0.0",
                    }
                }
            },
        }
    },
)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Returns application status and metadata. This endpoint is lightweight
    and does not perform any external dependency checks.

    Used by:
    - Load balancers
    - Container liveness checks
    """
    settings = request.app.state.settings

    response_data = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "version": __version__,
    }

    logger.debug("Health check requested", status="healthy")

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response_data,
    )


@ROUTER_HEALTH.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check including the workflow database",
    responses={
        200: {"description": "Workflow database is reachable"},
        503: {"description": "Workflow database is not configured or not reachable"},
    },
)
async def readiness_check(request: Request):
    """
    Check workflow system readiness.

    Verifies:
    - Database connection
    - Database schema (row count per table)
    """
    domain_db_pool = getattr(request.app.state, "domain_db_pool", None)

    db_configured = domain_db_pool is not None
    db_healthy = await domain_db_pool.health_check() if db_configured else False

    table_counts = {}
    if db_healthy:
        try:
            table_counts = await domain_db_pool.get_table_counts()
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Failed to get table counts", error=str(e))

    content = ReadinessResponse(
        Message="Workflow system ready" if db_healthy else "Workflow system not ready",
        DatabaseConfigured=db_configured,
        DatabaseConnected=db_healthy,
        TablesCount=len(table_counts),
        TableCounts=table_counts,
    ).model_dump()

    return JSONResponse(
        status_code=status.HTTP_200_OK if db_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=content,
    )
