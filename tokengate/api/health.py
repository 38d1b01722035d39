"""Health check endpoint with database and revocation store checks."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from tokengate.core import check_db_connection, settings
from tokengate.services.revocation import RevocationStore

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    revocation_store: str


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 when the identity database is down. An unreachable
    revocation store is reported as degraded but keeps 200, since
    authentication keeps working (fail-open) without it.
    """
    db_healthy = await check_db_connection()
    store: RevocationStore = request.app.state.revocation_store
    store_healthy = await store.ping()

    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        overall = "unhealthy"
    elif not store_healthy:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=settings.app_version,
        database="connected" if db_healthy else "disconnected",
        revocation_store="connected" if store_healthy else "disconnected",
    )
