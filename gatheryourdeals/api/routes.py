"""Health endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from gatheryourdeals.api.dependencies import get_services
from gatheryourdeals.wiring import Services

router = APIRouter()


@router.get("/health")
async def health_check(services: Services = Depends(get_services)):
    """Health check endpoint.

    Returns:
        Status and timestamp in ISO8601 format; 503 if the database is down
    """
    healthy = True
    if services.uses_postgres:
        from gatheryourdeals.database import health_check as database_health_check

        healthy = await database_health_check()

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
