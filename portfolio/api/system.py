"""System endpoints for health checks."""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import get_db
from ..core.stream_service import iso_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["System"])


@router.get("/health", summary="Service health check")
def health_check(db: Session = Depends(get_db)) -> JSONResponse:
    """Check that the API can reach its database."""
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
        database_status = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Health check database probe failed: {e}")
        database_status = "unhealthy"

    healthy = database_status == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": iso_now(),
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "checks": {"database": database_status},
            "responseTimeMs": int(round((time.perf_counter() - started) * 1000)),
        },
    )
