"""Retention cleanup endpoints: manual runs, the cron hook and stored schedules."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.cleanup_service import DEFAULT_RETENTION_DAYS, cleanup_service
from ..core.database import get_db
from ..core.errors import ValidationError
from ..core.security import require_admin, verify_cron_secret
from .. import crud, schemas, models

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["Cleanup"])


@router.post("/cleanup")
def run_cleanup(
    request_in: schemas.CleanupRequest,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    """Delete (or with ``dryRun`` only count) analytics rows older than ``retentionDays``."""
    retention_days = crud.validate_retention_days(request_in.retention_days)
    result = cleanup_service.run(
        db,
        retention_days=retention_days,
        dry_run=request_in.dry_run,
        aggressive=request_in.aggressive,
        compact=request_in.compact,
        include_index_usage=True,
    )

    total = result["deleted"]["total"]
    if request_in.dry_run:
        message = f"Dry run: {total} records would be deleted"
    else:
        message = f"Cleanup completed: {total} records deleted"
    return {"success": True, "data": result, "message": message}


def _cron_cleanup(db: Session) -> dict:
    result = cleanup_service.run(db, retention_days=DEFAULT_RETENTION_DAYS)
    deleted = result["deleted"]
    return {
        "success": True,
        "deleted": {
            "analytics": deleted["analytics"],
            "pageViews": deleted["pageViews"],
            "sessions": deleted["sessions"],
            "total": deleted["total"],
        },
    }


@router.get("/cron/cleanup", dependencies=[Depends(verify_cron_secret)])
def cron_cleanup(db: Session = Depends(get_db)) -> dict:
    """Entry point for the platform scheduler."""
    logger.info("⏰ Cron cleanup triggered")
    return _cron_cleanup(db)


@router.post("/cron/cleanup", dependencies=[Depends(verify_cron_secret)])
def cron_cleanup_post(db: Session = Depends(get_db)) -> dict:
    logger.info("⏰ Cron cleanup triggered")
    return _cron_cleanup(db)


@router.post("/schedule-cleanup")
def create_cleanup_schedule(
    schedule_in: schemas.CleanupScheduleCreate,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    schedule = crud.create_schedule(
        db,
        retention_days=schedule_in.retention_days,
        schedule=schedule_in.schedule,
        aggressive=schedule_in.aggressive,
        enabled=schedule_in.enabled,
    )
    return {
        "success": True,
        "data": schemas.CleanupScheduleOut.model_validate(schedule).to_json(),
        "message": (
            f"Scheduled cleanup configured: {schedule.schedule} cleanup of data "
            f"older than {schedule.retention_days} days"
        ),
    }


@router.get("/schedule-cleanup")
def list_cleanup_schedules(
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    schedules = crud.list_schedules(db)
    return {
        "success": True,
        "data": [schemas.CleanupScheduleOut.model_validate(s).to_json() for s in schedules],
    }


@router.put("/schedule-cleanup")
def execute_cleanup_schedule(
    schedule_id: Optional[str] = Query(None, alias="id"),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    """Run a stored schedule now."""
    if not schedule_id:
        raise ValidationError("Schedule ID is required")

    schedule = crud.get_schedule(db, schedule_id)
    result = cleanup_service.run_schedule(db, schedule)
    return {
        "success": True,
        "data": {
            "schedule": schemas.CleanupScheduleOut.model_validate(schedule).to_json(),
            "cleanupResult": result,
        },
        "message": "Scheduled cleanup executed successfully",
    }
