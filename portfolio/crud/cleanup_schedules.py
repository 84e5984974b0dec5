"""Persisted retention cleanup schedules."""

from datetime import datetime, timedelta
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError, ValidationError
from ..models import CleanupFrequency, CleanupSchedule, utcnow

MIN_RETENTION_DAYS = 30
MAX_RETENTION_DAYS = 1095


def validate_retention_days(retention_days: int) -> int:
    if not MIN_RETENTION_DAYS <= retention_days <= MAX_RETENTION_DAYS:
        raise ValidationError(
            f"Retention days must be between {MIN_RETENTION_DAYS} and {MAX_RETENTION_DAYS}"
        )
    return retention_days


def compute_next_run(schedule: str, after: Optional[datetime] = None) -> datetime:
    after = after or utcnow()
    if schedule == CleanupFrequency.DAILY.value:
        return after + timedelta(days=1)
    if schedule == CleanupFrequency.WEEKLY.value:
        return after + timedelta(days=7)
    if schedule == CleanupFrequency.MONTHLY.value:
        return after + relativedelta(months=1)
    raise ValidationError("Schedule must be daily, weekly, or monthly")


def create_schedule(db: Session, retention_days: int, schedule: str,
                    aggressive: bool = False, enabled: bool = True) -> CleanupSchedule:
    validate_retention_days(retention_days)
    db_schedule = CleanupSchedule(
        retention_days=retention_days,
        schedule=schedule,
        aggressive=aggressive,
        enabled=enabled,
        next_run=compute_next_run(schedule),
    )
    db.add(db_schedule)
    db.commit()
    db.refresh(db_schedule)
    return db_schedule


def list_schedules(db: Session) -> List[CleanupSchedule]:
    return db.query(CleanupSchedule).order_by(CleanupSchedule.created_at.desc()).all()


def get_schedule(db: Session, schedule_id: str) -> CleanupSchedule:
    schedule = db.query(CleanupSchedule).filter(CleanupSchedule.id == schedule_id).first()
    if not schedule:
        raise NotFoundError("Cleanup schedule not found")
    return schedule


def get_due_schedules(db: Session, now: Optional[datetime] = None) -> List[CleanupSchedule]:
    now = now or utcnow()
    return db.query(CleanupSchedule).filter(
        CleanupSchedule.enabled.is_(True),
        CleanupSchedule.next_run <= now
    ).order_by(CleanupSchedule.next_run.asc()).all()


def mark_schedule_run(db: Session, schedule: CleanupSchedule, result: dict,
                      ran_at: Optional[datetime] = None) -> CleanupSchedule:
    ran_at = ran_at or utcnow()
    schedule.last_run = ran_at
    schedule.last_result = result
    schedule.next_run = compute_next_run(schedule.schedule, ran_at)
    db.commit()
    db.refresh(schedule)
    return schedule
