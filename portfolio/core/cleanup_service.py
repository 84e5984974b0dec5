"""Retention cleanup for the analytics tables.

Deletes rows older than a retention window and can optionally remove
near-duplicate rows and reclaim storage afterwards. Duplicate removal,
compaction and index inspection each degrade to an empty result with a
logged warning so one failing step never aborts the whole run.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud
from ..models import AnalyticsEvent, CleanupSchedule, PageView, VisitorSession, utcnow
from .analytics_service import ANALYTICS_ROW_KB, PAGE_VIEW_ROW_KB, SESSION_ROW_KB, AnalyticsService
from .config import settings
from .database import SessionLocal, is_postgres
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 365
DUPLICATE_WINDOW = timedelta(seconds=60)
DELETE_CHUNK_SIZE = 500


def estimate_size_kb(analytics_rows: int, page_view_rows: int, session_rows: int) -> float:
    """Heuristic storage estimate from fixed per-row sizes."""
    return round(
        analytics_rows * ANALYTICS_ROW_KB + page_view_rows * PAGE_VIEW_ROW_KB + session_rows * SESSION_ROW_KB,
        2
    )


class CleanupService:
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    # --- counting ---

    def _table_counts(self, db: Session) -> Tuple[int, int, int]:
        return (
            db.query(func.count(AnalyticsEvent.id)).scalar() or 0,
            db.query(func.count(PageView.id)).scalar() or 0,
            db.query(func.count(VisitorSession.id)).scalar() or 0,
        )

    def _expired_queries(self, db: Session, cutoff: datetime):
        return (
            db.query(AnalyticsEvent).filter(AnalyticsEvent.timestamp < cutoff),
            db.query(PageView).filter(PageView.timestamp < cutoff),
            db.query(VisitorSession).filter(VisitorSession.start_time < cutoff),
        )

    # --- duplicates ---

    @staticmethod
    def _duplicate_ids(rows) -> List[int]:
        """
        Ids of rows repeating an earlier row of the same session and page.

        ``rows`` must be ordered by session, page and id. Within a group the
        lowest id is kept and any later row within 60 seconds of a kept row is
        a duplicate.
        """
        duplicates = []
        group, kept = None, []
        for row_id, session_id, page_url, timestamp in rows:
            if (session_id, page_url) != group:
                group, kept = (session_id, page_url), []
            if any(abs(timestamp - other) <= DUPLICATE_WINDOW for other in kept):
                duplicates.append(row_id)
            else:
                kept.append(timestamp)
        return duplicates

    def find_duplicates(self, db: Session, cutoff: datetime) -> Dict[str, List[int]]:
        """Duplicate ids among rows that survive the retention cutoff."""
        analytics_rows = db.query(
            AnalyticsEvent.id, AnalyticsEvent.session_id, AnalyticsEvent.page_url, AnalyticsEvent.timestamp
        ).filter(AnalyticsEvent.timestamp >= cutoff).order_by(
            AnalyticsEvent.session_id, AnalyticsEvent.page_url, AnalyticsEvent.id
        ).all()
        page_view_rows = db.query(
            PageView.id, PageView.session_id, PageView.page_url, PageView.timestamp
        ).filter(PageView.timestamp >= cutoff).order_by(
            PageView.session_id, PageView.page_url, PageView.id
        ).all()
        return {
            "analytics": self._duplicate_ids(analytics_rows),
            "pageViews": self._duplicate_ids(page_view_rows),
        }

    def _count_duplicates(self, db: Session, cutoff: datetime) -> Dict[str, int]:
        try:
            found = self.find_duplicates(db, cutoff)
        except SQLAlchemyError as e:
            logger.warning(f"Duplicate detection failed: {e}")
            db.rollback()
            return {"analytics": 0, "pageViews": 0}
        return {name: len(ids) for name, ids in found.items()}

    def remove_duplicates(self, db: Session, cutoff: datetime) -> Dict[str, int]:
        """Delete duplicate analytics and page view rows in one transaction."""
        try:
            found = self.find_duplicates(db, cutoff)
            for model, ids in ((AnalyticsEvent, found["analytics"]), (PageView, found["pageViews"])):
                for offset in range(0, len(ids), DELETE_CHUNK_SIZE):
                    chunk = ids[offset:offset + DELETE_CHUNK_SIZE]
                    db.query(model).filter(model.id.in_(chunk)).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Duplicate removal failed, continuing without it: {e}")
            db.rollback()
            return {"analytics": 0, "pageViews": 0}
        return {name: len(ids) for name, ids in found.items()}

    # --- storage ---

    def compact(self, db: Session) -> bool:
        """Reclaim storage. Runs outside any transaction."""
        statement = "VACUUM ANALYZE analytics, page_views, sessions" if is_postgres(db) else "VACUUM"
        try:
            with db.get_bind().connect() as connection:
                connection.execution_options(isolation_level="AUTOCOMMIT").execute(text(statement))
        except SQLAlchemyError as e:
            logger.warning(f"Storage compaction failed: {e}")
            return False
        logger.info("🧹 Storage compacted")
        return True

    # --- entry points ---

    def run(
        self,
        db: Session,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        dry_run: bool = False,
        aggressive: bool = False,
        compact: bool = False,
        include_index_usage: bool = False,
    ) -> Dict:
        """Delete (or with ``dry_run`` only count) rows older than ``retention_days``."""
        started = time.perf_counter()
        cutoff = self.clock() - timedelta(days=retention_days)
        before = self._table_counts(db)

        expired = self._expired_queries(db, cutoff)
        if dry_run:
            removed = [query.count() for query in expired]
            duplicates = self._count_duplicates(db, cutoff) if aggressive else {"analytics": 0, "pageViews": 0}
        else:
            try:
                removed = [query.delete(synchronize_session=False) for query in expired]
                db.commit()
            except Exception:
                db.rollback()
                raise
            duplicates = self.remove_duplicates(db, cutoff) if aggressive else {"analytics": 0, "pageViews": 0}

        analytics_removed = removed[0] + duplicates["analytics"]
        page_views_removed = removed[1] + duplicates["pageViews"]
        sessions_removed = removed[2]
        after = (before[0] - analytics_removed, before[1] - page_views_removed, before[2] - sessions_removed)

        compacted = self.compact(db) if compact and not dry_run else False

        size_before = estimate_size_kb(*before)
        size_after = estimate_size_kb(*after)
        result = {
            "dryRun": dry_run,
            "retentionDays": retention_days,
            "cutoffDate": cutoff.isoformat(),
            "deleted": {
                "analytics": removed[0],
                "pageViews": removed[1],
                "sessions": removed[2],
                "duplicateAnalytics": duplicates["analytics"],
                "duplicatePageViews": duplicates["pageViews"],
                "total": analytics_removed + page_views_removed + sessions_removed,
            },
            "sizeEstimate": {
                "beforeKB": size_before,
                "afterKB": size_after,
                "savedKB": round(size_before - size_after, 2),
            },
            "compacted": compacted,
            "durationMs": int(round((time.perf_counter() - started) * 1000)),
        }
        if include_index_usage:
            result["indexUsage"] = AnalyticsService(db, clock=self.clock).get_index_usage_stats()

        verb = "Would delete" if dry_run else "Deleted"
        logger.info(f"🗑️ {verb} {result['deleted']['total']} analytics rows older than {retention_days} days")
        return result

    def run_schedule(self, db: Session, schedule: CleanupSchedule) -> Dict:
        """Execute a stored schedule now and advance its next run."""
        if not schedule.enabled:
            raise ValidationError("Scheduled cleanup is disabled")
        result = self.run(db, retention_days=schedule.retention_days, aggressive=schedule.aggressive)
        crud.mark_schedule_run(db, schedule, result, ran_at=self.clock())
        return result


cleanup_service = CleanupService()


class CleanupScheduler:
    """Background loop that runs due cleanup schedules."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 check_interval: Optional[int] = None, service: Optional[CleanupService] = None):
        self.session_factory = session_factory
        self.check_interval = check_interval or settings.CLEANUP_CHECK_INTERVAL_SECONDS
        self.service = service or cleanup_service
        self.is_running = False

    def run_due_schedules(self) -> int:
        """Run every enabled due schedule and prune expired revoked tokens. Returns how many schedules ran."""
        db = self.session_factory()
        ran = 0
        try:
            for schedule in crud.get_due_schedules(db, now=self.service.clock()):
                try:
                    self.service.run_schedule(db, schedule)
                    ran += 1
                except SQLAlchemyError as e:
                    logger.error(f"Scheduled cleanup {schedule.id} failed: {e}")
                    db.rollback()
            purged = crud.purge_expired_tokens(db, now=self.service.clock())
            if purged:
                logger.info(f"Purged {purged} expired revoked token(s)")
            return ran
        finally:
            db.close()

    async def start_auto_cleanup(self):
        """Start the periodic schedule check loop."""
        if self.is_running:
            logger.warning("Cleanup scheduler already running")
            return
        self.is_running = True
        logger.info("🧹 Starting analytics cleanup scheduler")
        while self.is_running:
            try:
                ran = await asyncio.to_thread(self.run_due_schedules)
                if ran:
                    logger.info(f"Ran {ran} scheduled cleanup(s)")
            except SQLAlchemyError as e:
                logger.error(f"Error while checking cleanup schedules: {e}")
            await asyncio.sleep(self.check_interval)

    def stop_auto_cleanup(self):
        """Signal the loop to stop."""
        self.is_running = False
        logger.info("🛑 Stopping analytics cleanup scheduler")


cleanup_scheduler = CleanupScheduler()
