"""Tests for retention cleanup, the cron hook and stored schedules."""

from datetime import datetime, timedelta

import pytest

from portfolio import crud, models
from portfolio.core.cleanup_service import CleanupScheduler, CleanupService, estimate_size_kb
from portfolio.core.database import SessionLocal
from portfolio.core.errors import ValidationError

NOW = datetime(2025, 6, 1, 12, 0, 0)


def add_rows(db, session_id, page_url, timestamp):
    db.add(models.VisitorSession(session_id=session_id, start_time=timestamp, end_time=timestamp, page_views=1))
    db.add(models.PageView(page_url=page_url, session_id=session_id, timestamp=timestamp))
    db.add(models.AnalyticsEvent(page_url=page_url, session_id=session_id, timestamp=timestamp))
    db.commit()


def counts(db):
    return (
        db.query(models.AnalyticsEvent).count(),
        db.query(models.PageView).count(),
        db.query(models.VisitorSession).count(),
    )


@pytest.fixture
def service():
    return CleanupService(clock=lambda: NOW)


@pytest.fixture
def aged_data(db):
    add_rows(db, "old-1", "/", NOW - timedelta(days=400))
    add_rows(db, "old-2", "/about", NOW - timedelta(days=380))
    add_rows(db, "new-1", "/", NOW - timedelta(days=10))


class TestCleanupService:

    def test_dry_run_counts_without_deleting(self, db, service, aged_data):
        before = counts(db)
        result = service.run(db, retention_days=365, dry_run=True)

        assert counts(db) == before
        assert result["dryRun"] is True
        assert result["deleted"]["analytics"] == 2
        assert result["deleted"]["pageViews"] == 2
        assert result["deleted"]["sessions"] == 2
        assert result["deleted"]["total"] == 6

    def test_live_run_deletes_at_least_the_dry_run_count(self, db, service, aged_data):
        dry = service.run(db, retention_days=365, dry_run=True)
        before = sum(counts(db))
        live = service.run(db, retention_days=365)

        assert live["deleted"]["total"] >= dry["deleted"]["total"]
        assert sum(counts(db)) == before - live["deleted"]["total"]
        assert counts(db) == (1, 1, 1)

    def test_size_estimate(self, db, service, aged_data):
        result = service.run(db, retention_days=365, dry_run=True)
        assert result["sizeEstimate"]["beforeKB"] == estimate_size_kb(3, 3, 3)
        assert result["sizeEstimate"]["savedKB"] == pytest.approx(estimate_size_kb(2, 2, 2), abs=0.01)

    def test_aggressive_removes_near_duplicates(self, db, service):
        stamp = NOW - timedelta(days=1)
        db.add(models.VisitorSession(session_id="s", start_time=stamp, end_time=stamp, page_views=3))
        for offset in (0, 30, 200):
            db.add(models.AnalyticsEvent(page_url="/", session_id="s", timestamp=stamp + timedelta(seconds=offset)))
            db.add(models.PageView(page_url="/", session_id="s", timestamp=stamp + timedelta(seconds=offset)))
        db.commit()

        dry = service.run(db, retention_days=365, dry_run=True, aggressive=True)
        assert dry["deleted"]["duplicateAnalytics"] == 1
        assert dry["deleted"]["duplicatePageViews"] == 1
        assert counts(db) == (3, 3, 1)

        live = service.run(db, retention_days=365, aggressive=True)
        assert live["deleted"]["duplicateAnalytics"] == 1
        assert counts(db) == (2, 2, 1)

    def test_duplicate_detection_keeps_lowest_id(self):
        base = datetime(2025, 1, 1)
        rows = [
            (1, "s", "/", base),
            (2, "s", "/", base + timedelta(seconds=59)),
            (3, "s", "/", base + timedelta(seconds=120)),
            (4, "s", "/other", base),
        ]
        assert CleanupService._duplicate_ids(rows) == [2]


class TestCleanupEndpoints:

    def test_retention_bounds(self, client, admin_headers):
        response = client.post("/api/analytics/cleanup", json={"retentionDays": 10}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Retention days must be between 30 and 1095"

    def test_dry_run_endpoint(self, client, admin_headers, db):
        add_rows(db, "ancient", "/", datetime.utcnow() - timedelta(days=800))
        response = client.post("/api/analytics/cleanup", json={"retentionDays": 365, "dryRun": True},
                               headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["deleted"]["total"] == 3
        assert counts(db) == (1, 1, 1)

    def test_cron_cleanup_outside_production(self, client, db):
        add_rows(db, "ancient", "/", datetime.utcnow() - timedelta(days=800))
        response = client.get("/api/analytics/cron/cleanup")
        assert response.status_code == 200
        assert response.json()["deleted"] == {"analytics": 1, "pageViews": 1, "sessions": 1, "total": 3}

    def test_cleanup_requires_admin(self, client, user_headers):
        assert client.post("/api/analytics/cleanup", json={}).status_code == 401
        assert client.post("/api/analytics/cleanup", json={}, headers=user_headers).status_code == 403


class TestSchedules:

    def test_create_and_list(self, client, admin_headers):
        response = client.post("/api/analytics/schedule-cleanup", json={
            "retentionDays": 180, "schedule": "daily",
        }, headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Scheduled cleanup configured: daily cleanup of data older than 180 days"

        listed = client.get("/api/analytics/schedule-cleanup", headers=admin_headers).json()["data"]
        assert [s["id"] for s in listed] == [body["data"]["id"]]

    def test_invalid_schedule(self, client, admin_headers):
        response = client.post("/api/analytics/schedule-cleanup", json={"schedule": "hourly"},
                               headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Schedule must be daily, weekly, or monthly"

    def test_execute_requires_id(self, client, admin_headers):
        response = client.put("/api/analytics/schedule-cleanup", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Schedule ID is required"

    def test_execute_advances_next_run(self, client, admin_headers, db):
        schedule = crud.create_schedule(db, retention_days=365, schedule="weekly")
        response = client.put("/api/analytics/schedule-cleanup", params={"id": schedule.id},
                              headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["schedule"]["lastRun"] is not None
        assert "deleted" in data["cleanupResult"]

    def test_disabled_schedule_cannot_run(self, db, service):
        schedule = crud.create_schedule(db, retention_days=365, schedule="weekly", enabled=False)
        with pytest.raises(ValidationError):
            service.run_schedule(db, schedule)

    def test_scheduler_runs_due_schedules(self, db, service):
        due = crud.create_schedule(db, retention_days=365, schedule="daily")
        due.next_run = NOW - timedelta(minutes=1)
        crud.create_schedule(db, retention_days=365, schedule="monthly")
        db.commit()

        scheduler = CleanupScheduler(session_factory=SessionLocal, check_interval=1, service=service)
        assert scheduler.run_due_schedules() == 1

        db.expire_all()
        refreshed = crud.get_schedule(db, due.id)
        assert refreshed.last_run == NOW
        assert refreshed.next_run == NOW + timedelta(days=1)

    def test_scheduler_prunes_expired_revoked_tokens(self, db, service):
        crud.revoke_token(db, jti="expired", user_id=None, expires_at=NOW - timedelta(hours=1))
        crud.revoke_token(db, jti="live", user_id=None, expires_at=NOW + timedelta(hours=1))

        CleanupScheduler(session_factory=SessionLocal, check_interval=1, service=service).run_due_schedules()

        db.expire_all()
        assert not crud.is_token_revoked(db, "expired")
        assert crud.is_token_revoked(db, "live")


class TestCompaction:

    def test_live_run_compacts_storage(self, db, service, aged_data):
        result = service.run(db, retention_days=365, compact=True)
        assert result["compacted"] is True
        assert counts(db) == (1, 1, 1)

    def test_dry_run_never_compacts(self, db, service, aged_data):
        assert service.run(db, retention_days=365, dry_run=True, compact=True)["compacted"] is False
