"""Tests for the aggregation service and the admin reporting endpoints."""

from datetime import datetime, timedelta

import pytest

from portfolio import models
from portfolio.core.analytics_service import AnalyticsFilters, AnalyticsService, resolve_date_range
from portfolio.core.errors import ValidationError
from portfolio.core.report_service import quoted


def add_view(db, session_id, page_url, timestamp, country="Germany", device="desktop",
             browser="Chrome 120", referrer=None):
    session = db.query(models.VisitorSession).filter(models.VisitorSession.session_id == session_id).first()
    if session is None:
        session = models.VisitorSession(
            session_id=session_id, country=country, device=device, browser=browser,
            start_time=timestamp, end_time=timestamp, page_views=0,
        )
        db.add(session)
    session.page_views += 1
    session.end_time = max(session.end_time, timestamp)
    db.add(models.PageView(page_url=page_url, session_id=session_id, timestamp=timestamp, referrer=referrer))
    db.add(models.AnalyticsEvent(
        page_url=page_url, session_id=session_id, timestamp=timestamp, referrer=referrer,
        country=country, device=device, browser=browser,
    ))
    db.commit()


@pytest.fixture
def seeded(db):
    base = datetime(2024, 1, 1, 10, 0, 0)
    add_view(db, "s1", "/", base)
    add_view(db, "s1", "/projects", base + timedelta(minutes=1))
    add_view(db, "s1", "/contact", base + timedelta(minutes=2))
    add_view(db, "s2", "/", base + timedelta(hours=26), country="France", device="mobile",
             browser="Safari 17", referrer="https://www.google.com/")
    add_view(db, "s2", "/projects", base + timedelta(hours=26, minutes=3), country="France",
             device="mobile", browser="Safari 17")
    return base


class TestDateRange:

    def test_days_out_of_range(self):
        with pytest.raises(ValidationError) as exc:
            resolve_date_range("0", None, None, max_days=730)
        assert exc.value.message == "Days parameter must be between 1 and 730"

    def test_explicit_dates_win(self):
        start, end = resolve_date_range("5", "2024-01-01", "2024-01-02", max_days=730)
        assert start == datetime(2024, 1, 1)
        assert end.date().isoformat() == "2024-01-02"
        assert end.hour == 23

    def test_inverted_range(self):
        with pytest.raises(ValidationError) as exc:
            resolve_date_range(None, "2024-02-01", "2024-01-01", max_days=730)
        assert exc.value.message == "Start date must be before end date"

    def test_span_limit(self):
        with pytest.raises(ValidationError) as exc:
            resolve_date_range(None, "2020-01-01", "2024-01-01", max_days=730)
        assert exc.value.message == "Date range cannot exceed 2 years"

    def test_span_of_exactly_max_days(self):
        start, end = resolve_date_range(None, "2023-01-01", "2024-12-31", max_days=730)
        assert (end.date() - start.date()).days == 730

        with pytest.raises(ValidationError):
            resolve_date_range(None, "2023-01-01", "2025-01-01", max_days=730)

    def test_bad_date(self):
        with pytest.raises(ValidationError):
            resolve_date_range(None, "yesterday", "2024-01-01", max_days=730)


class TestAnalyticsService:

    def test_totals_and_daily_series(self, db, seeded):
        service = AnalyticsService(db)
        data = service.get_analytics_data_with_filters(datetime(2024, 1, 1), datetime(2024, 1, 3, 23, 59))

        assert data["totalViews"] == 5
        assert data["uniqueVisitors"] == 2
        assert data["dailyViews"] == [
            {"date": "2024-01-01", "views": 3},
            {"date": "2024-01-02", "views": 2},
            {"date": "2024-01-03", "views": 0},
        ]
        assert data["topPages"][0] == {"url": "/", "views": 2}

    def test_ties_break_alphabetically(self, db, seeded):
        data = AnalyticsService(db).get_analytics_data_with_filters(datetime(2024, 1, 1), datetime(2024, 1, 3))
        assert [page["url"] for page in data["topPages"]] == ["/", "/projects", "/contact"]

    def test_country_filter(self, db, seeded):
        filters = AnalyticsFilters(country="France")
        data = AnalyticsService(db).get_analytics_data_with_filters(datetime(2024, 1, 1), datetime(2024, 1, 3), filters)
        assert data["totalViews"] == 2
        assert data["filters"] == {"country": "France"}

    def test_day_based_helpers(self, db, seeded):
        service = AnalyticsService(db, clock=lambda: datetime(2024, 1, 3))

        assert service.get_analytics_data(days=5)["totalViews"] == 5
        assert service.get_analytics_data(days=1)["totalViews"] == 2
        assert service.get_popular_pages_for_days(5)[0]["url"] == "/"
        assert service.get_visitor_flow_for_days(5)[0]["fromPage"] == "/"

    def test_summary_bounce_and_referrers(self, db, seeded):
        add_view(db, "s3", "/", seeded + timedelta(hours=2), country="Spain")
        summary = AnalyticsService(db).get_analytics_summary(datetime(2024, 1, 1), datetime(2024, 1, 3))

        assert summary["totalViews"] == 6
        assert summary["bounceRate"] == pytest.approx(33.33)
        assert summary["topReferrers"] == [{"referrer": "https://www.google.com/", "count": 1}]

    def test_visitor_flow(self, db, seeded):
        flow = AnalyticsService(db).get_visitor_flow(datetime(2024, 1, 1), datetime(2024, 1, 3))
        assert flow[0] == {"fromPage": "/", "toPage": "/projects", "transitions": 2}
        assert {"fromPage": "/projects", "toPage": "/contact", "transitions": 1} in flow

    def test_realtime_uses_clock(self, db, seeded):
        now = seeded + timedelta(hours=26, minutes=10)
        realtime = AnalyticsService(db, clock=lambda: now).get_realtime_analytics()
        assert realtime["activeSessions"] == 1
        assert realtime["recentViews"] == 2
        assert realtime["recentActivity"][0]["pageUrl"] == "/projects"


class TestReportingEndpoints:

    def test_requires_admin(self, client, user_headers):
        assert client.get("/api/analytics/summary").status_code == 401
        assert client.get("/api/analytics/summary", headers=user_headers).status_code == 403

    def test_days_validation(self, client, admin_headers):
        response = client.get("/api/analytics/summary", params={"days": "400"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Days parameter must be between 1 and 365"

        response = client.get("/api/analytics/data", params={"days": "0"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Days parameter must be between 1 and 730"

    def test_hours_validation(self, client, admin_headers):
        response = client.get("/api/analytics/hourly", params={"hours": "169"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Hours parameter must be between 1 and 168"

    def test_data_endpoint(self, client, admin_headers, seeded):
        response = client.get("/api/analytics/data", params={
            "startDate": "2024-01-01", "endDate": "2024-01-02",
        }, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["totalViews"] == 5

    def test_csv_export_daily_section(self, client, admin_headers, seeded):
        response = client.get("/api/analytics/export", params={
            "format": "csv", "startDate": "2024-01-01", "endDate": "2024-01-02",
        }, headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="analytics-2024-01-01-to-2024-01-02.csv"' in response.headers["content-disposition"]

        lines = response.text.split("\n")
        start = lines.index("Daily Page Views")
        section = lines[start + 1:lines.index("", start)]
        assert section == ["Date,Views", "2024-01-01,3", "2024-01-02,2"]
        assert '"/projects",2,2,' in response.text

    def test_json_export(self, client, admin_headers, seeded):
        response = client.get("/api/analytics/export", params={
            "format": "json", "startDate": "2024-01-01", "endDate": "2024-01-02",
        }, headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"metadata", "summary", "analytics", "popularPages", "visitorFlow", "performanceMetrics"}
        assert body["metadata"]["totalRecords"] == 5

    def test_unknown_export_format(self, client, admin_headers):
        response = client.get("/api/analytics/export", params={"format": "xml"}, headers=admin_headers)
        assert response.status_code == 400

    def test_performance_endpoint(self, client, admin_headers, seeded):
        response = client.get("/api/analytics/performance", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["indexUsage"] == []
        assert {"performanceMetrics", "queryPerformance", "slowQueries", "optimizationRecommendations"} <= set(data)


class TestCsvQuoting:

    def test_embedded_quotes_are_doubled(self):
        assert quoted('say "hi"') == '"say ""hi"""'

    def test_none_is_empty(self):
        assert quoted(None) == '""'
