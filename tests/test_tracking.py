"""Tests for page view, session, web vital and client error ingestion."""

from portfolio import models
from portfolio.crud.tracking import generate_session_id

CHROME_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class TestSessionId:

    def test_same_client_same_id(self):
        assert generate_session_id("1.2.3.4", CHROME_UA) == generate_session_id("1.2.3.4", CHROME_UA)

    def test_different_ip_different_id(self):
        assert generate_session_id("1.2.3.4", CHROME_UA) != generate_session_id("1.2.3.5", CHROME_UA)

    def test_id_is_32_hex_chars(self):
        session_id = generate_session_id("1.2.3.4", CHROME_UA)
        assert len(session_id) == 32
        int(session_id, 16)


class TestTrackPageView:

    def test_track_writes_one_row_per_table(self, client, db):
        response = client.post("/api/analytics/track", json={
            "pageUrl": "/projects",
            "pageTitle": "Projects",
            "referrer": "https://www.google.com/",
        }, headers={"User-Agent": CHROME_UA, "X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

        assert response.status_code == 200
        session_id = response.json()["sessionId"]
        assert session_id == generate_session_id("203.0.113.7", CHROME_UA)

        assert db.query(models.AnalyticsEvent).count() == 1
        assert db.query(models.PageView).count() == 1
        session = db.query(models.VisitorSession).one()
        assert session.page_views == 1
        assert session.browser == "Chrome 120"
        assert session.device == "desktop"

    def test_same_client_reuses_session(self, client, db):
        headers = {"User-Agent": CHROME_UA}
        first = client.post("/api/analytics/track", json={"pageUrl": "/"}, headers=headers).json()
        second = client.post("/api/analytics/track", json={"pageUrl": "/about"}, headers=headers).json()

        assert first["sessionId"] == second["sessionId"]
        assert db.query(models.VisitorSession).count() == 1
        assert db.query(models.VisitorSession).one().page_views == 2
        assert db.query(models.PageView).count() == 2

    def test_missing_page_url(self, client):
        response = client.post("/api/analytics/track", json={"pageTitle": "No URL"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Missing required fields: pageUrl"
        assert body["data"]["missing"] == ["pageUrl"]

    def test_rate_limited_per_ip(self, client):
        for _ in range(100):
            assert client.post("/api/analytics/track", json={"pageUrl": "/"}).status_code == 200
        response = client.post("/api/analytics/track", json={"pageUrl": "/"})
        assert response.status_code == 429
        assert response.json()["error"] == "Rate limit exceeded"


class TestSessionEndpoint:

    def test_heartbeat_creates_session(self, client, db):
        response = client.post("/api/analytics/session", json={"sessionId": "abc", "action": "start"})
        assert response.status_code == 200
        session = db.query(models.VisitorSession).one()
        assert session.session_id == "abc"
        assert session.page_views == 0

    def test_end_unknown_session_is_404(self, client):
        response = client.post("/api/analytics/session", json={"sessionId": "nope", "action": "end"})
        assert response.status_code == 404


class TestWebVitalsAndErrors:

    def test_web_vital_row(self, client, db):
        response = client.post("/api/analytics/web-vitals", json={
            "name": "LCP", "value": 1234.5, "id": "v1-123", "url": "https://example.com/", "rating": "good",
        })
        assert response.status_code == 200

        row = db.query(models.AnalyticsEvent).one()
        assert row.page_title == "Web Vital: LCP - 1234.5 (good)"
        assert row.session_id == "wv-v1-123"

    def test_web_vital_requires_fields(self, client):
        response = client.post("/api/analytics/web-vitals", json={"name": "LCP"})
        assert response.status_code == 400
        assert set(response.json()["data"]["missing"]) == {"value", "id", "url"}

    def test_client_error_row(self, client, db):
        response = client.post("/api/analytics/error", json={
            "message": "TypeError: x is undefined",
            "url": "https://example.com/projects",
            "timestamp": 1700000000000,
            "digest": "d1g35t",
        })
        assert response.status_code == 200

        row = db.query(models.AnalyticsEvent).one()
        assert row.page_title == "Error: TypeError: x is undefined"
        assert row.session_id.startswith("error-d1g35t-")
