"""Tests for the public contact form."""

import httpx
import pytest

from portfolio import models
from portfolio.api.contact import validate_contact
from portfolio.core.config import settings
from portfolio.core.email_service import email_service


VALID_MESSAGE = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "subject": "Hello",
    "message": "I would like to talk about a project.",
}


class TestContactSubmission:
    """Valid, spam and invalid submissions."""

    def test_valid_submission_is_stored(self, client, db):
        response = client.post("/api/contact", json=VALID_MESSAGE)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Message sent successfully"

        contact = db.query(models.Contact).filter(models.Contact.id == body["data"]["id"]).one()
        assert contact.status == "NEW"
        assert contact.email == "ada@example.com"

    def test_honeypot_reports_success_without_saving(self, client, db):
        response = client.post("/api/contact", json={**VALID_MESSAGE, "website": "http://spam.example"})
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert db.query(models.Contact).count() == 0

    def test_invalid_fields_are_reported_per_field(self, client, db):
        response = client.post("/api/contact", json={
            "name": "A",
            "email": "not-an-email",
            "message": "short",
        })
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Validation failed"
        assert set(body["data"]) == {"name", "email", "message"}
        assert db.query(models.Contact).count() == 0

    def test_angle_brackets_are_stripped(self, client, db):
        payload = {**VALID_MESSAGE, "message": "<script>alert(1)</script> please reply"}
        response = client.post("/api/contact", json=payload)
        assert response.status_code == 200

        contact = db.query(models.Contact).one()
        assert "<" not in contact.message and ">" not in contact.message

    def test_get_is_not_allowed(self, client):
        response = client.get("/api/contact")
        assert response.status_code == 405


class TestContactRateLimit:
    """Five messages per fifteen minutes per client."""

    def test_sixth_request_is_rejected(self, client):
        for _ in range(5):
            assert client.post("/api/contact", json=VALID_MESSAGE).status_code == 200

        response = client.post("/api/contact", json=VALID_MESSAGE)
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["error"].startswith("Too many requests")

    def test_window_reset_allows_new_requests(self, client, clock):
        for _ in range(5):
            client.post("/api/contact", json=VALID_MESSAGE)
        assert client.post("/api/contact", json=VALID_MESSAGE).status_code == 429

        clock.advance(15 * 60 + 1)
        assert client.post("/api/contact", json=VALID_MESSAGE).status_code == 200

    def test_different_user_agents_are_counted_separately(self, client):
        for _ in range(5):
            client.post("/api/contact", json=VALID_MESSAGE)

        response = client.post("/api/contact", json=VALID_MESSAGE, headers={"User-Agent": "Firefox/120"})
        assert response.status_code == 200


class TestEmailValidation:

    @pytest.mark.parametrize("email", ["ada@example.com", "first.last+tag@mail.example.org"])
    def test_accepts_addresses(self, email):
        assert "email" not in validate_contact("Ada", email, "", "A long enough message")

    @pytest.mark.parametrize("email", ["not-an-email", "ada@", "@example.com", "ada@@example.com", "ada @example.com"])
    def test_rejects_malformed_addresses(self, email):
        errors = validate_contact("Ada", email, "", "A long enough message")
        assert errors["email"] == "Please enter a valid email address"


class TestNotificationFailure:

    def test_provider_error_does_not_fail_submission(self, client, db, monkeypatch):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(500, json={"message": "provider down"})

        monkeypatch.setattr(settings, "FROM_EMAIL", "site@example.com")
        monkeypatch.setattr(settings, "TO_EMAIL", "owner@example.com")
        monkeypatch.setattr(email_service, "api_key", "re_test")
        monkeypatch.setattr(email_service, "transport", httpx.MockTransport(handler))

        response = client.post("/api/contact", json=VALID_MESSAGE)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert len(calls) == 1
        assert db.query(models.Contact).count() == 1
