"""Tests for the profile, health and file deletion endpoints."""

import asyncio
import json

import httpx
import pytest

from portfolio.core.errors import ExternalServiceError
from portfolio.core.upload_service import UploadService, upload_service

PROFILE = {
    "name": "Ada Lovelace",
    "title": "Engineer",
    "bio": "Writes programs for engines.",
    "email": "ada@example.com",
    "skills": ["Python", "FastAPI"],
    "socialLinks": {"github": "https://github.com/ada"},
}


class TestProfile:

    def test_missing_profile(self, client):
        response = client.get("/api/profile")
        assert response.status_code == 404
        assert response.json()["error"] == "Profile not found"

    def test_create_then_replace(self, client, admin_headers):
        created = client.put("/api/profile", json=PROFILE, headers=admin_headers)
        assert created.status_code == 200
        profile_id = created.json()["data"]["id"]

        updated = client.put("/api/profile", json=dict(PROFILE, title="Analyst"), headers=admin_headers)
        assert updated.json()["data"]["id"] == profile_id

        data = client.get("/api/profile").json()["data"]
        assert data["title"] == "Analyst"
        assert data["skills"] == ["Python", "FastAPI"]
        assert data["socialLinks"] == {"github": "https://github.com/ada"}

    def test_blank_required_field(self, client, admin_headers):
        response = client.put("/api/profile", json=dict(PROFILE, bio="   "), headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "bio is required"

    @pytest.mark.parametrize("email", ["ada", "ada@@example.com", "ada@example"])
    def test_invalid_email(self, client, admin_headers, email):
        response = client.put("/api/profile", json=dict(PROFILE, email=email), headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email format"

    def test_update_requires_admin(self, client, user_headers):
        assert client.put("/api/profile", json=PROFILE).status_code == 401
        assert client.put("/api/profile", json=PROFILE, headers=user_headers).status_code == 403


class TestHealth:

    def test_healthy(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"database": "healthy"}
        assert body["environment"] == "test"


class TestFileDeletion:

    def test_requires_keys(self, client, admin_headers):
        response = client.post("/api/uploadthing/delete", json={"fileKeys": []}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "File keys are required"

    def test_unconfigured_provider(self, client, admin_headers, monkeypatch):
        monkeypatch.setattr(upload_service, "secret", None)
        response = client.request("DELETE", "/api/uploadthing/delete", json={"fileKeys": ["abc"]},
                                  headers=admin_headers)
        assert response.status_code == 503
        assert response.json()["code"] == "SERVICE_UNAVAILABLE"

    def test_requires_admin(self, client, user_headers):
        response = client.post("/api/uploadthing/delete", json={"fileKeys": ["abc"]}, headers=user_headers)
        assert response.status_code == 403

    def test_provider_call(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["key"] = request.headers["X-Uploadthing-Api-Key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "deletedCount": 2})

        service = UploadService(secret="sk_test", api_url="https://files.test/v6",
                                transport=httpx.MockTransport(handler))
        result = asyncio.run(service.delete_files(["a", "b"]))

        assert result == {"deletedCount": 2, "fileKeys": ["a", "b"]}
        assert seen == {"path": "/v6/deleteFiles", "key": "sk_test", "body": {"fileKeys": ["a", "b"]}}

    def test_provider_failure(self):
        service = UploadService(secret="sk_test", api_url="https://files.test/v6",
                                transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        with pytest.raises(ExternalServiceError):
            asyncio.run(service.delete_files(["a"]))
