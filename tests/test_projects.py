"""Tests for project slugs, public listing and admin bulk operations."""

import pytest

from portfolio import crud, models
from portfolio.crud.projects import generate_slug
from portfolio.schemas import ProjectCreate


def make_project(client, headers, title, **fields):
    payload = {
        "title": title,
        "description": "A longer description",
        "shortDescription": "Short",
        **fields,
    }
    response = client.post("/api/admin/projects", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestSlugGeneration:

    @pytest.mark.parametrize("title, slug", [
        ("Hello, World!", "hello-world"),
        ("  Leading and trailing  ", "leading-and-trailing"),
        ("C++ & Rust -- Systems", "c-rust-systems"),
        ("already-a-slug", "already-a-slug"),
    ])
    def test_slug_from_title(self, title, slug):
        assert generate_slug(title) == slug


class TestAdminProjects:
    """Create, update and duplicate handling."""

    def test_create_assigns_slug_and_next_order(self, client, admin_headers):
        first = make_project(client, admin_headers, "Hello, World!")
        second = make_project(client, admin_headers, "Second Project")

        assert first["slug"] == "hello-world"
        assert second["order"] == first["order"] + 1
        assert first["status"] == "DRAFT"

    def test_duplicate_title_is_rejected(self, client, admin_headers):
        make_project(client, admin_headers, "Hello, World!")
        response = client.post("/api/admin/projects", json={
            "title": "hello world",
            "description": "Other",
            "shortDescription": "Other",
        }, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "A project with this title already exists"

    def test_missing_fields_are_named(self, client, admin_headers):
        response = client.post("/api/admin/projects", json={"title": "Only a title"}, headers=admin_headers)
        assert response.status_code == 400
        body = response.json()
        assert "description" in body["data"]["missing"]
        assert "shortDescription" in body["data"]["missing"]

    def test_title_change_regenerates_slug(self, client, admin_headers):
        project = make_project(client, admin_headers, "Old Name")
        response = client.put(f"/api/admin/projects/{project['id']}",
                              json={"title": "New Name"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["slug"] == "new-name"

    def test_unknown_project_is_404(self, client, admin_headers):
        response = client.get("/api/admin/projects/does-not-exist", headers=admin_headers)
        assert response.status_code == 404


class TestBulkOperations:
    """Every bulk action is all-or-nothing."""

    def test_update_order(self, client, admin_headers, db):
        a = make_project(client, admin_headers, "Alpha")
        b = make_project(client, admin_headers, "Beta")

        response = client.post("/api/admin/projects/bulk", json={
            "action": "updateOrder",
            "data": [{"id": a["id"], "order": 10}, {"id": b["id"], "order": 5}],
        }, headers=admin_headers)

        assert response.status_code == 200
        orders = {p.id: p.order for p in db.query(models.Project).all()}
        assert orders == {a["id"]: 10, b["id"]: 5}

    def test_update_order_with_unknown_id_changes_nothing(self, client, admin_headers, db):
        a = make_project(client, admin_headers, "Alpha")
        original_order = a["order"]

        response = client.post("/api/admin/projects/bulk", json={
            "action": "updateOrder",
            "data": [{"id": a["id"], "order": 99}, {"id": "missing", "order": 1}],
        }, headers=admin_headers)

        assert response.status_code == 404
        db.expire_all()
        assert db.query(models.Project).filter(models.Project.id == a["id"]).one().order == original_order

    def test_update_order_requires_a_list(self, client, admin_headers):
        response = client.post("/api/admin/projects/bulk", json={
            "action": "updateOrder", "data": {"id": "x"},
        }, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid data format for order update"

    def test_update_status_and_delete(self, client, admin_headers, db):
        a = make_project(client, admin_headers, "Alpha")
        b = make_project(client, admin_headers, "Beta")

        response = client.post("/api/admin/projects/bulk", json={
            "action": "updateStatus", "projectIds": [a["id"], b["id"]], "data": {"status": "PUBLISHED"},
        }, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "2 projects updated to PUBLISHED"

        response = client.post("/api/admin/projects/bulk", json={
            "action": "delete", "projectIds": [a["id"]],
        }, headers=admin_headers)
        assert response.status_code == 200
        assert db.query(models.Project).count() == 1

    def test_unknown_action(self, client, admin_headers):
        response = client.post("/api/admin/projects/bulk", json={"action": "archive"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid action"


class TestPublicProjects:

    def test_only_published_projects_are_listed(self, client, admin_headers):
        make_project(client, admin_headers, "Draft One")
        make_project(client, admin_headers, "Live One", status="PUBLISHED", technologies=["Python"])
        make_project(client, admin_headers, "Live Two", status="PUBLISHED", featured=True)

        body = client.get("/api/projects").json()
        assert body["total"] == 2
        assert [p["slug"] for p in body["data"]] == ["live-two", "live-one"]

        filtered = client.get("/api/projects", params={"technology": "Python"}).json()
        assert [p["slug"] for p in filtered["data"]] == ["live-one"]

    def test_invalid_limit(self, client):
        response = client.get("/api/projects", params={"limit": "0"})
        assert response.status_code == 400
        assert response.json()["error"] == "Limit must be a positive number"

    def test_draft_is_not_reachable_by_slug(self, client, admin_headers):
        make_project(client, admin_headers, "Secret Draft")
        assert client.get("/api/projects/secret-draft").status_code == 404

    def test_published_project_by_slug(self, client, db):
        crud.create_project(db, ProjectCreate(
            title="Public Thing", description="d", short_description="s", status="PUBLISHED",
        ))
        response = client.get("/api/projects/public-thing")
        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Public Thing"
