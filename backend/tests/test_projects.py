"""Tests for projects, role scoping and the pagination envelope."""

from uuid import UUID

from designhub.models.project import Project
from tests.conftest import create_account


async def test_create_project_with_default_milestones(client, project, client_user, manager):
    assert project["title"] == "Riverside Loft"
    assert project["status"] == "planning"
    assert project["progress"] == 0
    assert project["client"]["id"] == str(client_user.id)
    assert [m["id"] for m in project["managers"]] == [str(manager.id)]

    phases = [m["phase"] for m in project["milestones"]]
    assert phases == ["construction", "installation", "styling"]
    assert all(m["status"] == "pending" for m in project["milestones"])
    assert project["milestoneProgress"] == {"completed": 0, "total": 3, "percentage": 0}


async def test_only_admin_creates_projects(client, manager, project_payload):
    response = await client.post("/api/v1/projects", json=project_payload, headers=manager.headers)
    assert response.status_code == 403


async def test_create_project_validates_participants(client, admin, manager, project_payload):
    payload = {**project_payload, "clientId": str(manager.id)}
    response = await client.post("/api/v1/projects", json=payload, headers=admin.headers)

    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "clientId"


async def test_create_project_rejects_inverted_dates(client, admin, project_payload):
    payload = {**project_payload, "startDate": "2026-06-01T00:00:00Z", "endDate": "2026-01-01T00:00:00Z"}
    response = await client.post("/api/v1/projects", json=payload, headers=admin.headers)
    assert response.status_code == 400


async def test_visibility_by_role(client, project, admin, manager, other_manager, client_user, other_client):
    url = f"/api/v1/projects/{project['id']}"

    for account in (admin, manager, client_user):
        response = await client.get(url, headers=account.headers)
        assert response.status_code == 200, account.role

    for account in (other_manager, other_client):
        response = await client.get(url, headers=account.headers)
        assert response.status_code == 404, account.role
        assert response.json()["error"] == "NOT_FOUND"


async def test_manager_without_projects_sees_empty_list(client, project, other_manager):
    response = await client.get("/api/v1/projects", headers=other_manager.headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["items"] == []
    assert data["pagination"]["total"] == 0


async def test_pagination_envelope(client, admin, project_payload):
    for index in range(3):
        payload = {**project_payload, "title": f"Apartment {index}"}
        response = await client.post("/api/v1/projects", json=payload, headers=admin.headers)
        assert response.status_code == 201

    response = await client.get(
        "/api/v1/projects",
        params={"page": 2, "limit": 2, "sort": "title"},
        headers=admin.headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert [p["title"] for p in data["items"]] == ["Apartment 2"]
    assert data["pagination"] == {
        "page": 2,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "hasNext": False,
        "hasPrev": True,
    }


async def test_page_past_the_end_is_empty(client, project, admin):
    response = await client.get("/api/v1/projects", params={"page": 5}, headers=admin.headers)

    data = response.json()["data"]
    assert data["items"] == []
    assert data["pagination"]["total"] == 1


async def test_invalid_sort_and_limit(client, admin):
    response = await client.get("/api/v1/projects", params={"sort": "password"}, headers=admin.headers)
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "sort"

    response = await client.get("/api/v1/projects", params={"limit": 1000}, headers=admin.headers)
    assert response.status_code == 400


async def test_search_and_status_filters(client, project, admin):
    response = await client.get(
        "/api/v1/projects", params={"search": "riverside"}, headers=admin.headers
    )
    assert response.json()["data"]["pagination"]["total"] == 1

    response = await client.get(
        "/api/v1/projects", params={"status": "completed"}, headers=admin.headers
    )
    assert response.json()["data"]["pagination"]["total"] == 0


async def test_manager_updates_project(client, project, manager):
    response = await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"status": "in_progress", "siteAddress": "12 Wharf Road"},
        headers=manager.headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "in_progress"
    assert data["siteAddress"] == "12 Wharf Road"


async def test_manager_cannot_reassign_managers(client, project, manager, other_manager):
    response = await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"managerIds": [str(other_manager.id)]},
        headers=manager.headers,
    )
    assert response.status_code == 403


async def test_client_cannot_update_project(client, project, client_user):
    response = await client.patch(
        f"/api/v1/projects/{project['id']}", json={"title": "My title"}, headers=client_user.headers
    )
    assert response.status_code == 403


async def test_admin_reassigns_managers(client, project, admin, manager, other_manager):
    response = await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"managerIds": [str(other_manager.id)]},
        headers=admin.headers,
    )

    assert response.status_code == 200
    assert [m["id"] for m in response.json()["data"]["managers"]] == [str(other_manager.id)]

    response = await client.get(f"/api/v1/projects/{project['id']}", headers=manager.headers)
    assert response.status_code == 404


async def test_delete_project(client, project, admin, manager, session_factory):
    response = await client.delete(f"/api/v1/projects/{project['id']}", headers=manager.headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/projects/{project['id']}", headers=admin.headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"id": project["id"]}

    async with session_factory() as session:
        assert await session.get(Project, UUID(project["id"])) is None

    response = await client.get(f"/api/v1/projects/{project['id']}", headers=admin.headers)
    assert response.status_code == 404


async def test_inactive_manager_cannot_be_assigned(client, admin, session_factory, project_payload):
    retired = await create_account(
        session_factory, "project_manager", "Rita Retired", "rita@designhub.io", is_active=False
    )
    payload = {**project_payload, "managerIds": [str(retired.id)]}

    response = await client.post("/api/v1/projects", json=payload, headers=admin.headers)
    assert response.status_code == 400
