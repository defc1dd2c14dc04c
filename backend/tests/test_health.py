"""Tests for health checks, the dashboard summary and the live channel handshake."""

from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from designhub.main import app
from designhub.models.project import Project


async def test_health(client):
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_readiness_checks_database(client):
    response = await client.get("/api/v1/health/ready")

    assert response.status_code == 200
    assert response.json()["checks"] == {"database": "healthy"}


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/api/v1/nowhere")

    assert response.status_code == 404
    assert response.json()["success"] is False
    assert response.json()["error"] == "NOT_FOUND"


async def test_dashboard_summary(client, project, manager, other_manager):
    response = await client.post(
        "/api/v1/tasks",
        json={
            "title": "Late delivery",
            "description": "Chase the sofa supplier for a new date.",
            "projectId": project["id"],
            "assigneeId": str(manager.id),
            "deadline": "2020-01-01T00:00:00Z",
        },
        headers=manager.headers,
    )
    assert response.status_code == 201

    response = await client.get("/api/v1/dashboard/summary", headers=manager.headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["role"] == "project_manager"
    assert data["projects"]["total"] == 1
    assert data["projects"]["byStatus"] == {"planning": 1}
    assert data["tasks"]["overdue"] == 1
    assert data["tasks"]["assignedToMe"] == 1
    assert data["milestones"] == {"total": 3, "completed": 0}
    assert data["unreadNotifications"] == 1

    response = await client.get("/api/v1/dashboard/summary", headers=other_manager.headers)
    data = response.json()["data"]
    assert data["projects"]["total"] == 0
    assert data["tasks"]["total"] == 0


def test_websocket_rejects_bad_token():
    test_client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with test_client.websocket_connect("/api/v1/ws/connect?token=not-a-token"):
            pass

    assert exc_info.value.code == 1008


async def test_dashboard_average_progress_rounds_half_up(
    client, session_factory, admin, project, project_payload
):
    response = await client.post(
        "/api/v1/projects",
        json={**project_payload, "title": "Harbour Studio"},
        headers=admin.headers,
    )
    assert response.status_code == 201
    async with session_factory() as session:
        stored = await session.get(Project, UUID(project["id"]))
        stored.progress = 25
        await session.commit()

    response = await client.get("/api/v1/dashboard/summary", headers=admin.headers)

    assert response.json()["data"]["projects"]["averageProgress"] == 13
