"""Tests for tasks: permissions, dependencies, comments and completion fan-out."""

from typing import Any

import pytest

from tests.conftest import list_notifications


@pytest.fixture
def create_task(client, project, manager):
    async def create(account=None, **overrides: Any) -> dict:
        payload = {
            "title": "Order kitchen tiles",
            "description": "Confirm quantities with the supplier and place the order.",
            "projectId": project["id"],
            **overrides,
        }
        response = await client.post(
            "/api/v1/tasks", json=payload, headers=(account or manager).headers
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return create


async def test_manager_creates_task(create_task, project, manager):
    task = await create_task()

    assert task["status"] == "pending"
    assert task["progress"] == 0
    assert task["project"] == {"id": project["id"], "title": "Riverside Loft"}
    assert task["createdBy"]["id"] == str(manager.id)
    assert task["dependencies"] == []
    assert task["isOverdue"] is False


async def test_client_cannot_create_task(client, project, client_user):
    payload = {
        "title": "Paint the hallway",
        "description": "Client asked for a warmer white in the hallway.",
        "projectId": project["id"],
    }
    response = await client.post("/api/v1/tasks", json=payload, headers=client_user.headers)
    assert response.status_code == 403


async def test_unrelated_manager_gets_not_found(client, project, other_manager):
    payload = {
        "title": "Paint the hallway",
        "description": "Client asked for a warmer white in the hallway.",
        "projectId": project["id"],
    }
    response = await client.post("/api/v1/tasks", json=payload, headers=other_manager.headers)
    assert response.status_code == 404


async def test_assignee_must_be_participant(client, project, manager, other_client):
    payload = {
        "title": "Paint the hallway",
        "description": "Client asked for a warmer white in the hallway.",
        "projectId": project["id"],
        "assigneeId": str(other_client.id),
    }
    response = await client.post("/api/v1/tasks", json=payload, headers=manager.headers)

    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "assigneeId"


async def test_assignment_notifies_assignee(client, create_task, client_user):
    task = await create_task(assigneeId=str(client_user.id), priority="high")

    notifications = await list_notifications(client, client_user, type="task_assigned")
    assert len(notifications) == 1
    assert notifications[0]["data"]["taskId"] == task["id"]
    assert notifications[0]["priority"] == "high"


async def test_completion_notifies_managers_and_client(
    client, create_task, admin, manager, client_user
):
    task = await create_task()

    response = await client.patch(
        f"/api/v1/tasks/{task['id']}", json={"status": "completed"}, headers=admin.headers
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "completed"
    assert data["progress"] == 100
    assert data["completedAt"] is not None

    for account in (manager, client_user):
        notifications = await list_notifications(client, account, type="task_completed")
        assert len(notifications) == 1, account.name
        assert notifications[0]["data"]["taskId"] == task["id"]
        assert notifications[0]["category"] == "success"

    assert await list_notifications(client, admin, type="task_completed") == []


async def test_completing_twice_notifies_once(client, create_task, admin, client_user):
    task = await create_task()
    url = f"/api/v1/tasks/{task['id']}"

    await client.patch(url, json={"status": "completed"}, headers=admin.headers)
    await client.patch(url, json={"status": "completed"}, headers=admin.headers)

    assert len(await list_notifications(client, client_user, type="task_completed")) == 1


async def test_reopening_clears_completion(client, create_task, manager):
    task = await create_task(status="completed")
    assert task["completedAt"] is not None

    response = await client.patch(
        f"/api/v1/tasks/{task['id']}", json={"status": "in_progress"}, headers=manager.headers
    )

    data = response.json()["data"]
    assert data["completedAt"] is None
    assert data["startDate"] is not None


async def test_assignee_limited_to_working_fields(client, create_task, client_user):
    task = await create_task(assigneeId=str(client_user.id))
    url = f"/api/v1/tasks/{task['id']}"

    response = await client.patch(url, json={"progress": 40}, headers=client_user.headers)
    assert response.status_code == 200
    assert response.json()["data"]["progress"] == 40

    response = await client.patch(url, json={"title": "Renamed task"}, headers=client_user.headers)
    assert response.status_code == 403


async def test_client_cannot_update_unassigned_task(client, create_task, client_user):
    task = await create_task()

    response = await client.patch(
        f"/api/v1/tasks/{task['id']}", json={"progress": 10}, headers=client_user.headers
    )
    assert response.status_code == 403


async def test_dependencies_must_be_acyclic(client, create_task, manager):
    first = await create_task(title="Strip wallpaper")
    second = await create_task(title="Prime walls", dependencyIds=[first["id"]])
    assert second["dependencies"] == [first["id"]]

    response = await client.patch(
        f"/api/v1/tasks/{first['id']}",
        json={"dependencyIds": [second["id"]]},
        headers=manager.headers,
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "dependencyIds"

    response = await client.patch(
        f"/api/v1/tasks/{first['id']}",
        json={"dependencyIds": [first["id"]]},
        headers=manager.headers,
    )
    assert response.status_code == 400


async def test_delete_blocked_by_dependants(client, create_task, manager):
    first = await create_task(title="Strip wallpaper")
    second = await create_task(title="Prime walls", dependencyIds=[first["id"]])

    response = await client.delete(f"/api/v1/tasks/{first['id']}", headers=manager.headers)
    assert response.status_code == 400
    assert second["id"] in response.json()["details"][0]["message"]

    response = await client.delete(f"/api/v1/tasks/{second['id']}", headers=manager.headers)
    assert response.status_code == 200

    response = await client.delete(f"/api/v1/tasks/{first['id']}", headers=manager.headers)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/tasks/{first['id']}", headers=manager.headers)
    assert response.status_code == 404


async def test_internal_comments_hidden_from_client(client, create_task, manager, client_user):
    task = await create_task()
    url = f"/api/v1/tasks/{task['id']}"

    response = await client.post(
        f"{url}/comments",
        json={"content": "Supplier quote is padded.", "isInternal": True},
        headers=manager.headers,
    )
    assert response.status_code == 201
    response = await client.post(
        f"{url}/comments", json={"content": "Tiles arrive Monday."}, headers=manager.headers
    )
    assert response.status_code == 201

    manager_view = (await client.get(url, headers=manager.headers)).json()["data"]
    client_view = (await client.get(url, headers=client_user.headers)).json()["data"]

    assert len(manager_view["comments"]) == 2
    assert [c["content"] for c in client_view["comments"]] == ["Tiles arrive Monday."]


async def test_client_cannot_post_internal_comment(client, create_task, client_user):
    task = await create_task()

    response = await client.post(
        f"/api/v1/tasks/{task['id']}/comments",
        json={"content": "Can we keep this between us?", "isInternal": True},
        headers=client_user.headers,
    )
    assert response.status_code == 403


async def test_list_tasks_scoped_and_filtered(client, create_task, manager, other_manager):
    await create_task(title="Order kitchen tiles", priority="urgent")
    await create_task(title="Book electrician", priority="low")

    response = await client.get(
        "/api/v1/tasks", params={"priority": "urgent"}, headers=manager.headers
    )
    items = response.json()["data"]["items"]
    assert [t["title"] for t in items] == ["Order kitchen tiles"]

    response = await client.get("/api/v1/tasks", headers=other_manager.headers)
    assert response.json()["data"]["items"] == []


async def test_overdue_filter(client, create_task, manager):
    await create_task(title="Late delivery", deadline="2020-01-01T00:00:00Z")
    await create_task(title="Future delivery", deadline="2099-01-01T00:00:00Z")

    response = await client.get("/api/v1/tasks", params={"overdue": True}, headers=manager.headers)

    items = response.json()["data"]["items"]
    assert [t["title"] for t in items] == ["Late delivery"]
    assert items[0]["isOverdue"] is True
