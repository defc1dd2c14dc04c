"""Tests for the site schedule tree, activity updates and progress roll-up."""

from tests.conftest import list_notifications


def schedule_payload(completed: int = 1, total: int = 4) -> dict:
    activities = [
        {
            "title": f"Activity {index + 1}",
            "status": "completed" if index < completed else "to-do",
            "category": "finishing",
        }
        for index in range(total)
    ]
    return {
        "phases": [
            {
                "name": "Demolition",
                "weeks": [
                    {
                        "weekNumber": 1,
                        "days": [
                            {"dayNumber": 1, "activities": activities[:2]},
                            {"dayNumber": 2, "activities": activities[2:]},
                        ],
                    }
                ],
            }
        ]
    }


async def save(client, project, account, payload):
    return await client.put(
        f"/api/v1/projects/{project['id']}/schedule", json=payload, headers=account.headers
    )


async def test_save_schedule_recomputes_progress(client, project, manager, client_user):
    response = await save(client, project, manager, schedule_payload(completed=1, total=4))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["progress"] == 25
    assert data["summary"]["totalActivities"] == 4
    assert data["summary"]["completedActivities"] == 1

    phase = data["phases"][0]
    assert phase["name"] == "Demolition"
    assert phase["progress"] == 25
    days = phase["weeks"][0]["days"]
    assert [d["dayNumber"] for d in days] == [1, 2]
    assert [len(d["activities"]) for d in days] == [2, 2]

    response = await client.get(f"/api/v1/projects/{project['id']}", headers=client_user.headers)
    project_data = response.json()["data"]
    assert project_data["progress"] == 25
    assert project_data["totalActivities"] == 4
    assert project_data["completedActivities"] == 1

    notifications = await list_notifications(client, client_user, type="project_updated")
    assert len(notifications) == 1
    assert notifications[0]["data"]["progress"] == 25
    assert notifications[0]["data"]["previousProgress"] == 0


async def test_unchanged_progress_does_not_notify(client, project, manager, client_user):
    await save(client, project, manager, schedule_payload(completed=1, total=4))
    await save(client, project, manager, schedule_payload(completed=2, total=8))

    assert len(await list_notifications(client, client_user, type="project_updated")) == 1


async def test_empty_schedule_has_zero_progress(client, project, manager):
    await save(client, project, manager, schedule_payload(completed=2, total=4))
    response = await save(client, project, manager, {"phases": []})

    data = response.json()["data"]
    assert data["progress"] == 0
    assert data["phases"] == []
    assert data["summary"]["totalActivities"] == 0


async def test_resave_keeps_activity_ids(client, project, manager):
    response = await save(client, project, manager, schedule_payload(completed=0, total=1))
    activity = response.json()["data"]["phases"][0]["weeks"][0]["days"][0]["activities"][0]

    payload = {
        "phases": [
            {
                "name": "Finishing",
                "activities": [
                    {"id": activity["id"], "title": "Activity 1", "status": "completed", "weekNumber": 2}
                ],
            }
        ]
    }
    response = await save(client, project, manager, payload)

    data = response.json()["data"]
    saved = data["phases"][0]["weeks"][0]
    assert saved["weekNumber"] == 2
    assert saved["days"][0]["activities"][0]["id"] == activity["id"]
    assert data["progress"] == 100


async def test_schedule_permissions(client, project, client_user, other_manager):
    response = await save(client, project, client_user, schedule_payload())
    assert response.status_code == 403

    response = await save(client, project, other_manager, schedule_payload())
    assert response.status_code == 404

    response = await client.get(
        f"/api/v1/projects/{project['id']}/schedule", headers=client_user.headers
    )
    assert response.status_code == 200


async def test_activity_status_change_updates_progress(client, project, manager):
    await save(client, project, manager, schedule_payload(completed=0, total=2))

    response = await client.get(
        "/api/v1/activities", params={"projectId": project["id"]}, headers=manager.headers
    )
    activities = response.json()["data"]["items"]
    assert len(activities) == 2

    response = await client.patch(
        f"/api/v1/activities/{activities[0]['id']}",
        json={"status": "completed"},
        headers=manager.headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["progress"] == 100
    assert data["actualEndDate"] is not None

    response = await client.get(f"/api/v1/projects/{project['id']}", headers=manager.headers)
    assert response.json()["data"]["progress"] == 50


async def test_activity_internal_comments(client, project, manager, client_user):
    await save(client, project, manager, schedule_payload(completed=0, total=1))
    response = await client.get(
        "/api/v1/activities", params={"projectId": project["id"]}, headers=manager.headers
    )
    activity_id = response.json()["data"]["items"][0]["id"]
    url = f"/api/v1/activities/{activity_id}"

    response = await client.post(
        f"{url}/comments",
        json={"content": "Contractor running late.", "isInternal": True},
        headers=manager.headers,
    )
    assert response.status_code == 201

    response = await client.post(
        f"{url}/comments", json={"content": "Looks great!", "isInternal": True},
        headers=client_user.headers,
    )
    assert response.status_code == 403

    response = await client.get(url, headers=client_user.headers)
    assert response.json()["data"]["comments"] == []


async def test_manager_without_projects_sees_no_activities(client, project, manager, other_manager):
    response = await save(client, project, manager, schedule_payload(completed=1, total=4))
    assert response.status_code == 200

    response = await client.get("/api/v1/activities", headers=manager.headers)
    assert response.json()["data"]["pagination"]["total"] == 4

    response = await client.get("/api/v1/activities", headers=other_manager.headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["items"] == []
    assert data["pagination"]["total"] == 0
