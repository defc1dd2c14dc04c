"""Tests for site incident reporting."""

from sqlalchemy import func, select

from designhub.models.daily_report import DailyReport
from designhub.models.incident import Incident
from tests.conftest import list_notifications

INCIDENT = {
    "title": "Scaffold plank gave way",
    "description": "A plank on the east scaffold cracked under load; nobody was on it.",
    "category": "safety",
    "severity": "high",
    "occurredAt": "2026-03-02T09:15:00Z",
    "location": "East elevation",
    "witnessNames": ["Sam Site"],
}


async def test_report_incidents_with_sequential_codes(client, project, manager):
    url = f"/api/v1/projects/{project['id']}/incidents"

    first = await client.post(url, json=INCIDENT, headers=manager.headers)
    second = await client.post(
        url, json={**INCIDENT, "severity": "low", "category": "quality"}, headers=manager.headers
    )

    assert first.status_code == 201
    assert second.status_code == 201
    data = first.json()["data"]
    assert data["incidentCode"] == "INC-001"
    assert data["status"] == "open"
    assert data["reportedBy"]["id"] == str(manager.id)
    assert data["witnessNames"] == ["Sam Site"]
    assert data["resolvedAt"] is None
    assert second.json()["data"]["incidentCode"] == "INC-002"

    response = await client.get(url, params={"severity": "high"}, headers=manager.headers)
    assert [i["incidentCode"] for i in response.json()["data"]["items"]] == ["INC-001"]


async def test_reporting_notifies_other_participants(client, project, manager, client_user):
    response = await client.post(
        f"/api/v1/projects/{project['id']}/incidents", json=INCIDENT, headers=manager.headers
    )
    incident = response.json()["data"]

    notifications = await list_notifications(client, client_user, type="incident_reported")
    assert len(notifications) == 1
    assert notifications[0]["data"]["incidentId"] == incident["id"]
    assert await list_notifications(client, manager, type="incident_reported") == []


async def test_client_reads_but_cannot_report(client, project, manager, client_user):
    url = f"/api/v1/projects/{project['id']}/incidents"
    await client.post(url, json=INCIDENT, headers=manager.headers)

    response = await client.post(url, json=INCIDENT, headers=client_user.headers)
    assert response.status_code == 403

    response = await client.get(url, headers=client_user.headers)
    assert response.status_code == 200
    assert response.json()["data"]["pagination"]["total"] == 1


async def test_unrelated_users_cannot_see_incidents(client, project, manager, other_manager, other_client):
    created = await client.post(
        f"/api/v1/projects/{project['id']}/incidents", json=INCIDENT, headers=manager.headers
    )
    incident_id = created.json()["data"]["id"]

    for account in (other_manager, other_client):
        response = await client.get(f"/api/v1/incidents/{incident_id}", headers=account.headers)
        assert response.status_code == 404
        response = await client.get(
            f"/api/v1/projects/{project['id']}/incidents", headers=account.headers
        )
        assert response.status_code == 404


async def test_resolving_stamps_and_reopening_clears(client, project, manager):
    created = await client.post(
        f"/api/v1/projects/{project['id']}/incidents", json=INCIDENT, headers=manager.headers
    )
    url = f"/api/v1/incidents/{created.json()['data']['id']}"

    response = await client.patch(
        url,
        json={"status": "resolved", "rootCause": "Plank was past its service life."},
        headers=manager.headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["resolvedAt"] is not None
    assert response.json()["data"]["rootCause"] == "Plank was past its service life."

    response = await client.patch(url, json={"status": "investigating"}, headers=manager.headers)
    assert response.json()["data"]["resolvedAt"] is None


async def test_injury_details_and_assignee(client, project, manager, other_client):
    url = f"/api/v1/projects/{project['id']}/incidents"
    payload = {
        **INCIDENT,
        "injuryDetails": {"injuryType": "minor", "bodyPart": "hand", "treatmentRequired": True},
        "assignedToId": str(manager.id),
    }

    response = await client.post(url, json=payload, headers=manager.headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["injuryDetails"]["injuryType"] == "minor"
    assert data["injuryDetails"]["medicalAttention"] is False
    assert data["assignedTo"]["id"] == str(manager.id)

    response = await client.post(
        url, json={**INCIDENT, "assignedToId": str(other_client.id)}, headers=manager.headers
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "assignedToId"


async def test_only_admin_deletes(client, project, admin, manager):
    created = await client.post(
        f"/api/v1/projects/{project['id']}/incidents", json=INCIDENT, headers=manager.headers
    )
    url = f"/api/v1/incidents/{created.json()['data']['id']}"

    response = await client.delete(url, headers=manager.headers)
    assert response.status_code == 403

    response = await client.delete(url, headers=admin.headers)
    assert response.status_code == 200

    response = await client.get(url, headers=admin.headers)
    assert response.status_code == 404


async def test_project_delete_removes_incidents_and_reports(client, project, admin, manager, session_factory):
    await client.post(
        f"/api/v1/projects/{project['id']}/incidents", json=INCIDENT, headers=manager.headers
    )
    await client.post(
        f"/api/v1/projects/{project['id']}/daily-reports",
        json={"reportDate": "2026-03-02", "activities": [{"title": "Demolition"}]},
        headers=manager.headers,
    )

    response = await client.delete(f"/api/v1/projects/{project['id']}", headers=admin.headers)
    assert response.status_code == 200

    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(Incident)) == 0
        assert await session.scalar(select(func.count()).select_from(DailyReport)) == 0
