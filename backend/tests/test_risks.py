"""Tests for the project risk register."""

RISK = {
    "description": "Custom joinery delivery may slip past the install window.",
    "category": "schedule",
    "probability": "high",
    "impact": "medium",
}


async def test_create_risks_assigns_sequential_codes(client, project, manager):
    url = f"/api/v1/projects/{project['id']}/risks"

    first = await client.post(url, json=RISK, headers=manager.headers)
    second = await client.post(
        url, json={**RISK, "probability": "low", "impact": "low"}, headers=manager.headers
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["data"]["riskCode"] == "R-001"
    assert first.json()["data"]["riskScore"] == 12
    assert first.json()["data"]["status"] == "identified"
    assert second.json()["data"]["riskCode"] == "R-002"
    assert second.json()["data"]["riskScore"] == 4

    response = await client.get(url, headers=manager.headers)
    assert [r["riskCode"] for r in response.json()["data"]["items"]] == ["R-001", "R-002"]


async def test_client_reads_but_cannot_create(client, project, manager, client_user):
    url = f"/api/v1/projects/{project['id']}/risks"
    await client.post(url, json=RISK, headers=manager.headers)

    response = await client.post(url, json=RISK, headers=client_user.headers)
    assert response.status_code == 403

    response = await client.get(url, headers=client_user.headers)
    assert response.status_code == 200
    assert response.json()["data"]["pagination"]["total"] == 1


async def test_unrelated_manager_cannot_see_register(client, project, other_manager):
    response = await client.get(
        f"/api/v1/projects/{project['id']}/risks", headers=other_manager.headers
    )
    assert response.status_code == 404


async def test_update_rescores_and_stamps_review(client, project, manager):
    created = await client.post(
        f"/api/v1/projects/{project['id']}/risks", json=RISK, headers=manager.headers
    )
    risk_id = created.json()["data"]["id"]

    response = await client.patch(
        f"/api/v1/risks/{risk_id}",
        json={
            "impact": "very_high",
            "status": "mitigated",
            "residualProbability": "low",
            "residualImpact": "medium",
        },
        headers=manager.headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["riskScore"] == 20
    assert data["residualScore"] == 6
    assert data["lastReviewDate"] is not None


async def test_owner_must_be_participant(client, project, manager, other_client):
    response = await client.post(
        f"/api/v1/projects/{project['id']}/risks",
        json={**RISK, "ownerId": str(other_client.id)},
        headers=manager.headers,
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "ownerId"


async def test_min_score_filter(client, project, manager):
    url = f"/api/v1/projects/{project['id']}/risks"
    await client.post(url, json=RISK, headers=manager.headers)
    await client.post(url, json={**RISK, "probability": "low", "impact": "low"}, headers=manager.headers)

    response = await client.get(url, params={"minScore": 10}, headers=manager.headers)
    assert [r["riskScore"] for r in response.json()["data"]["items"]] == [12]


async def test_only_admin_deletes(client, project, admin, manager):
    created = await client.post(
        f"/api/v1/projects/{project['id']}/risks", json=RISK, headers=manager.headers
    )
    url = f"/api/v1/risks/{created.json()['data']['id']}"

    response = await client.delete(url, headers=manager.headers)
    assert response.status_code == 403

    response = await client.delete(url, headers=admin.headers)
    assert response.status_code == 200
