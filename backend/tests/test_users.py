"""Tests for user administration."""


async def test_admin_creates_user(client, admin):
    response = await client.post(
        "/api/v1/users",
        json={
            "email": "Nina@DesignHub.io",
            "name": "Nina New",
            "role": "project_manager",
            "password": "s3cret-enough",
        },
        headers=admin.headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["email"] == "nina@designhub.io"
    assert data["role"] == "project_manager"
    assert data["isActive"] is True
    assert "password" not in data and "passwordHash" not in data


async def test_duplicate_email_conflicts(client, admin, manager):
    response = await client.post(
        "/api/v1/users",
        json={
            "email": manager.email.upper(),
            "name": "Someone Else",
            "role": "client",
            "password": "s3cret-enough",
        },
        headers=admin.headers,
    )
    assert response.status_code == 409
    assert response.json()["error"] == "CONFLICT"


async def test_only_admin_creates_users(client, manager):
    response = await client.post(
        "/api/v1/users",
        json={"email": "x@designhub.io", "name": "Xavier", "role": "client", "password": "12345678"},
        headers=manager.headers,
    )
    assert response.status_code == 403


async def test_manager_sees_clients_and_managers_only(
    client, admin, manager, other_manager, client_user
):
    response = await client.get("/api/v1/users", headers=manager.headers)

    assert response.status_code == 200
    ids = {u["id"] for u in response.json()["data"]["items"]}
    assert ids == {str(manager.id), str(other_manager.id), str(client_user.id)}

    response = await client.get(f"/api/v1/users/{admin.id}", headers=manager.headers)
    assert response.status_code == 404


async def test_users_list_is_sorted_by_name_and_filterable(
    client, admin, manager, other_manager, client_user
):
    response = await client.get(
        "/api/v1/users", params={"role": "project_manager"}, headers=admin.headers
    )

    names = [u["name"] for u in response.json()["data"]["items"]]
    assert names == ["Mia Manager", "Omar Other"]


async def test_client_cannot_list_users(client, client_user):
    response = await client.get("/api/v1/users", headers=client_user.headers)
    assert response.status_code == 403


async def test_admin_cannot_deactivate_self(client, admin):
    response = await client.patch(
        f"/api/v1/users/{admin.id}", json={"isActive": False}, headers=admin.headers
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "isActive"


async def test_deactivated_user_loses_access(client, admin, client_user):
    response = await client.patch(
        f"/api/v1/users/{client_user.id}", json={"isActive": False}, headers=admin.headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["isActive"] is False

    response = await client.get("/api/v1/auth/me", headers=client_user.headers)
    assert response.status_code == 403


async def test_role_change_blocked_while_assigned(client, admin, manager, client_user, other_manager, project):
    response = await client.patch(
        f"/api/v1/users/{manager.id}", json={"role": "client"}, headers=admin.headers
    )
    assert response.status_code == 409
    assert response.json()["error"] == "CONFLICT"

    response = await client.patch(
        f"/api/v1/users/{client_user.id}", json={"role": "project_manager"}, headers=admin.headers
    )
    assert response.status_code == 409

    response = await client.patch(
        f"/api/v1/projects/{project['id']}",
        json={"managerIds": [str(other_manager.id)]},
        headers=admin.headers,
    )
    assert response.status_code == 200

    response = await client.patch(
        f"/api/v1/users/{manager.id}", json={"role": "client"}, headers=admin.headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "client"


async def test_role_change_without_assignments(client, admin, other_manager):
    response = await client.patch(
        f"/api/v1/users/{other_manager.id}", json={"role": "super_admin"}, headers=admin.headers
    )

    assert response.status_code == 200
    assert response.json()["data"]["role"] == "super_admin"
