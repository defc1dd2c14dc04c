"""Tests for the notification inbox."""

from tests.conftest import list_notifications


async def notify(client, sender, recipient, **overrides):
    payload = {
        "recipientId": str(recipient.id),
        "type": "user_mentioned",
        "title": "You were mentioned",
        "message": "Please review the lighting plan.",
        **overrides,
    }
    return await client.post("/api/v1/notifications", json=payload, headers=sender.headers)


async def test_send_and_list(client, manager, client_user):
    response = await notify(client, manager, client_user)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["isRead"] is False
    assert data["sender"]["id"] == str(manager.id)
    assert data["expiresAt"] is not None

    response = await client.get("/api/v1/notifications", headers=client_user.headers)
    page = response.json()["data"]
    assert [n["id"] for n in page["items"]] == [data["id"]]
    assert page["unreadCount"] == 1


async def test_cannot_notify_self(client, manager):
    response = await notify(client, manager, manager)

    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "recipientId"


async def test_mark_read_is_idempotent(client, manager, client_user):
    created = (await notify(client, manager, client_user)).json()["data"]
    url = f"/api/v1/notifications/{created['id']}"

    first = await client.patch(url, json={"isRead": True}, headers=client_user.headers)
    second = await client.patch(url, json={"isRead": True}, headers=client_user.headers)

    assert first.status_code == 200
    assert first.json()["data"]["readAt"] is not None
    assert second.json()["data"]["readAt"] == first.json()["data"]["readAt"]

    response = await client.patch(url, json={"isRead": False}, headers=client_user.headers)
    assert response.json()["data"]["readAt"] is None


async def test_other_users_notification_is_not_found(client, manager, client_user, other_client):
    created = (await notify(client, manager, client_user)).json()["data"]
    url = f"/api/v1/notifications/{created['id']}"

    response = await client.patch(url, json={"isRead": True}, headers=other_client.headers)
    assert response.status_code == 404

    response = await client.delete(url, headers=manager.headers)
    assert response.status_code == 404


async def test_unread_count_and_mark_all_read(client, manager, client_user):
    await notify(client, manager, client_user)
    await notify(client, manager, client_user, title="Second")

    response = await client.get("/api/v1/notifications/unread-count", headers=client_user.headers)
    assert response.json()["data"] == {"unreadCount": 2}

    response = await client.post("/api/v1/notifications/mark-all-read", headers=client_user.headers)
    assert response.json()["data"] == {"updated": 2}

    assert await list_notifications(client, client_user, isRead=False) == []


async def test_expired_notifications_are_hidden(client, manager, client_user):
    await notify(client, manager, client_user, expiresAt="2020-01-01T00:00:00Z")

    assert await list_notifications(client, client_user) == []


async def test_expired_notifications_are_not_counted_as_unread(client, manager, client_user):
    await notify(client, manager, client_user, expiresAt="2020-01-01T00:00:00Z")

    response = await client.get("/api/v1/notifications", headers=client_user.headers)
    assert response.json()["data"]["unreadCount"] == 0

    response = await client.get("/api/v1/notifications/unread-count", headers=client_user.headers)
    assert response.json()["data"] == {"unreadCount": 0}

    response = await client.get("/api/v1/dashboard/summary", headers=client_user.headers)
    assert response.json()["data"]["unreadNotifications"] == 0


async def test_delete_notification(client, manager, client_user):
    created = (await notify(client, manager, client_user)).json()["data"]

    response = await client.delete(
        f"/api/v1/notifications/{created['id']}", headers=client_user.headers
    )

    assert response.status_code == 200
    assert await list_notifications(client, client_user) == []
