"""Tests for outbox dispatch: exactly-once fan-out, push failures and retries."""

from typing import Any

import pytest
from sqlalchemy import func, select

from designhub.models.notification import Notification, OutboxEvent
from designhub.services import outbox
from designhub.services.outbox import OutboxDispatcher, record_event


class RecordingPublisher:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.frames: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, user_id: str, payload: dict[str, Any]) -> None:
        self.frames.append((user_id, payload))
        if self.fail:
            raise ConnectionError("socket closed")


async def record(session_factory, event_type: str, payload: dict[str, Any]) -> OutboxEvent:
    async with session_factory() as session:
        event = record_event(session, event_type, payload)
        await session.commit()
    return event


async def load_event(session_factory, event_id) -> OutboxEvent:
    async with session_factory() as session:
        return await session.get(OutboxEvent, event_id)


async def count_notifications(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count(Notification.id)))


def assignment(manager, client_user) -> dict[str, Any]:
    return {
        "task_id": "3f0c9a52-2b1f-4d0e-9f57-0c7f1e0b8a11",
        "assignee_id": client_user.id,
        "title": "Approve tile samples",
        "actor_id": manager.id,
    }


async def test_event_is_dispatched_once(session_factory, manager, client_user):
    event = await record(session_factory, "task.assigned", assignment(manager, client_user))
    publisher = RecordingPublisher()
    dispatcher = OutboxDispatcher(session_factory, publisher=publisher)

    assert await dispatcher.dispatch([event.id]) == 1
    assert await dispatcher.dispatch([event.id]) == 0
    assert await dispatcher.dispatch() == 0

    assert await count_notifications(session_factory) == 1
    assert len(publisher.frames) == 1
    user_id, payload = publisher.frames[0]
    assert user_id == str(client_user.id)
    assert payload["type"] == "task_assigned"

    stored = await load_event(session_factory, event.id)
    assert stored.status == "dispatched"
    assert stored.attempts == 1
    assert stored.dispatched_at is not None


async def test_failed_push_keeps_notification(session_factory, manager, client_user):
    event = await record(session_factory, "task.assigned", assignment(manager, client_user))
    dispatcher = OutboxDispatcher(session_factory, publisher=RecordingPublisher(fail=True))

    assert await dispatcher.dispatch() == 1

    assert await count_notifications(session_factory) == 1
    assert (await load_event(session_factory, event.id)).status == "dispatched"


async def test_failing_handler_retries_then_fails(monkeypatch, session_factory):
    async def explode(session, payload):
        raise RuntimeError("boom")

    monkeypatch.setitem(outbox.HANDLERS, "test.explode", explode)
    event = await record(session_factory, "test.explode", {})
    dispatcher = OutboxDispatcher(
        session_factory, publisher=RecordingPublisher(), max_attempts=2
    )

    assert await dispatcher.dispatch() == 0
    stored = await load_event(session_factory, event.id)
    assert (stored.status, stored.attempts) == ("pending", 1)
    assert stored.last_error == "RuntimeError: boom"

    assert await dispatcher.dispatch() == 0
    stored = await load_event(session_factory, event.id)
    assert (stored.status, stored.attempts) == ("failed", 2)

    assert await dispatcher.dispatch() == 0
    assert (await load_event(session_factory, event.id)).attempts == 2


async def test_unknown_event_type_is_marked_dispatched(session_factory):
    event = await record(session_factory, "test.unhandled", {"anything": 1})

    assert await OutboxDispatcher(session_factory, publisher=RecordingPublisher()).dispatch() == 1
    assert (await load_event(session_factory, event.id)).status == "dispatched"


async def test_actor_is_not_notified(session_factory, manager):
    payload = {
        "task_id": "3f0c9a52-2b1f-4d0e-9f57-0c7f1e0b8a11",
        "assignee_id": manager.id,
        "actor_id": manager.id,
    }
    await record(session_factory, "task.assigned", payload)

    assert await OutboxDispatcher(session_factory, publisher=RecordingPublisher()).dispatch() == 1
    assert await count_notifications(session_factory) == 0


@pytest.mark.parametrize("batch_size, expected", [(1, 1), (5, 3)])
async def test_batch_size_limits_sweep(session_factory, manager, client_user, batch_size, expected):
    for _ in range(3):
        await record(session_factory, "task.assigned", assignment(manager, client_user))

    dispatcher = OutboxDispatcher(
        session_factory, publisher=RecordingPublisher(), batch_size=batch_size
    )
    assert await dispatcher.dispatch() == expected
