"""Domain event outbox.

Mutation handlers record events in the same transaction as the change
that caused them. A dispatcher later turns each pending event into
notification rows (in its own transaction) and then pushes live frames to
connected recipients. A failed push never fails the event; a failed
handler leaves the event pending for the next sweep until
``outbox_max_attempts`` is reached.
"""

from typing import Annotated, Any, Awaitable, Callable, Iterable
from uuid import UUID, uuid4

import structlog
from fastapi import BackgroundTasks, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from designhub.config import get_settings
from designhub.db.base import utc_now
from designhub.db.session import DBSession, SessionFactory
from designhub.models.messaging import Message
from designhub.models.notification import Notification, OutboxEvent
from designhub.models.project import Project
from designhub.models.task import Task
from designhub.services import live
from designhub.services.notification import NotificationService, notification_payload

logger = structlog.get_logger()
settings = get_settings()

Handler = Callable[[AsyncSession, dict[str, Any]], Awaitable[list[Notification]]]
Publisher = Callable[[str, dict[str, Any]], Awaitable[None]]

HANDLERS: dict[str, Handler] = {}


def handles(event_type: str) -> Callable[[Handler], Handler]:
    """Register a dispatcher handler for an event type."""

    def decorator(func: Handler) -> Handler:
        HANDLERS[event_type] = func
        return func

    return decorator


def record_event(db: AsyncSession, event_type: str, payload: dict[str, Any]) -> OutboxEvent:
    """Append an event to the outbox inside the caller's transaction."""
    event = OutboxEvent(
        id=uuid4(),
        event_type=event_type,
        payload=_json_safe(payload),
        status="pending",
        attempts=0,
    )
    db.add(event)
    logger.debug("outbox_event_recorded", event_type=event_type, event_id=str(event.id))
    return event


def _json_safe(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return value


class OutboxDispatcher:
    """Consumes pending outbox events."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: Publisher | None = None,
        batch_size: int | None = None,
        max_attempts: int | None = None,
    ):
        self.session_factory = session_factory
        self.publisher = publisher or live.notify_user
        self.batch_size = batch_size or settings.outbox_batch_size
        self.max_attempts = max_attempts or settings.outbox_max_attempts

    async def dispatch(self, event_ids: Iterable[UUID] | None = None) -> int:
        """Dispatch pending events, optionally only the given ones.

        Returns:
            Number of events dispatched by this call
        """
        async with self.session_factory() as session:
            stmt = (
                select(OutboxEvent.id)
                .where(
                    OutboxEvent.status == "pending",
                    OutboxEvent.attempts < self.max_attempts,
                )
                .order_by(OutboxEvent.created_at)
                .limit(self.batch_size)
            )
            if event_ids is not None:
                stmt = stmt.where(OutboxEvent.id.in_(list(event_ids)))
            pending = list((await session.execute(stmt)).scalars().all())

        dispatched = 0
        for event_id in pending:
            if await self._dispatch_one(event_id):
                dispatched += 1

        if pending:
            logger.info("outbox_dispatched", pending=len(pending), dispatched=dispatched)
        return dispatched

    async def _dispatch_one(self, event_id: UUID) -> bool:
        frames: list[tuple[str, dict[str, Any]]] = []
        async with self.session_factory() as session:
            try:
                event = await session.get(OutboxEvent, event_id, with_for_update=True)
                # Another dispatcher may have taken it
                if event is None or event.status != "pending":
                    return False

                handler = HANDLERS.get(event.event_type)
                notifications = await handler(session, event.payload) if handler else []
                if handler is None:
                    logger.warning("outbox_no_handler", event_type=event.event_type)

                event.status = "dispatched"
                event.attempts += 1
                event.dispatched_at = utc_now()
                event.last_error = None
                frames = [(str(n.recipient_id), notification_payload(n)) for n in notifications]
                await session.commit()
            except Exception as exc:
                await session.rollback()
                logger.exception(
                    "outbox_dispatch_failed",
                    event_id=str(event_id),
                    error=str(exc),
                )
                await self._record_failure(event_id, exc)
                return False

        await self._push(frames)
        return True

    async def _record_failure(self, event_id: UUID, exc: Exception) -> None:
        async with self.session_factory() as session:
            event = await session.get(OutboxEvent, event_id)
            if event is None:
                return
            event.attempts += 1
            event.last_error = f"{type(exc).__name__}: {exc}"[:2000]
            if event.attempts >= self.max_attempts:
                event.status = "failed"
            await session.commit()

    async def _push(self, frames: list[tuple[str, dict[str, Any]]]) -> None:
        """Fire-and-forget live delivery."""
        for user_id, payload in frames:
            try:
                await self.publisher(user_id, payload)
            except Exception as exc:
                logger.warning("live_push_failed", user_id=user_id, error=str(exc))


class OutboxRecorder:
    """Request-scoped helper: record events, commit, dispatch after the response."""

    def __init__(
        self,
        db: AsyncSession,
        background_tasks: BackgroundTasks,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.db = db
        self.background_tasks = background_tasks
        self.session_factory = session_factory
        self.event_ids: list[UUID] = []

    def record(self, event_type: str, payload: dict[str, Any]) -> OutboxEvent:
        event = record_event(self.db, event_type, payload)
        self.event_ids.append(event.id)
        return event

    async def commit(self) -> None:
        """Commit the request's work and queue dispatch of its events."""
        await self.db.commit()
        if self.event_ids:
            dispatcher = OutboxDispatcher(self.session_factory)
            self.background_tasks.add_task(dispatcher.dispatch, list(self.event_ids))
            self.event_ids = []


def get_outbox(
    db: DBSession,
    background_tasks: BackgroundTasks,
    session_factory: SessionFactory,
) -> OutboxRecorder:
    return OutboxRecorder(db, background_tasks, session_factory)


Outbox = Annotated[OutboxRecorder, Depends(get_outbox)]


# ---------------------------------------------------------------------------
# Event handlers
# ---------------------------------------------------------------------------


async def _load_project(session: AsyncSession, project_id: Any) -> Project | None:
    if not project_id:
        return None
    return await session.get(Project, UUID(str(project_id)))


def _uuid(value: Any) -> UUID | None:
    return UUID(str(value)) if value else None


@handles("project.created")
async def _on_project_created(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    project = await _load_project(session, payload["project_id"])
    if project is None:
        return []
    service = NotificationService(session)
    notifications = await service.notify_many(
        [project.client_id],
        "project_created",
        "New project created",
        f'Your project "{project.title}" has been set up.',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=project.id,
        data={"projectId": str(project.id)},
    )
    notifications += await service.notify_many(
        project.manager_ids,
        "project_invitation",
        "Assigned to project",
        f'You have been assigned to manage "{project.title}".',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=project.id,
        data={"projectId": str(project.id)},
    )
    return notifications


@handles("project.progress_changed")
async def _on_project_progress(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    project = await _load_project(session, payload["project_id"])
    if project is None:
        return []
    progress = payload.get("progress", project.progress)
    return await NotificationService(session).notify_many(
        [project.client_id],
        "project_updated",
        "Project progress updated",
        f'"{project.title}" is now {progress}% complete.',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=project.id,
        data={
            "projectId": str(project.id),
            "progress": progress,
            "previousProgress": payload.get("previous_progress"),
        },
        category="success" if progress == 100 else "info",
    )


@handles("task.assigned")
async def _on_task_assigned(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    assignee_id = _uuid(payload.get("assignee_id"))
    if assignee_id is None:
        return []
    return await NotificationService(session).notify_many(
        [assignee_id],
        "task_assigned",
        "New task assigned",
        f'You have been assigned "{payload.get("title", "a task")}".',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=_uuid(payload.get("project_id")),
        data={"taskId": payload.get("task_id"), "projectId": payload.get("project_id")},
        priority=payload.get("priority", "medium"),
    )


@handles("task.completed")
async def _on_task_completed(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    project = await _load_project(session, payload.get("project_id"))
    if project is None:
        return []
    recipients = [*project.manager_ids, project.client_id]
    return await NotificationService(session).notify_many(
        recipients,
        "task_completed",
        "Task completed",
        f'"{payload.get("title", "A task")}" in {project.title} has been completed.',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=project.id,
        data={"taskId": payload.get("task_id"), "projectId": str(project.id)},
        category="success",
    )


@handles("task.commented")
async def _on_task_commented(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    task = await session.get(Task, UUID(str(payload["task_id"])))
    if task is None:
        return []
    recipients = [task.assignee_id, task.created_by_id]
    if payload.get("is_internal"):
        project = await _load_project(session, task.project_id)
        recipients = [
            r for r in recipients if r is not None and project is not None and r != project.client_id
        ]
    return await NotificationService(session).notify_many(
        [r for r in recipients if r is not None],
        "comment_added",
        "New comment",
        f'New comment on "{task.title}".',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=task.project_id,
        data={"taskId": str(task.id), "commentId": payload.get("comment_id")},
    )


@handles("milestone.reached")
async def _on_milestone_reached(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    project = await _load_project(session, payload.get("project_id"))
    if project is None:
        return []
    return await NotificationService(session).notify_many(
        [project.client_id, *project.manager_ids],
        "milestone_reached",
        "Milestone reached",
        f'"{payload.get("title", "A milestone")}" in {project.title} has been completed.',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=project.id,
        data={"milestoneId": payload.get("milestone_id"), "projectId": str(project.id)},
        category="success",
    )


@handles("message.sent")
async def _on_message_sent(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    message = await session.get(Message, UUID(str(payload["message_id"])))
    if message is None or message.is_deleted:
        return []
    if message.recipient_id is not None:
        recipients = [message.recipient_id]
    else:
        project = await _load_project(session, message.project_id)
        recipients = sorted(project.participant_ids(), key=str) if project else []

    preview = message.content if len(message.content) <= 100 else message.content[:97] + "..."
    return await NotificationService(session).notify_many(
        recipients,
        "message_received",
        f"New message from {payload.get('sender_name') or 'a user'}",
        preview,
        sender_id=message.sender_id,
        project_id=message.project_id,
        data={
            "messageId": str(message.id),
            "senderId": str(message.sender_id),
            "projectId": str(message.project_id) if message.project_id else None,
        },
    )


@handles("file.uploaded")
async def _on_file_uploaded(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    project = await _load_project(session, payload.get("project_id"))
    if project is None:
        return []
    recipients = list(project.manager_ids)
    if not payload.get("is_internal"):
        recipients.append(project.client_id)
    return await NotificationService(session).notify_many(
        recipients,
        "file_uploaded",
        "New file uploaded",
        f'"{payload.get("filename", "A file")}" was added to {project.title}.',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=project.id,
        data={"fileId": payload.get("file_id"), "projectId": str(project.id)},
    )


@handles("daily_report.approved")
async def _on_daily_report_approved(
    session: AsyncSession, payload: dict[str, Any]
) -> list[Notification]:
    project = await _load_project(session, payload.get("project_id"))
    if project is None:
        return []
    report_date = payload.get("report_date", "")
    return await NotificationService(session).notify_many(
        [project.client_id, *project.manager_ids],
        "daily_report_approved",
        "Daily report approved",
        f"The site report for {report_date} on {project.title} is now available.",
        sender_id=_uuid(payload.get("actor_id")),
        project_id=project.id,
        data={
            "reportId": payload.get("report_id"),
            "projectId": str(project.id),
            "reportDate": report_date,
        },
        category="success",
    )


@handles("incident.reported")
async def _on_incident_reported(session: AsyncSession, payload: dict[str, Any]) -> list[Notification]:
    project = await _load_project(session, payload.get("project_id"))
    if project is None:
        return []
    severity = payload.get("severity", "medium")
    return await NotificationService(session).notify_many(
        sorted(project.participant_ids(), key=str),
        "incident_reported",
        f"Incident {payload['incident_code']} reported",
        f'"{payload.get("title", "An incident")}" was reported on {project.title} ({severity}).',
        sender_id=_uuid(payload.get("actor_id")),
        project_id=project.id,
        data={"incidentId": payload.get("incident_id"), "projectId": str(project.id)},
        category="error" if severity in ("high", "critical") else "warning",
        priority="urgent" if severity == "critical" else "high",
    )
