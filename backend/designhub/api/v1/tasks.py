"""Tasks API endpoints."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.api.v1.common import (
    APIModel,
    CommentResponse,
    Deleted,
    Envelope,
    Page,
    ProjectRef,
    Timestamp,
    UserSummary,
    ok,
    paged,
)
from designhub.db.base import utc_now
from designhub.db.session import DBSession, refetch
from designhub.exceptions import AuthorizationDenied, ValidationFailed
from designhub.models.calendar import CalendarEvent
from designhub.models.enums import Priority, TaskStatus
from designhub.models.project import Project
from designhub.models.task import Task, TaskComment, TaskDependency
from designhub.models.user import User
from designhub.services.access_control import Grant, RequestContext, authorize, fetch_for
from designhub.services.outbox import Outbox, OutboxRecorder
from designhub.services.pagination import PageParams, page_params, paginate
from designhub.utils.dates import ensure_aware

router = APIRouter()
logger = structlog.get_logger()

TASK_SORT_FIELDS = {
    "title": Task.title,
    "status": Task.status,
    "priority": Task.priority,
    "progress": Task.progress,
    "deadline": Task.deadline,
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
}

# Fields a non-managing assignee or creator may not change
MANAGER_ONLY_FIELDS = {"assignee_id", "dependency_ids", "title", "deadline"}


# Request/Response Models
class TaskCreate(APIModel):
    """Create a new task."""

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    project_id: UUID
    assignee_id: UUID | None = None
    status: TaskStatus = "pending"
    priority: Priority = "medium"
    start_date: Timestamp | None = None
    deadline: Timestamp | None = None
    estimated_hours: Decimal | None = Field(None, ge=0)
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    dependency_ids: list[UUID] = Field(default_factory=list)


class TaskUpdate(APIModel):
    """Update a task."""

    title: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = Field(None, min_length=10, max_length=500)
    assignee_id: UUID | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    progress: int | None = Field(None, ge=0, le=100)
    start_date: Timestamp | None = None
    deadline: Timestamp | None = None
    estimated_hours: Decimal | None = Field(None, ge=0)
    actual_hours: Decimal | None = Field(None, ge=0)
    attachments: list[dict[str, Any]] | None = None
    dependency_ids: list[UUID] | None = None


class TaskCommentCreate(APIModel):
    """Create a task comment."""

    content: str = Field(..., min_length=1, max_length=2000)
    is_internal: bool = False


class TaskResponse(APIModel):
    """Task response."""

    id: UUID
    title: str
    description: str
    status: str
    priority: str
    progress: int
    project: ProjectRef
    assignee: UserSummary | None = None
    created_by: UserSummary | None = None
    start_date: Timestamp | None = None
    deadline: Timestamp | None = None
    completed_at: Timestamp | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    attachments: list[dict[str, Any]]
    dependencies: list[UUID]
    is_overdue: bool
    comments: list[CommentResponse] | None = None
    created_at: Timestamp
    updated_at: Timestamp


def is_overdue(task: Task, now: datetime | None = None) -> bool:
    deadline = ensure_aware(task.deadline)
    if deadline is None or task.status == "completed":
        return False
    return deadline < (now or datetime.now(timezone.utc))


def _task_to_response(task: Task, ctx: RequestContext | None = None) -> dict[str, Any]:
    """Flatten a task; comments are only included when ``ctx`` is given."""
    data = {c.name: getattr(task, c.name) for c in Task.__table__.columns}
    data.update(
        project=task.project,
        assignee=task.assignee,
        created_by=task.created_by,
        dependencies=task.dependency_ids,
        is_overdue=is_overdue(task),
        comments=None,
    )
    if ctx is not None:
        data["comments"] = [c for c in task.comments if ctx.sees_internal or not c.is_internal]
    return data


def apply_task_status(task: Task, new_status: str) -> bool:
    """Apply status side effects.

    Returns:
        True when the task has just been completed
    """
    old_status = task.status
    task.status = new_status
    if new_status == "completed":
        task.progress = 100
        if old_status != "completed" or task.completed_at is None:
            task.completed_at = utc_now()
        return old_status != "completed"
    if new_status == "in_progress" and task.start_date is None:
        task.start_date = utc_now()
    if old_status == "completed":
        task.completed_at = None
    return False


async def _check_assignee(db: AsyncSession, project: Project, assignee_id: UUID) -> None:
    assignee = await db.get(User, assignee_id)
    if assignee is None or not assignee.is_active:
        raise ValidationFailed("Assignee not found", field="assigneeId")
    if assignee.role != "super_admin" and assignee.id not in project.participant_ids():
        raise ValidationFailed("Assignee must be a participant of the project", field="assigneeId")


async def _depends_on(db: AsyncSession, start_ids: list[UUID]) -> set[UUID]:
    """Every task reachable through dependency links from ``start_ids``."""
    seen: set[UUID] = set()
    frontier = list(start_ids)
    while frontier:
        result = await db.execute(
            select(TaskDependency.depends_on_id).where(TaskDependency.task_id.in_(frontier))
        )
        frontier = [tid for tid in result.scalars().all() if tid not in seen]
        seen.update(frontier)
    return seen


async def _check_dependencies(
    db: AsyncSession, project_id: UUID, dependency_ids: list[UUID], task_id: UUID | None = None
) -> list[UUID]:
    """Validated, de-duplicated dependency ids for a task of ``project_id``."""
    wanted = list(dict.fromkeys(dependency_ids))
    if task_id is not None and task_id in wanted:
        raise ValidationFailed("A task cannot depend on itself", field="dependencyIds")
    if not wanted:
        return wanted

    result = await db.execute(
        select(Task.id).where(Task.id.in_(wanted), Task.project_id == project_id)
    )
    found = set(result.scalars().all())
    missing = [str(tid) for tid in wanted if tid not in found]
    if missing:
        raise ValidationFailed(
            f"Dependencies must be tasks of the same project: {', '.join(missing)}",
            field="dependencyIds",
        )
    if task_id is not None and task_id in await _depends_on(db, wanted):
        raise ValidationFailed("Dependencies would create a cycle", field="dependencyIds")
    return wanted


def _set_dependencies(task: Task, dependency_ids: list[UUID]) -> None:
    existing = {link.depends_on_id: link for link in task.dependency_links}
    task.dependency_links = [
        existing.get(tid) or TaskDependency(depends_on_id=tid) for tid in dependency_ids
    ]


def _record_transitions(
    outbox: OutboxRecorder,
    task: Task,
    actor_id: UUID,
    assigned: bool,
    completed: bool,
) -> None:
    if assigned and task.assignee_id is not None:
        outbox.record(
            "task.assigned",
            {
                "task_id": task.id,
                "project_id": task.project_id,
                "assignee_id": task.assignee_id,
                "title": task.title,
                "priority": task.priority,
                "actor_id": actor_id,
            },
        )
    if completed:
        outbox.record(
            "task.completed",
            {
                "task_id": task.id,
                "project_id": task.project_id,
                "title": task.title,
                "assignee_id": task.assignee_id,
                "actor_id": actor_id,
            },
        )


# Routes
@router.get("", response_model=Envelope[Page[TaskResponse]])
async def list_tasks(
    grant: Annotated[Grant, authorize("task", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    project_id: UUID | None = Query(None, alias="projectId"),
    assignee_id: UUID | None = Query(None, alias="assigneeId"),
    status_filter: TaskStatus | None = Query(None, alias="status"),
    priority: Priority | None = None,
    overdue: bool | None = None,
    search: str | None = Query(None, max_length=100),
) -> dict:
    """List tasks in the caller's visible projects."""
    query = select(Task).where(grant.predicate)

    if project_id:
        query = query.where(Task.project_id == project_id)
    if assignee_id:
        query = query.where(Task.assignee_id == assignee_id)
    if status_filter:
        query = query.where(Task.status == status_filter)
    if priority:
        query = query.where(Task.priority == priority)
    if overdue:
        query = query.where(Task.deadline < utc_now(), Task.status != "completed")
    if search:
        query = query.where(
            or_(Task.title.ilike(f"%{search}%"), Task.description.ilike(f"%{search}%"))
        )

    tasks, pagination = await paginate(db, query, params, TASK_SORT_FIELDS, tiebreaker=Task.id)
    return ok(paged([_task_to_response(t) for t in tasks], pagination))


@router.post("", response_model=Envelope[TaskResponse], status_code=status.HTTP_201_CREATED)
async def create_task(
    data: TaskCreate,
    grant: Annotated[Grant, authorize("task", "create")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Create a task in a project the caller manages."""
    project = await fetch_for(db, grant, data.project_id)
    if data.assignee_id is not None:
        await _check_assignee(db, project, data.assignee_id)
    dependency_ids = await _check_dependencies(db, project.id, data.dependency_ids)

    task = Task(
        title=data.title.strip(),
        description=data.description.strip(),
        project_id=project.id,
        assignee_id=data.assignee_id,
        created_by_id=grant.ctx.user_id,
        status="pending",
        priority=data.priority,
        progress=0,
        start_date=data.start_date,
        deadline=data.deadline,
        estimated_hours=data.estimated_hours,
        attachments=data.attachments,
        dependency_links=[TaskDependency(depends_on_id=tid) for tid in dependency_ids],
    )
    db.add(task)
    await db.flush()

    completed = apply_task_status(task, data.status)
    _record_transitions(
        outbox, task, grant.ctx.user_id, assigned=data.assignee_id is not None, completed=completed
    )

    task = await refetch(db, task)
    response = _task_to_response(task, grant.ctx)
    await outbox.commit()

    logger.info(
        "task_created",
        task_id=str(task.id),
        project_id=str(project.id),
        assignee_id=str(task.assignee_id) if task.assignee_id else None,
    )
    return ok(response, "Task created successfully")


@router.get("/{task_id}", response_model=Envelope[TaskResponse])
async def get_task(
    task_id: UUID,
    grant: Annotated[Grant, authorize("task", "read")],
    db: DBSession,
) -> dict:
    """Get a task with its comments."""
    task = await fetch_for(db, grant, task_id)
    return ok(_task_to_response(task, grant.ctx))


@router.patch("/{task_id}", response_model=Envelope[TaskResponse])
async def update_task(
    task_id: UUID,
    data: TaskUpdate,
    grant: Annotated[Grant, authorize("task", "update")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Update a task.

    Managers of the project and super_admin may change anything; the
    assignee and creator may update status, progress and working fields.
    """
    task = await fetch_for(db, grant, task_id)
    ctx = grant.ctx
    updates = data.model_dump(exclude_unset=True)

    manages = ctx.is_admin or (ctx.is_manager and ctx.user_id in task.project.manager_ids)
    restricted = sorted(MANAGER_ONLY_FIELDS & updates.keys())
    if restricted and not manages:
        raise AuthorizationDenied(f"Only project managers can change: {', '.join(restricted)}")

    for field in ("title", "description", "status", "priority", "progress"):
        if field in updates and updates[field] is None:
            raise ValidationFailed(f"{field} cannot be empty", field=field)

    assigned = False
    if "assignee_id" in updates and updates["assignee_id"] != task.assignee_id:
        if updates["assignee_id"] is not None:
            await _check_assignee(db, task.project, updates["assignee_id"])
        assigned = True

    dependency_ids = updates.pop("dependency_ids", None)
    if dependency_ids is not None:
        _set_dependencies(
            task, await _check_dependencies(db, task.project_id, dependency_ids, task.id)
        )

    new_status = updates.pop("status", None)
    for field, value in updates.items():
        if field == "attachments" and value is None:
            value = []
        setattr(task, field, value)
    completed = apply_task_status(task, new_status) if new_status else False

    _record_transitions(outbox, task, ctx.user_id, assigned=assigned, completed=completed)

    task = await refetch(db, task)
    response = _task_to_response(task, ctx)
    await outbox.commit()

    logger.info(
        "task_updated",
        task_id=str(task.id),
        status=task.status,
        fields=sorted(data.model_dump(exclude_unset=True)),
    )
    return ok(response, "Task updated successfully")


@router.delete("/{task_id}", response_model=Envelope[Deleted])
async def delete_task(
    task_id: UUID,
    grant: Annotated[Grant, authorize("task", "delete")],
    db: DBSession,
) -> dict:
    """Delete a task. Tasks other tasks depend on cannot be deleted."""
    task = await fetch_for(db, grant, task_id)

    result = await db.execute(
        select(Task)
        .join(TaskDependency, TaskDependency.task_id == Task.id)
        .where(TaskDependency.depends_on_id == task.id)
        .order_by(Task.title)
    )
    dependants = list(result.scalars().all())
    if dependants:
        raise ValidationFailed(
            "Cannot delete a task that other tasks depend on",
            details=[
                {"field": "dependants", "message": f"{t.title} ({t.id})"} for t in dependants
            ],
        )

    await db.execute(
        update(CalendarEvent).where(CalendarEvent.task_id == task.id).values(task_id=None)
    )
    await db.delete(task)
    await db.commit()

    logger.info("task_deleted", task_id=str(task_id), project_id=str(task.project_id))
    return ok({"id": task_id}, "Task deleted successfully")


@router.post(
    "/{task_id}/comments",
    response_model=Envelope[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_task_comment(
    task_id: UUID,
    data: TaskCommentCreate,
    grant: Annotated[Grant, authorize("task", "comment")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Add a comment; internal comments are hidden from the client."""
    task = await fetch_for(db, grant, task_id)
    if data.is_internal and not grant.ctx.sees_internal:
        raise AuthorizationDenied("Clients cannot post internal comments")

    comment = TaskComment(
        task_id=task.id,
        author_id=grant.ctx.user_id,
        content=data.content.strip(),
        is_internal=data.is_internal,
    )
    db.add(comment)
    await db.flush()

    outbox.record(
        "task.commented",
        {
            "task_id": task.id,
            "comment_id": comment.id,
            "is_internal": comment.is_internal,
            "actor_id": grant.ctx.user_id,
        },
    )
    comment = await refetch(db, comment)
    await outbox.commit()

    logger.info("task_comment_added", task_id=str(task.id), comment_id=str(comment.id))
    return ok(comment, "Comment added successfully")
