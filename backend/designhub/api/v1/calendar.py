"""Calendar endpoints: stored events merged with derived deadlines."""

from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, status
from pydantic import Field, model_validator
from sqlalchemy import select

from designhub.api.v1.common import APIModel, Deleted, Envelope, Timestamp, ok
from designhub.db.session import DBSession, refetch
from designhub.exceptions import ValidationFailed
from designhub.models.calendar import CalendarEvent
from designhub.models.enums import EventStatus, EventType, Priority
from designhub.models.project import Milestone, Project
from designhub.models.task import Task
from designhub.models.user import User
from designhub.services.access_control import (
    Grant,
    authorize,
    fetch_for,
    fetch_visible,
    read_filter,
)
from designhub.services.calendar import derive_events, in_range, merge_events, stored_event_to_dict

router = APIRouter()
logger = structlog.get_logger()


class CalendarList(APIModel):
    items: list[dict[str, Any]]
    total: int


class CalendarEventCreate(APIModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    start_date: Timestamp
    end_date: Timestamp
    all_day: bool = False
    type: EventType = "event"
    project_id: UUID | None = None
    task_id: UUID | None = None
    attendee_ids: list[UUID] = Field(default_factory=list)
    location: str | None = Field(None, max_length=200)
    is_recurring: bool = False
    recurrence_rule: str | None = Field(None, max_length=255)
    priority: Priority = "medium"
    status: EventStatus = "scheduled"

    @model_validator(mode="after")
    def check_dates(self) -> "CalendarEventCreate":
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        if self.is_recurring and not self.recurrence_rule:
            raise ValueError("recurrenceRule is required for recurring events")
        return self


@router.get("", response_model=Envelope[CalendarList])
async def list_events(
    grant: Annotated[Grant, authorize("calendar", "read")],
    db: DBSession,
    start_date: Timestamp | None = Query(None, alias="startDate"),
    end_date: Timestamp | None = Query(None, alias="endDate"),
    project_id: UUID | None = Query(None, alias="projectId"),
    event_type: EventType | None = Query(None, alias="type"),
    include_derived: bool = Query(True, alias="includeDerived"),
) -> dict:
    """Stored events plus project, milestone and task deadlines in one timeline."""
    ctx = grant.ctx
    if start_date and end_date and end_date < start_date:
        raise ValidationFailed("endDate must not be before startDate", field="endDate")

    query = select(CalendarEvent).where(grant.predicate)
    if start_date:
        query = query.where(CalendarEvent.end_date >= start_date)
    if end_date:
        query = query.where(CalendarEvent.start_date <= end_date)
    if project_id:
        query = query.where(CalendarEvent.project_id == project_id)
    if event_type:
        query = query.where(CalendarEvent.type == event_type)
    stored = list((await db.execute(query)).scalars().all())

    derived = []
    if include_derived:
        projects_query = select(Project).where(read_filter(ctx, "project"))
        tasks_query = select(Task).where(read_filter(ctx, "task"), Task.deadline.is_not(None))
        milestones_query = select(Milestone).where(
            read_filter(ctx, "milestone"), Milestone.due_date.is_not(None)
        )
        if project_id:
            projects_query = projects_query.where(Project.id == project_id)
            tasks_query = tasks_query.where(Task.project_id == project_id)
            milestones_query = milestones_query.where(Milestone.project_id == project_id)

        projects = (await db.execute(projects_query)).scalars().all()
        tasks = (await db.execute(tasks_query)).scalars().all()
        milestones = (await db.execute(milestones_query)).scalars().all()

        derived = in_range(derive_events(projects, tasks, milestones), start_date, end_date)
        if event_type:
            derived = [e for e in derived if e.type == event_type]

    items = merge_events(stored, derived)
    return ok({"items": items, "total": len(items)})


@router.post("", response_model=Envelope[dict[str, Any]], status_code=status.HTTP_201_CREATED)
async def create_event(
    data: CalendarEventCreate,
    grant: Annotated[Grant, authorize("calendar", "create")],
    db: DBSession,
) -> dict:
    ctx = grant.ctx
    if data.project_id is not None:
        await fetch_visible(db, ctx, Project, data.project_id)
    if data.task_id is not None:
        task = await fetch_visible(db, ctx, Task, data.task_id)
        if data.project_id is not None and task.project_id != data.project_id:
            raise ValidationFailed("Task does not belong to the project", field="taskId")

    attendees: list[User] = []
    attendee_ids = list(dict.fromkeys(data.attendee_ids))
    if attendee_ids:
        result = await db.execute(
            select(User).where(User.id.in_(attendee_ids), User.is_active.is_(True))
        )
        attendees = list(result.scalars().all())
        found = {u.id for u in attendees}
        missing = [str(uid) for uid in attendee_ids if uid not in found]
        if missing:
            raise ValidationFailed(f"Unknown attendees: {', '.join(missing)}", field="attendeeIds")

    event = CalendarEvent(
        title=data.title.strip(),
        description=data.description,
        start_date=data.start_date,
        end_date=data.end_date,
        all_day=data.all_day,
        type=data.type,
        project_id=data.project_id,
        task_id=data.task_id,
        created_by_id=ctx.user_id,
        location=data.location,
        is_recurring=data.is_recurring,
        recurrence_rule=data.recurrence_rule,
        priority=data.priority,
        status=data.status,
        attendees=attendees,
    )
    db.add(event)
    event = await refetch(db, event)
    response = stored_event_to_dict(event)
    await db.commit()

    logger.info(
        "calendar_event_created",
        event_id=str(event.id),
        project_id=str(event.project_id) if event.project_id else None,
        attendees=len(attendees),
    )
    return ok(response, "Event created successfully")


@router.delete("/{event_id}", response_model=Envelope[Deleted])
async def delete_event(
    event_id: UUID,
    grant: Annotated[Grant, authorize("calendar", "delete")],
    db: DBSession,
) -> dict:
    """Delete a stored event (creator or super_admin)."""
    event = await fetch_for(db, grant, event_id)
    await db.delete(event)
    await db.commit()

    logger.info("calendar_event_deleted", event_id=str(event_id))
    return ok({"id": event_id}, "Event deleted successfully")
