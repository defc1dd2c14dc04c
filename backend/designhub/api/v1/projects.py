"""Projects API endpoints."""

from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, model_validator
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.api.v1.common import (
    APIModel,
    Deleted,
    Envelope,
    Page,
    Timestamp,
    UserSummary,
    ok,
    paged,
)
from designhub.api.v1.milestones import MilestoneProgressResponse, MilestoneResponse
from designhub.db.session import DBSession, refetch
from designhub.exceptions import AuthorizationDenied, ValidationFailed
from designhub.models.calendar import CalendarEvent, calendar_event_attendees
from designhub.models.daily_report import DailyReport
from designhub.models.enums import MILESTONE_PHASES, Priority, ProjectStatus
from designhub.models.incident import Incident
from designhub.models.messaging import Message
from designhub.models.notification import Notification
from designhub.models.project import Milestone, Project, ProjectFile, ProjectManager
from designhub.models.risk import Risk
from designhub.models.schedule import ActivityComment, ScheduleActivity, SchedulePhase
from designhub.models.task import Task, TaskComment, TaskDependency
from designhub.models.user import User
from designhub.services.access_control import Grant, authorize, fetch_for
from designhub.services.metrics import DEFAULT_MILESTONES, milestone_progress
from designhub.services.outbox import Outbox
from designhub.services.pagination import PageParams, page_params, paginate
from designhub.utils.dates import ensure_aware

router = APIRouter()
logger = structlog.get_logger()

PROJECT_SORT_FIELDS = {
    "title": Project.title,
    "status": Project.status,
    "priority": Project.priority,
    "progress": Project.progress,
    "start_date": Project.start_date,
    "end_date": Project.end_date,
    "created_at": Project.created_at,
    "updated_at": Project.updated_at,
}


# Request/Response Models
class ProjectCreate(APIModel):
    """Create a new project."""

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    client_id: UUID
    manager_ids: list[UUID] = Field(..., min_length=1)
    status: ProjectStatus = "planning"
    priority: Priority = "medium"
    start_date: Timestamp | None = None
    end_date: Timestamp | None = None
    budget: Decimal | None = Field(None, ge=0)
    site_address: str | None = Field(None, max_length=500)
    scope_of_work: str | None = Field(None, max_length=5000)
    design_style: str | None = Field(None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    notes: str | None = Field(None, max_length=5000)

    @model_validator(mode="after")
    def check_dates(self) -> "ProjectCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class ProjectUpdate(APIModel):
    """Update a project. Client and manager changes are reserved to super_admin."""

    title: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = Field(None, min_length=10, max_length=1000)
    client_id: UUID | None = None
    manager_ids: list[UUID] | None = Field(None, min_length=1)
    status: ProjectStatus | None = None
    priority: Priority | None = None
    start_date: Timestamp | None = None
    end_date: Timestamp | None = None
    budget: Decimal | None = Field(None, ge=0)
    site_address: str | None = Field(None, max_length=500)
    scope_of_work: str | None = Field(None, max_length=5000)
    design_style: str | None = Field(None, max_length=100)
    tags: list[str] | None = None
    notes: str | None = Field(None, max_length=5000)


class ProjectResponse(APIModel):
    """Project response with referenced users resolved."""

    id: UUID
    title: str
    description: str
    status: str
    priority: str
    progress: int
    total_activities: int
    completed_activities: int
    schedule_updated_at: Timestamp | None = None
    client: UserSummary
    managers: list[UserSummary]
    start_date: Timestamp | None = None
    end_date: Timestamp | None = None
    budget: float | None = None
    site_address: str | None = None
    scope_of_work: str | None = None
    design_style: str | None = None
    tags: list[str]
    notes: str | None = None
    milestones: list[MilestoneResponse]
    milestone_progress: MilestoneProgressResponse
    created_at: Timestamp
    updated_at: Timestamp


def _milestone_order(milestone: Milestone) -> tuple[int, str]:
    if milestone.phase in MILESTONE_PHASES:
        return MILESTONE_PHASES.index(milestone.phase), ""
    return len(MILESTONE_PHASES), milestone.title


def _project_to_response(project: Project) -> dict[str, Any]:
    data = {c.name: getattr(project, c.name) for c in Project.__table__.columns}
    data.update(
        client=project.client,
        managers=project.managers,
        milestones=sorted(project.milestones, key=_milestone_order),
        milestone_progress=milestone_progress(
            m.status for m in project.milestones if m.phase
        ).to_dict(),
    )
    return data


async def _load_users(
    db: AsyncSession, user_ids: list[UUID], role: str, field: str
) -> list[User]:
    """Active users of ``role``; any missing or mismatched id fails validation."""
    wanted = list(dict.fromkeys(user_ids))
    result = await db.execute(
        select(User).where(User.id.in_(wanted), User.role == role, User.is_active.is_(True))
    )
    users = {u.id: u for u in result.scalars().all()}
    missing = [str(uid) for uid in wanted if uid not in users]
    if missing:
        label = "client" if role == "client" else "project manager"
        raise ValidationFailed(
            f"Not an active {label}: {', '.join(missing)}",
            field=field,
        )
    return [users[uid] for uid in wanted]


async def _replace_managers(db: AsyncSession, project_id: UUID, manager_ids: list[UUID]) -> None:
    await db.execute(delete(ProjectManager).where(ProjectManager.project_id == project_id))
    for manager_id in dict.fromkeys(manager_ids):
        db.add(ProjectManager(project_id=project_id, user_id=manager_id))
    await db.flush()


async def purge_project(db: AsyncSession, project_id: UUID) -> None:
    """Delete a project and every row that belongs to it."""
    task_ids = select(Task.id).where(Task.project_id == project_id)
    activity_ids = select(ScheduleActivity.id).where(ScheduleActivity.project_id == project_id)
    event_ids = select(CalendarEvent.id).where(
        or_(CalendarEvent.project_id == project_id, CalendarEvent.task_id.in_(task_ids))
    )

    await db.execute(
        delete(calendar_event_attendees).where(calendar_event_attendees.c.event_id.in_(event_ids))
    )
    await db.execute(
        delete(CalendarEvent).where(
            or_(CalendarEvent.project_id == project_id, CalendarEvent.task_id.in_(task_ids))
        )
    )
    await db.execute(delete(TaskComment).where(TaskComment.task_id.in_(task_ids)))
    await db.execute(
        delete(TaskDependency).where(
            or_(TaskDependency.task_id.in_(task_ids), TaskDependency.depends_on_id.in_(task_ids))
        )
    )
    await db.execute(delete(Task).where(Task.project_id == project_id))
    await db.execute(delete(ActivityComment).where(ActivityComment.activity_id.in_(activity_ids)))
    await db.execute(delete(ScheduleActivity).where(ScheduleActivity.project_id == project_id))
    await db.execute(delete(SchedulePhase).where(SchedulePhase.project_id == project_id))
    await db.execute(delete(Milestone).where(Milestone.project_id == project_id))
    await db.execute(delete(Risk).where(Risk.project_id == project_id))
    await db.execute(delete(DailyReport).where(DailyReport.project_id == project_id))
    await db.execute(delete(Incident).where(Incident.project_id == project_id))
    await db.execute(delete(Message).where(Message.project_id == project_id))
    await db.execute(delete(ProjectFile).where(ProjectFile.project_id == project_id))
    await db.execute(delete(Notification).where(Notification.project_id == project_id))
    await db.execute(delete(ProjectManager).where(ProjectManager.project_id == project_id))
    await db.execute(delete(Project).where(Project.id == project_id))


# Routes
@router.get("", response_model=Envelope[Page[ProjectResponse]])
async def list_projects(
    grant: Annotated[Grant, authorize("project", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    status_filter: ProjectStatus | None = Query(None, alias="status"),
    priority: Priority | None = None,
    client_id: UUID | None = Query(None, alias="clientId"),
    manager_id: UUID | None = Query(None, alias="managerId"),
    search: str | None = Query(None, max_length=100),
) -> dict:
    """List projects visible to the caller."""
    query = select(Project).where(grant.predicate)

    if status_filter:
        query = query.where(Project.status == status_filter)
    if priority:
        query = query.where(Project.priority == priority)
    if client_id:
        query = query.where(Project.client_id == client_id)
    if manager_id:
        query = query.where(
            Project.id.in_(
                select(ProjectManager.project_id).where(ProjectManager.user_id == manager_id)
            )
        )
    if search:
        query = query.where(
            or_(Project.title.ilike(f"%{search}%"), Project.description.ilike(f"%{search}%"))
        )

    projects, pagination = await paginate(
        db, query, params, PROJECT_SORT_FIELDS, tiebreaker=Project.id
    )
    return ok(paged([_project_to_response(p) for p in projects], pagination))


@router.post("", response_model=Envelope[ProjectResponse], status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    grant: Annotated[Grant, authorize("project", "create")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Create a project with its default phase milestones (super_admin only)."""
    await _load_users(db, [data.client_id], "client", "clientId")
    await _load_users(db, data.manager_ids, "project_manager", "managerIds")

    project = Project(
        title=data.title.strip(),
        description=data.description.strip(),
        client_id=data.client_id,
        created_by_id=grant.ctx.user_id,
        status=data.status,
        priority=data.priority,
        progress=0,
        start_date=data.start_date,
        end_date=data.end_date,
        budget=data.budget,
        site_address=data.site_address,
        scope_of_work=data.scope_of_work,
        design_style=data.design_style,
        tags=data.tags,
        notes=data.notes,
    )
    db.add(project)
    await db.flush()

    await _replace_managers(db, project.id, data.manager_ids)
    for phase, title, description in DEFAULT_MILESTONES:
        db.add(
            Milestone(
                project_id=project.id,
                phase=phase,
                title=title,
                description=description,
                status="pending",
            )
        )

    outbox.record("project.created", {"project_id": project.id, "actor_id": grant.ctx.user_id})
    project = await refetch(db, project)
    response = _project_to_response(project)
    await outbox.commit()

    logger.info(
        "project_created",
        project_id=str(project.id),
        client_id=str(project.client_id),
        managers=len(data.manager_ids),
    )
    return ok(response, "Project created successfully")


@router.get("/{project_id}", response_model=Envelope[ProjectResponse])
async def get_project(
    project_id: UUID,
    grant: Annotated[Grant, authorize("project", "read")],
    db: DBSession,
) -> dict:
    """Get a project by ID."""
    project = await fetch_for(db, grant, project_id)
    return ok(_project_to_response(project))


@router.patch("/{project_id}", response_model=Envelope[ProjectResponse])
async def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    grant: Annotated[Grant, authorize("project", "update")],
    db: DBSession,
) -> dict:
    """Update a project."""
    project = await fetch_for(db, grant, project_id)
    updates = data.model_dump(exclude_unset=True)

    if not grant.ctx.is_admin and ("client_id" in updates or "manager_ids" in updates):
        raise AuthorizationDenied("Only a super admin can change the client or managers")

    for field in ("title", "description", "status", "priority", "client_id"):
        if field in updates and updates[field] is None:
            raise ValidationFailed(f"{field} cannot be empty", field=field)

    start = ensure_aware(updates.get("start_date", project.start_date))
    end = ensure_aware(updates.get("end_date", project.end_date))
    if start and end and end < start:
        raise ValidationFailed("endDate must not be before startDate", field="endDate")

    manager_ids = updates.pop("manager_ids", None)
    if manager_ids is not None:
        await _load_users(db, manager_ids, "project_manager", "managerIds")
        await _replace_managers(db, project.id, manager_ids)
    if "client_id" in updates:
        await _load_users(db, [updates["client_id"]], "client", "clientId")

    for field, value in updates.items():
        if field == "tags" and value is None:
            value = []
        setattr(project, field, value)

    project = await refetch(db, project)
    response = _project_to_response(project)
    await db.commit()

    logger.info(
        "project_updated",
        project_id=str(project.id),
        fields=sorted(data.model_dump(exclude_unset=True)),
    )
    return ok(response, "Project updated successfully")


@router.delete("/{project_id}", response_model=Envelope[Deleted])
async def delete_project(
    project_id: UUID,
    grant: Annotated[Grant, authorize("project", "delete")],
    db: DBSession,
) -> dict:
    """Delete a project and everything attached to it (super_admin only)."""
    project = await fetch_for(db, grant, project_id)
    project_id = project.id
    await purge_project(db, project_id)
    await db.commit()

    logger.info("project_deleted", project_id=str(project_id))
    return ok({"id": project_id}, "Project deleted successfully")
