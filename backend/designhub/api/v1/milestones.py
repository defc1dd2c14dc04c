"""Project milestone endpoints."""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, status
from pydantic import Field
from sqlalchemy import case, select

from designhub.api.v1.common import APIModel, Envelope, Timestamp, UserSummary, ok
from designhub.db.base import utc_now
from designhub.db.session import DBSession, refetch
from designhub.exceptions import Conflict, ValidationFailed
from designhub.models.enums import MILESTONE_PHASES, MilestonePhase, MilestoneStatus
from designhub.models.project import Milestone, Project
from designhub.services.access_control import Grant, authorize, fetch_for, fetch_visible
from designhub.services.metrics import DEFAULT_MILESTONES, milestone_progress
from designhub.services.outbox import Outbox

router = APIRouter()
logger = structlog.get_logger()

_DEFAULT_TITLES = {phase: title for phase, title, _ in DEFAULT_MILESTONES}

# construction, installation, styling, then free-form milestones
_PHASE_ORDER = case(
    {phase: position for position, phase in enumerate(MILESTONE_PHASES)},
    value=Milestone.phase,
    else_=len(MILESTONE_PHASES),
)


class MilestoneResponse(APIModel):
    id: UUID
    project_id: UUID
    phase: str | None = None
    title: str
    description: str | None = None
    status: str
    due_date: Timestamp | None = None
    notes: str | None = None
    completed_at: Timestamp | None = None
    completed_by: UserSummary | None = None
    created_at: Timestamp
    updated_at: Timestamp


class MilestoneProgressResponse(APIModel):
    completed: int
    total: int
    percentage: int


class MilestoneList(APIModel):
    items: list[MilestoneResponse]
    progress: MilestoneProgressResponse


class MilestoneCreate(APIModel):
    phase: MilestonePhase | None = None
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    status: MilestoneStatus = "pending"
    due_date: Timestamp | None = None
    notes: str | None = Field(None, max_length=2000)


class MilestoneUpdate(APIModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    status: MilestoneStatus | None = None
    due_date: Timestamp | None = None
    notes: str | None = Field(None, max_length=2000)


def apply_milestone_status(milestone: Milestone, new_status: str, actor_id: UUID) -> bool:
    """Set the status and completion stamps.

    Returns:
        True when the milestone has just been completed
    """
    reached = new_status == "completed" and milestone.status != "completed"
    milestone.status = new_status
    if new_status == "completed":
        if reached or milestone.completed_at is None:
            milestone.completed_at = utc_now()
            milestone.completed_by_id = actor_id
    else:
        milestone.completed_at = None
        milestone.completed_by_id = None
    return reached


def _record_reached(outbox: Outbox, milestone: Milestone, actor_id: UUID) -> None:
    outbox.record(
        "milestone.reached",
        {
            "milestone_id": milestone.id,
            "project_id": milestone.project_id,
            "title": milestone.title,
            "actor_id": actor_id,
        },
    )


@router.get("/projects/{project_id}/milestones", response_model=Envelope[MilestoneList])
async def list_milestones(
    project_id: UUID,
    grant: Annotated[Grant, authorize("milestone", "read")],
    db: DBSession,
) -> dict:
    """Milestones of one project with phase completion progress."""
    await fetch_visible(db, grant.ctx, Project, project_id)
    result = await db.execute(
        select(Milestone)
        .where(Milestone.project_id == project_id, grant.predicate)
        .order_by(_PHASE_ORDER, Milestone.due_date, Milestone.created_at)
    )
    milestones = list(result.scalars().all())
    progress = milestone_progress(m.status for m in milestones if m.phase)
    return ok({"items": milestones, "progress": progress.to_dict()})


@router.post(
    "/projects/{project_id}/milestones",
    response_model=Envelope[MilestoneResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_milestone(
    project_id: UUID,
    data: MilestoneCreate,
    grant: Annotated[Grant, authorize("milestone", "create")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    project = await fetch_for(db, grant, project_id)

    title = data.title or _DEFAULT_TITLES.get(data.phase)
    if not title:
        raise ValidationFailed("Title is required for a milestone without a phase", field="title")

    if data.phase is not None:
        existing = await db.scalar(
            select(Milestone.id).where(
                Milestone.project_id == project.id, Milestone.phase == data.phase
            )
        )
        if existing is not None:
            raise Conflict(f"A {data.phase} milestone already exists for this project")

    milestone = Milestone(
        project_id=project.id,
        phase=data.phase,
        title=title.strip(),
        description=data.description,
        status="pending",
        due_date=data.due_date,
        notes=data.notes,
    )
    db.add(milestone)
    await db.flush()

    if apply_milestone_status(milestone, data.status, grant.ctx.user_id):
        _record_reached(outbox, milestone, grant.ctx.user_id)

    milestone = await refetch(db, milestone)
    await outbox.commit()

    logger.info(
        "milestone_created",
        milestone_id=str(milestone.id),
        project_id=str(project.id),
        phase=milestone.phase,
    )
    return ok(milestone, "Milestone created successfully")


@router.patch("/milestones/{milestone_id}", response_model=Envelope[MilestoneResponse])
async def update_milestone(
    milestone_id: UUID,
    data: MilestoneUpdate,
    grant: Annotated[Grant, authorize("milestone", "update")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Update a milestone; completing it notifies the client and managers."""
    milestone = await fetch_for(db, grant, milestone_id)
    updates = data.model_dump(exclude_unset=True)

    new_status = updates.pop("status", None)
    if "title" in updates and updates["title"] is None:
        raise ValidationFailed("Title cannot be empty", field="title")
    for field, value in updates.items():
        setattr(milestone, field, value)

    if new_status is not None and apply_milestone_status(milestone, new_status, grant.ctx.user_id):
        _record_reached(outbox, milestone, grant.ctx.user_id)

    milestone = await refetch(db, milestone)
    await outbox.commit()

    logger.info(
        "milestone_updated",
        milestone_id=str(milestone.id),
        status=milestone.status,
        fields=sorted(data.model_dump(exclude_unset=True)),
    )
    return ok(milestone, "Milestone updated successfully")
