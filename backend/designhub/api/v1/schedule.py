"""Site schedule endpoints: the phase -> week -> day -> activity tree of a project."""

from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter
from pydantic import Field, model_validator

from designhub.api.v1.common import APIModel, Envelope, Timestamp, ok
from designhub.db.session import DBSession
from designhub.models.enums import ActivityCategory, ActivityStatus, Priority
from designhub.models.project import Project
from designhub.services.access_control import Grant, authorize, fetch_for, fetch_visible
from designhub.services.metrics import schedule_summary
from designhub.services.outbox import Outbox
from designhub.services.schedule import load_phases, phase_tree, recompute_progress, save_schedule

router = APIRouter()
logger = structlog.get_logger()


class ActivityInput(APIModel):
    """One activity of a schedule payload. An ``id`` keeps the existing row."""

    id: UUID | None = None
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    contractor: str | None = Field(None, max_length=200)
    supervisor: str | None = Field(None, max_length=200)
    start_date: Timestamp | None = None
    end_date: Timestamp | None = None
    actual_start_date: Timestamp | None = None
    actual_end_date: Timestamp | None = None
    status: ActivityStatus = "to-do"
    priority: Priority = "medium"
    category: ActivityCategory = "other"
    progress: int = Field(0, ge=0, le=100)
    images: list[dict[str, Any]] = Field(default_factory=list)
    week_number: int | None = Field(None, ge=1)
    day_number: int | None = Field(None, ge=1, le=7)

    @model_validator(mode="after")
    def check_dates(self) -> "ActivityInput":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class DayInput(APIModel):
    day_number: int = Field(..., ge=1, le=7)
    activities: list[ActivityInput] = Field(default_factory=list)


class WeekInput(APIModel):
    week_number: int = Field(..., ge=1)
    days: list[DayInput] = Field(default_factory=list)


class PhaseInput(APIModel):
    """A phase given either as nested weeks or as a flat activity list."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    start_date: Timestamp | None = None
    end_date: Timestamp | None = None
    weeks: list[WeekInput] = Field(default_factory=list)
    activities: list[ActivityInput] = Field(default_factory=list)


class ScheduleUpdate(APIModel):
    phases: list[PhaseInput] = Field(default_factory=list)


class ScheduleSummary(APIModel):
    total_activities: int
    completed_activities: int
    active_activities: int
    delayed_activities: int
    overall_progress: int
    days_remaining: int | None = None
    on_schedule: bool


class ScheduleResponse(APIModel):
    project_id: UUID
    progress: int
    updated_at: Timestamp | None = None
    phases: list[dict[str, Any]]
    summary: ScheduleSummary


async def _schedule_response(db: DBSession, project: Project) -> dict[str, Any]:
    phases = await load_phases(db, project.id)
    activities = [a for phase in phases for a in phase.activities]
    return {
        "project_id": project.id,
        "progress": project.progress,
        "updated_at": project.schedule_updated_at,
        "phases": [phase_tree(phase) for phase in phases],
        "summary": schedule_summary(activities, project.end_date),
    }


@router.get("/projects/{project_id}/schedule", response_model=Envelope[ScheduleResponse])
async def get_schedule(
    project_id: UUID,
    grant: Annotated[Grant, authorize("schedule", "read")],
    db: DBSession,
) -> dict:
    project = await fetch_visible(db, grant.ctx, Project, project_id)
    return ok(await _schedule_response(db, project))


@router.put("/projects/{project_id}/schedule", response_model=Envelope[ScheduleResponse])
async def replace_schedule(
    project_id: UUID,
    data: ScheduleUpdate,
    grant: Annotated[Grant, authorize("schedule", "update")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Save the whole schedule tree and recompute the project's progress."""
    project = await fetch_for(db, grant, project_id)

    await save_schedule(db, project, [phase.model_dump() for phase in data.phases])
    previous, progress = await recompute_progress(db, project)
    if previous != progress:
        outbox.record(
            "project.progress_changed",
            {
                "project_id": project.id,
                "previous_progress": previous,
                "progress": progress,
                "actor_id": grant.ctx.user_id,
            },
        )

    await db.flush()
    response = await _schedule_response(db, project)
    await outbox.commit()

    logger.info(
        "schedule_replaced",
        project_id=str(project.id),
        activities=response["summary"]["total_activities"],
        progress=progress,
    )
    return ok(response, "Schedule saved successfully")
