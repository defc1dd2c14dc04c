"""Site incident endpoints."""

import re
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import select

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
from designhub.db.base import utc_now
from designhub.db.session import DBSession, refetch
from designhub.exceptions import ValidationFailed
from designhub.models.enums import (
    IncidentCategory,
    IncidentSeverity,
    IncidentStatus,
    InjuryType,
    Priority,
)
from designhub.models.incident import Incident
from designhub.models.project import Project
from designhub.models.user import User
from designhub.services.access_control import Grant, authorize, fetch_for, fetch_visible
from designhub.services.outbox import Outbox
from designhub.services.pagination import PageParams, page_params, paginate

router = APIRouter()
logger = structlog.get_logger()

INCIDENT_CODE = re.compile(r"^INC-(\d+)$")
CLOSED_STATUSES = ("resolved", "closed")

INCIDENT_SORT_FIELDS = {
    "incident_code": Incident.incident_code,
    "occurred_at": Incident.occurred_at,
    "severity": Incident.severity,
    "status": Incident.status,
    "created_at": Incident.created_at,
}


class InjuryDetails(APIModel):
    injury_type: InjuryType = "none"
    body_part: str | None = Field(None, max_length=100)
    treatment_required: bool = False
    medical_attention: bool = False


class IncidentResponse(APIModel):
    id: UUID
    project_id: UUID
    incident_code: str
    title: str
    description: str
    category: str
    severity: str
    priority: str
    status: str
    location: str | None = None
    occurred_at: Timestamp
    weather_conditions: str | None = None
    witness_names: list[str]
    equipment_involved: list[str]
    injury_details: InjuryDetails | None = None
    immediate_actions: str | None = None
    root_cause: str | None = None
    corrective_actions: str | None = None
    preventive_actions: str | None = None
    photos: list[str]
    follow_up_required: bool
    follow_up_date: Timestamp | None = None
    resolved_at: Timestamp | None = None
    reported_by: UserSummary | None = None
    assigned_to: UserSummary | None = None
    created_at: Timestamp
    updated_at: Timestamp


class IncidentCreate(APIModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=5, max_length=5000)
    category: IncidentCategory
    severity: IncidentSeverity
    priority: Priority = "medium"
    location: str | None = Field(None, max_length=200)
    occurred_at: Timestamp
    weather_conditions: str | None = Field(None, max_length=100)
    witness_names: list[str] = Field(default_factory=list)
    equipment_involved: list[str] = Field(default_factory=list)
    injury_details: InjuryDetails | None = None
    immediate_actions: str | None = Field(None, max_length=5000)
    photos: list[str] = Field(default_factory=list)
    follow_up_required: bool = False
    follow_up_date: Timestamp | None = None
    assigned_to_id: UUID | None = None


class IncidentUpdate(APIModel):
    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, min_length=5, max_length=5000)
    category: IncidentCategory | None = None
    severity: IncidentSeverity | None = None
    priority: Priority | None = None
    status: IncidentStatus | None = None
    location: str | None = Field(None, max_length=200)
    weather_conditions: str | None = Field(None, max_length=100)
    witness_names: list[str] | None = None
    equipment_involved: list[str] | None = None
    injury_details: InjuryDetails | None = None
    immediate_actions: str | None = Field(None, max_length=5000)
    root_cause: str | None = Field(None, max_length=5000)
    corrective_actions: str | None = Field(None, max_length=5000)
    preventive_actions: str | None = Field(None, max_length=5000)
    photos: list[str] | None = None
    follow_up_required: bool | None = None
    follow_up_date: Timestamp | None = None
    assigned_to_id: UUID | None = None


async def next_incident_code(db: DBSession, project_id: UUID) -> str:
    """INC-001, INC-002, ... continuing from the highest code in the project."""
    result = await db.execute(
        select(Incident.incident_code).where(Incident.project_id == project_id)
    )
    highest = 0
    for code in result.scalars().all():
        match = INCIDENT_CODE.match(code or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"INC-{highest + 1:03d}"


async def _check_assignee(db: DBSession, project: Project, user_id: UUID) -> None:
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise ValidationFailed("Assignee not found", field="assignedToId")
    if user.role != "super_admin" and user.id not in project.participant_ids():
        raise ValidationFailed("Assignee must be a participant of the project", field="assignedToId")


@router.get("/projects/{project_id}/incidents", response_model=Envelope[Page[IncidentResponse]])
async def list_incidents(
    project_id: UUID,
    grant: Annotated[Grant, authorize("incident", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    status_filter: IncidentStatus | None = Query(None, alias="status"),
    severity: IncidentSeverity | None = None,
    category: IncidentCategory | None = None,
) -> dict:
    """Incidents of one project, most recent occurrence first."""
    await fetch_visible(db, grant.ctx, Project, project_id)
    query = select(Incident).where(Incident.project_id == project_id, grant.predicate)
    if status_filter:
        query = query.where(Incident.status == status_filter)
    if severity:
        query = query.where(Incident.severity == severity)
    if category:
        query = query.where(Incident.category == category)

    incidents, pagination = await paginate(
        db,
        query,
        params,
        INCIDENT_SORT_FIELDS,
        default_sort="-occurred_at",
        tiebreaker=Incident.incident_code,
    )
    return ok(paged(incidents, pagination))


@router.post(
    "/projects/{project_id}/incidents",
    response_model=Envelope[IncidentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_incident(
    project_id: UUID,
    data: IncidentCreate,
    grant: Annotated[Grant, authorize("incident", "create")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Report an incident. Project participants are notified."""
    project = await fetch_for(db, grant, project_id)
    if data.assigned_to_id is not None:
        await _check_assignee(db, project, data.assigned_to_id)

    incident = Incident(
        project_id=project.id,
        incident_code=await next_incident_code(db, project.id),
        status="open",
        reported_by_id=grant.ctx.user_id,
        **data.model_dump(),
    )
    db.add(incident)
    incident = await refetch(db, incident)
    outbox.record(
        "incident.reported",
        {
            "incident_id": incident.id,
            "project_id": project.id,
            "incident_code": incident.incident_code,
            "title": incident.title,
            "severity": incident.severity,
            "actor_id": grant.ctx.user_id,
        },
    )
    await outbox.commit()

    logger.info(
        "incident_reported",
        incident_id=str(incident.id),
        project_id=str(project.id),
        incident_code=incident.incident_code,
        severity=incident.severity,
    )
    return ok(incident, "Incident reported successfully")


@router.get("/incidents/{incident_id}", response_model=Envelope[IncidentResponse])
async def get_incident(
    incident_id: UUID,
    grant: Annotated[Grant, authorize("incident", "read")],
    db: DBSession,
) -> dict:
    return ok(await fetch_for(db, grant, incident_id))


@router.patch("/incidents/{incident_id}", response_model=Envelope[IncidentResponse])
async def update_incident(
    incident_id: UUID,
    data: IncidentUpdate,
    grant: Annotated[Grant, authorize("incident", "update")],
    db: DBSession,
) -> dict:
    """Update an incident; moving it to resolved or closed stamps ``resolved_at``."""
    incident = await fetch_for(db, grant, incident_id)
    updates: dict[str, Any] = data.model_dump(exclude_unset=True)

    for field in ("title", "description", "category", "severity", "priority", "status"):
        if field in updates and updates[field] is None:
            raise ValidationFailed(f"{field} cannot be empty", field=field)
    if updates.get("assigned_to_id") is not None:
        await _check_assignee(db, incident.project, updates["assigned_to_id"])

    for field, value in updates.items():
        if field in ("witness_names", "equipment_involved", "photos") and value is None:
            value = []
        setattr(incident, field, value)

    if "status" in updates:
        if incident.status in CLOSED_STATUSES:
            incident.resolved_at = incident.resolved_at or utc_now()
        else:
            incident.resolved_at = None

    incident = await refetch(db, incident)
    await db.commit()

    logger.info(
        "incident_updated",
        incident_id=str(incident.id),
        status=incident.status,
        fields=sorted(updates),
    )
    return ok(incident, "Incident updated successfully")


@router.delete("/incidents/{incident_id}", response_model=Envelope[Deleted])
async def delete_incident(
    incident_id: UUID,
    grant: Annotated[Grant, authorize("incident", "delete")],
    db: DBSession,
) -> dict:
    """Delete an incident (super_admin only)."""
    incident = await fetch_for(db, grant, incident_id)
    await db.delete(incident)
    await db.commit()

    logger.info(
        "incident_deleted", incident_id=str(incident_id), project_id=str(incident.project_id)
    )
    return ok({"id": incident_id}, "Incident deleted successfully")
